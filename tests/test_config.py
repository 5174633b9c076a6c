"""Tests for installer configuration loading."""

import json

import pytest

from constants import Constants
from common.errors import ConfigError, InvalidPackageRequestError
from install.config import InstallerConfig, load_config, requests_from_config
from registry import LocalFolderRepository, NuGetV3Repository
from versioning import VersionRange


class TestInstallerConfig:
    """Test defaults and mapping validation."""

    def test_defaults(self):
        """Test default values come from Constants."""
        config = InstallerConfig()
        assert config.packages_folder == Constants.PACKAGES_FOLDER
        assert config.source_timeout == Constants.SOURCE_QUERY_TIMEOUT
        assert config.effective_sources == [Constants.DEFAULT_NUGET_SOURCE]

    def test_default_source_not_duplicated(self):
        """Test the default feed is appended once and can be disabled."""
        config = InstallerConfig(remote_sources=["https://private.test/index.json", Constants.DEFAULT_NUGET_SOURCE])
        assert config.effective_sources.count(Constants.DEFAULT_NUGET_SOURCE) == 1
        config.use_default_source = False
        assert config.effective_sources == ["https://private.test/index.json", Constants.DEFAULT_NUGET_SOURCE]
        assert InstallerConfig(use_default_source=False).effective_sources == []

    def test_from_mapping_coerces(self, caplog):
        """Test numbers are coerced and unknown keys ignored."""
        config = InstallerConfig.from_mapping({
            "remote_sources": "https://private.test/index.json",
            "source_timeout": "15",
            "max_concurrency": 0,
            "colour": "blue",
        })
        assert config.remote_sources == ["https://private.test/index.json"]
        assert config.source_timeout == 15.0
        assert config.max_concurrency == 1
        assert "colour" in caplog.text

    @pytest.mark.parametrize("data", [
        {"remote_sources": [1, 2]},
        {"packages": "Foo"},
        {"source_timeout": "soon"},
    ])
    def test_from_mapping_rejects_bad_shapes(self, data):
        """Test malformed values raise ConfigError."""
        with pytest.raises(ConfigError):
            InstallerConfig.from_mapping(data)

    def test_env_overrides(self):
        """Test DEPFETCH_* variables override file values."""
        config = InstallerConfig(framework="net6.0")
        config.apply_env_overrides({
            "DEPFETCH_PACKAGES_FOLDER": "/tmp/pkgs",
            "DEPFETCH_SOURCES": "https://a.test/index.json, /srv/feed ,",
            "DEPFETCH_FRAMEWORK": "net8.0",
            "DEPFETCH_UPDATE": "yes",
            "DEPFETCH_SOURCE_TIMEOUT": "5",
        })
        assert config.packages_folder == "/tmp/pkgs"
        assert config.remote_sources == ["https://a.test/index.json", "/srv/feed"]
        assert config.framework == "net8.0"
        assert config.update_packages is True
        assert config.source_timeout == 5.0

    def test_bad_env_timeout(self):
        """Test a non-numeric timeout override is rejected."""
        with pytest.raises(ConfigError):
            InstallerConfig().apply_env_overrides({"DEPFETCH_SOURCE_TIMEOUT": "later"})


class TestLoadConfig:
    """Test reading config files."""

    def test_yaml_file(self, tmp_path):
        """Test a YAML config file is loaded and env applied on top."""
        path = tmp_path / "depfetch.yml"
        path.write_text(
            "packages_folder: vendor\n"
            "framework: net8.0\n"
            "packages:\n"
            "  - id: Foo\n"
            "    version: '[1.0,2.0)'\n",
            encoding="utf-8",
        )
        config = load_config(str(path), environ={"DEPFETCH_FRAMEWORK": "net9.0"})
        assert config.packages_folder == "vendor"
        assert config.framework == "net9.0"
        assert config.packages == [{"id": "Foo", "version": "[1.0,2.0)"}]

    def test_json_file(self, tmp_path):
        """Test JSON config files are supported."""
        path = tmp_path / "depfetch.json"
        path.write_text(json.dumps({"update_packages": True}), encoding="utf-8")
        assert load_config(str(path), environ={}).update_packages is True

    def test_missing_explicit_file(self, tmp_path):
        """Test an explicit path that does not exist is an error."""
        with pytest.raises(ConfigError, match="not found"):
            load_config(str(tmp_path / "nope.yml"), environ={})

    def test_non_mapping_file(self, tmp_path):
        """Test a config file must hold a mapping."""
        path = tmp_path / "depfetch.yml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(str(path), environ={})

    def test_defaults_without_files(self, tmp_path, monkeypatch):
        """Test defaults apply when no config file exists."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        config = load_config(environ={})
        assert config.packages_folder == Constants.PACKAGES_FOLDER

    def test_discovers_file_in_cwd(self, tmp_path, monkeypatch):
        """Test a config file in the working directory is picked up."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        (tmp_path / Constants.CONFIG_FILENAMES[0]).write_text("packages_folder: found\n", encoding="utf-8")
        assert load_config(environ={}).packages_folder == "found"


class TestRequestsFromConfig:
    """Test building requests from package entries."""

    def test_entries(self, tmp_path):
        """Test every entry key maps onto the request."""
        config = InstallerConfig(packages=[
            {"id": "Foo", "version": "[1.0,2.0)", "prerelease": True},
            {"id": "Bar", "latest": True, "exclusive": True,
             "sources": ["https://private.test/index.json", str(tmp_path)]},
        ])
        foo, bar = requests_from_config(config, http_client=None)

        assert foo.version_range == VersionRange.parse("[1.0,2.0)")
        assert foo.allow_prerelease
        assert bar.get_latest and bar.exclusive_sources
        assert isinstance(bar.explicit_sources[0], NuGetV3Repository)
        assert isinstance(bar.explicit_sources[1], LocalFolderRepository)

    def test_numeric_version(self):
        """Test unquoted numeric versions are accepted."""
        (req,) = requests_from_config(InstallerConfig(packages=[{"id": "Foo", "version": 2}]), None)
        assert req.version_range == VersionRange.parse("2")

    def test_invalid_entry(self):
        """Test a malformed entry is an invalid request."""
        with pytest.raises(InvalidPackageRequestError):
            requests_from_config(InstallerConfig(packages=[{"version": "1.0"}]), None)
        with pytest.raises(InvalidPackageRequestError):
            requests_from_config(InstallerConfig(packages=[{"id": "Foo", "sources": 5}]), None)
