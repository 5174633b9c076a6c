"""Installer configuration: defaults, YAML/JSON config files and environment overrides.

Precedence (highest first): environment variables, the config file, the
defaults in ``Constants``.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional

import yaml

from constants import Constants
from common.errors import ConfigError, InvalidPackageRequestError
from common.http_client import AsyncHttpClient
from registry import create_repository

from .models import PackageRequest

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass
class InstallerConfig:
    """Configuration for a package install run."""

    packages_folder: str = Constants.PACKAGES_FOLDER
    remote_sources: List[str] = field(default_factory=list)
    use_default_source: bool = True
    framework: Optional[str] = None
    update_packages: bool = False
    source_timeout: Optional[float] = Constants.SOURCE_QUERY_TIMEOUT
    install_timeout: Optional[float] = None
    request_timeout: float = Constants.REQUEST_TIMEOUT
    max_concurrency: int = Constants.MAX_CONCURRENCY
    packages: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def effective_sources(self) -> List[str]:
        """Configured remote sources, with the default feed appended when enabled."""
        sources = list(self.remote_sources)
        if self.use_default_source and Constants.DEFAULT_NUGET_SOURCE not in sources:
            sources.append(Constants.DEFAULT_NUGET_SOURCE)
        return sources

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "InstallerConfig":
        """Create config from a parsed config file; unknown keys are ignored with a warning.

        Raises:
            ConfigError: If a value has the wrong shape.
        """
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                logger.warning("Ignoring unknown configuration key: %s", key)
                continue
            values[key] = value

        sources = values.get("remote_sources")
        if sources is not None:
            if isinstance(sources, str):
                sources = [sources]
            if not isinstance(sources, list) or not all(isinstance(s, str) for s in sources):
                raise ConfigError("remote_sources must be a list of strings")
            values["remote_sources"] = sources
        packages = values.get("packages")
        if packages is not None and (
            not isinstance(packages, list) or not all(isinstance(p, dict) for p in packages)
        ):
            raise ConfigError("packages must be a list of mappings")
        try:
            for key in ("source_timeout", "install_timeout", "request_timeout"):
                if values.get(key) is not None:
                    values[key] = float(values[key])
            if values.get("max_concurrency") is not None:
                values["max_concurrency"] = max(1, int(values["max_concurrency"]))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid numeric configuration value: {exc}") from exc
        return cls(**values)

    def apply_env_overrides(self, environ: Optional[Mapping[str, str]] = None) -> None:
        """Apply DEPFETCH_* environment overrides in place.

        Raises:
            ConfigError: If a numeric override is not a number.
        """
        env = os.environ if environ is None else environ
        prefix = Constants.ENV_PREFIX
        if env.get(prefix + "PACKAGES_FOLDER"):
            self.packages_folder = env[prefix + "PACKAGES_FOLDER"]
        if env.get(prefix + "SOURCES"):
            self.remote_sources = [s.strip() for s in env[prefix + "SOURCES"].split(",") if s.strip()]
        if env.get(prefix + "FRAMEWORK"):
            self.framework = env[prefix + "FRAMEWORK"]
        if env.get(prefix + "UPDATE"):
            self.update_packages = env[prefix + "UPDATE"].strip().lower() in _TRUE_VALUES
        if env.get(prefix + "SOURCE_TIMEOUT"):
            try:
                self.source_timeout = float(env[prefix + "SOURCE_TIMEOUT"])
            except ValueError as exc:
                raise ConfigError(f"Invalid {prefix}SOURCE_TIMEOUT: {exc}") from exc


def _default_config_paths() -> List[str]:
    """Candidate config files in lookup order."""
    user_dir = os.path.expanduser(Constants.CONFIG_USER_DIR)
    paths = [os.path.join(os.getcwd(), name) for name in Constants.CONFIG_FILENAMES]
    paths.extend(os.path.join(user_dir, name) for name in Constants.CONFIG_FILENAMES)
    return paths


def _read_config_file(path: str) -> Dict[str, Any]:
    """Read a YAML or JSON config file into a mapping."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            if path.lower().endswith(".json"):
                data = json.load(fh)
            else:
                data = yaml.safe_load(fh) or {}
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Could not read config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def load_config(path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> InstallerConfig:
    """Load configuration from ``path`` or the first default config file found.

    A missing default file means defaults; a missing explicit path is an error.

    Raises:
        ConfigError: If the file cannot be read or holds invalid values.
    """
    data: Dict[str, Any] = {}
    if path:
        if not os.path.isfile(path):
            raise ConfigError(f"Config file not found: {path}")
        data = _read_config_file(path)
    else:
        for candidate in _default_config_paths():
            if os.path.isfile(candidate):
                logger.debug("Loading configuration from %s", candidate)
                data = _read_config_file(candidate)
                break

    config = InstallerConfig.from_mapping(data)
    config.apply_env_overrides(environ)
    return config


def requests_from_config(config: InstallerConfig, http_client: AsyncHttpClient) -> List[PackageRequest]:
    """Build package requests from the ``packages`` entries of a config.

    Each entry accepts ``id``, ``version``, ``latest``, ``prerelease``,
    ``unlisted``, ``exclusive`` and ``sources``.

    Raises:
        InvalidPackageRequestError: If an entry is malformed.
    """
    requests = []
    for entry in config.packages:
        sources = entry.get("sources") or []
        if isinstance(sources, str):
            sources = [sources]
        if not isinstance(sources, list):
            raise InvalidPackageRequestError(f"Invalid sources for package {entry.get('id')!r}")
        version = entry.get("version")
        requests.append(PackageRequest.create(
            package_id=entry.get("id"),
            version_range=str(version) if version is not None else None,
            get_latest=bool(entry.get("latest", False)),
            allow_prerelease=bool(entry.get("prerelease", False)),
            allow_unlisted=bool(entry.get("unlisted", False)),
            exclusive_sources=bool(entry.get("exclusive", False)),
            explicit_sources=[create_repository(str(s), http_client) for s in sources],
        ))
    return requests
