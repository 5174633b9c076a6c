"""Tests for package request construction."""

import pytest

from common.errors import InvalidPackageRequestError
from install.models import PackageRequest, ResolvedVersion
from versioning import NuGetVersion, VersionRange

from fakes import FakeRepository


class TestPackageRequestCreate:
    """Test request validation happens at construction."""

    def test_parses_range(self):
        """Test the range string is parsed into a VersionRange."""
        req = PackageRequest.create("Foo", "[1.0,2.0)")
        assert req.version_range == VersionRange.parse("[1.0,2.0)")
        assert req.describe() == "Foo [1.0.0, 2.0.0)"

    def test_blank_range_means_any(self):
        """Test an empty or missing range means any version."""
        assert PackageRequest.create("Foo", "").version_range is None
        assert PackageRequest.create("Foo", None).version_range is None
        assert PackageRequest.create("Foo").describe() == "Foo"

    def test_range_and_latest_rejected(self):
        """Test a range combined with get_latest is an invalid argument."""
        with pytest.raises(InvalidPackageRequestError):
            PackageRequest.create("Foo", "[1.0,2.0)", get_latest=True)

    def test_range_object_and_latest_rejected(self):
        """Test the dataclass constructor enforces the same rule."""
        with pytest.raises(InvalidPackageRequestError):
            PackageRequest("Foo", VersionRange.parse("1.0"), get_latest=True)

    def test_latest_without_range_allowed(self):
        """Test get_latest alone is valid."""
        assert PackageRequest.create("Foo", "  ", get_latest=True).get_latest

    @pytest.mark.parametrize(
        "package_id", ["", "   ", None, "../evil", "a/b", "a\\b", "Foo..Bar", ".Foo", "Foo\n", "Foo Bar", "x" * 101]
    )
    def test_invalid_id_rejected(self, package_id):
        """Test empty, path-like and malformed package ids are rejected."""
        with pytest.raises(InvalidPackageRequestError):
            PackageRequest.create(package_id, "1.0")

    @pytest.mark.parametrize("package_id", ["Newtonsoft.Json", "System.Text-Json_2", "xunit", "x" * 100])
    def test_valid_ids_accepted(self, package_id):
        """Test NuGet-style ids are accepted as given."""
        assert PackageRequest.create(package_id).package_id == package_id

    def test_malformed_range_rejected(self):
        """Test a malformed range string is rejected as an invalid request."""
        with pytest.raises(InvalidPackageRequestError):
            PackageRequest.create("Foo", "[1.0,")

    def test_invalid_request_is_value_error(self):
        """Test invalid requests surface as ValueError subclasses."""
        with pytest.raises(ValueError):
            PackageRequest.create("Foo", "1.0", get_latest=True)

    def test_explicit_sources_stored_as_tuple(self):
        """Test explicit sources are frozen in order."""
        a, b = FakeRepository("a"), FakeRepository("b")
        req = PackageRequest.create("Foo", explicit_sources=[a, b], exclusive_sources=True)
        assert req.explicit_sources == (a, b)
        assert req.exclusive_sources


class TestResolvedVersion:
    """Test resolved version helpers."""

    def test_identity_when_found(self):
        """Test identity is built from id and version."""
        resolved = ResolvedVersion("Foo", NuGetVersion.parse("1.5.0"))
        assert resolved.found
        assert resolved.identity.package_id == "Foo"
        assert resolved.identity.version == NuGetVersion.parse("1.5")

    def test_no_identity_when_missing(self):
        """Test a miss has no identity."""
        resolved = ResolvedVersion("Foo")
        assert not resolved.found
        assert resolved.identity is None
