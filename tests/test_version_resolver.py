"""Tests for local-first, concurrent version resolution."""

import asyncio
import logging

from common.errors import SourceQueryError
from install.models import PackageRequest
from install.resolver import VersionResolver
from versioning import NuGetVersion

from fakes import FakeRepository


def v(text):
    return NuGetVersion.parse(text)


def resolve(request, remote, local=None, update=False, resolver=None):
    resolver = resolver or VersionResolver()
    return asyncio.run(resolver.resolve(request, remote, local, update))


class TestLocalFirst:
    """Test the local phase short-circuits remote queries."""

    def test_local_match_skips_remote(self):
        """Test a local hit is returned without any remote call."""
        local = FakeRepository("local", {"Foo": ["1.5.0"]})
        remote = FakeRepository("nuget", {"Foo": ["1.9.0"]})
        request = PackageRequest.create("Foo", "[1.0,2.0)")

        resolved = resolve(request, [remote], local)

        assert resolved.version == v("1.5.0")
        assert remote.calls == []
        assert local.calls == ["Foo"]

    def test_latest_skips_local(self):
        """Test get_latest goes straight to remotes and tolerates a failing source."""
        local = FakeRepository("local", {"Foo": ["1.5.0"]})
        remote = FakeRepository("nuget", {"Foo": ["1.9.0"]})
        broken = FakeRepository("broken", error=SourceQueryError("broken", "boom"))
        request = PackageRequest.create("Foo", get_latest=True)

        resolved = resolve(request, [remote, broken], local)

        assert resolved.version == v("1.9.0")
        assert local.calls == []
        assert broken.calls == ["Foo"]

    def test_update_skips_local(self):
        """Test update_packages forces the remote phase."""
        local = FakeRepository("local", {"Foo": ["1.5.0"]})
        remote = FakeRepository("nuget", {"Foo": ["1.9.0"]})

        resolved = resolve(PackageRequest.create("Foo", "[1.0,2.0)"), [remote], local, update=True)

        assert resolved.version == v("1.9.0")
        assert local.calls == []

    def test_local_miss_falls_back_to_remote(self):
        """Test a local version outside the range does not satisfy the request."""
        local = FakeRepository("local", {"Foo": ["0.9.0"]})
        remote = FakeRepository("nuget", {"Foo": ["1.2.0", "2.1.0"]})

        resolved = resolve(PackageRequest.create("Foo", "[1.0,2.0)"), [remote], local)

        assert resolved.version == v("1.2.0")
        assert local.calls == ["Foo"]
        assert remote.calls == ["Foo"]

    def test_failing_local_source_is_a_miss(self):
        """Test a broken local cache degrades to the remote phase."""
        local = FakeRepository("local", error=OSError("disk gone"))
        remote = FakeRepository("nuget", {"Foo": ["1.0.0"]})

        resolved = resolve(PackageRequest.create("Foo"), [remote], local)

        assert resolved.version == v("1.0.0")


class TestRemoteMerge:
    """Test fan-out and merge across remote sources."""

    def test_max_across_sources(self):
        """Test the highest satisfying version across all sources wins."""
        a = FakeRepository("a", {"Foo": ["1.1.0", "1.4.0", "3.0.0"]})
        b = FakeRepository("b", {"Foo": ["1.6.0"]})
        c = FakeRepository("c", {"Bar": ["1.8.0"]})

        resolved = resolve(PackageRequest.create("Foo", "[1.0,2.0)"), [a, b, c])

        assert resolved.version == v("1.6.0")
        assert a.calls == b.calls == c.calls == ["Foo"]

    def test_no_match_anywhere(self):
        """Test all sources missing yields no version."""
        a = FakeRepository("a", {"Foo": ["3.0.0"]})
        b = FakeRepository("b", error=RuntimeError("down"))

        resolved = resolve(PackageRequest.create("Foo", "[1.0,2.0)"), [a, b])

        assert resolved.version is None
        assert not resolved.found

    def test_failing_source_does_not_hide_others(self, caplog):
        """Test a source failure is a warning and other candidates still count."""
        good = FakeRepository("good", {"Foo": ["1.0.0"]})
        bad = FakeRepository("bad", error=ConnectionError("refused"))

        with caplog.at_level(logging.WARNING):
            resolved = resolve(PackageRequest.create("Foo"), [bad, good])

        assert resolved.version == v("1.0.0")
        assert any("bad" in r.getMessage() and r.levelno == logging.WARNING for r in caplog.records)

    def test_empty_source_set_issues_no_queries(self):
        """Test exclusive requests with no explicit sources find nothing."""
        remote = FakeRepository("nuget", {"Foo": ["1.0.0"]})
        request = PackageRequest.create("Foo", exclusive_sources=True)

        resolved = resolve(request, [remote])

        assert resolved.version is None
        assert remote.calls == []

    def test_exclusive_queries_only_explicit(self):
        """Test no source outside the explicit list is queried."""
        private = FakeRepository("private", {"Foo": ["1.0.0"]})
        remotes = [FakeRepository(f"remote{i}", {"Foo": ["9.0.0"]}) for i in range(5)]
        request = PackageRequest.create("Foo", exclusive_sources=True, explicit_sources=[private])

        resolved = resolve(request, remotes)

        assert resolved.version == v("1.0.0")
        assert all(r.calls == [] for r in remotes)

    def test_non_exclusive_adds_explicit_sources(self):
        """Test explicit sources join the remote set when not exclusive."""
        private = FakeRepository("private", {"Foo": ["2.0.0"]})
        remote = FakeRepository("nuget", {"Foo": ["1.0.0"]})

        resolved = resolve(PackageRequest.create("Foo", explicit_sources=[private]), [remote])

        assert resolved.version == v("2.0.0")
        assert remote.calls == ["Foo"]

    def test_prerelease_and_unlisted_are_source_filters(self):
        """Test inclusion flags are passed to the source query."""
        remote = FakeRepository("nuget", {"Foo": ["1.0.0", "1.1.0-beta", "1.2.0"]}, unlisted=["1.2.0"])

        default = resolve(PackageRequest.create("Foo"), [remote])
        prerelease = resolve(PackageRequest.create("Foo", allow_prerelease=True), [remote])
        everything = resolve(
            PackageRequest.create("Foo", allow_prerelease=True, allow_unlisted=True), [remote]
        )

        assert default.version == v("1.0.0")
        assert prerelease.version == v("1.1.0-beta")
        assert everything.version == v("1.2.0")

    def test_queries_run_concurrently(self):
        """Test slow sources are queried in parallel, not one after another."""
        sources = [FakeRepository(f"slow{i}", {"Foo": [f"1.{i}.0"]}, delay=0.2) for i in range(5)]

        async def _run():
            loop = asyncio.get_running_loop()
            start = loop.time()
            resolved = await VersionResolver().resolve(PackageRequest.create("Foo"), sources)
            return resolved, loop.time() - start

        resolved, elapsed = asyncio.run(_run())

        assert resolved.version == v("1.4.0")
        assert elapsed < 0.8

    def test_slow_source_times_out(self):
        """Test a hanging source is bounded by the source timeout."""
        fast = FakeRepository("fast", {"Foo": ["1.0.0"]})
        hanging = FakeRepository("hanging", {"Foo": ["5.0.0"]}, delay=10)
        resolver = VersionResolver(source_timeout=0.1)

        resolved = resolve(PackageRequest.create("Foo"), [fast, hanging], resolver=resolver)

        assert resolved.version == v("1.0.0")
