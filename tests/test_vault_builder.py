"""Tests for the parallel vault builder."""

import asyncio
import io
import re
from pathlib import Path

import pytest
from rich.console import Console

from nixpkgs_vault.core.introspection import IntrospectionError
from nixpkgs_vault.core.vault import VaultBuilder
from nixpkgs_vault.exporters.base import SaveError
from nixpkgs_vault.exporters.markdown import MarkdownExporter
from nixpkgs_vault.models.package import BuildDescription, PackageRecord, normalize_id

WIKILINK_RE = re.compile(r"\[\[([^\]|]+)\]\]")

A_DRV = "/nix/store/aaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa-a-1.0.drv"
B_DRV = "/nix/store/bbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbb-b-1.0.drv"


class StubIntrospector:
    """Returns canned build descriptions; anything else fails."""

    def __init__(self, builds: dict[str, BuildDescription], delay: float = 0.0):
        self.builds = builds
        self.delay = delay
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def introspect(self, name: str) -> BuildDescription:
        self.calls.append(name)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if name not in self.builds:
                raise IntrospectionError("timed out after 30s")
            return self.builds[name]
        finally:
            self.in_flight -= 1


class FailingExporter(MarkdownExporter):
    """Markdown exporter that cannot write chosen packages."""

    def __init__(self, output_dir: Path, fail: set[str]):
        super().__init__(output_dir)
        self.fail = fail

    async def export(self, record: PackageRecord) -> Path:
        if record.name in self.fail:
            raise SaveError("disk full")
        return await super().export(record)


def build(drv: str, deps: list[str] | None = None) -> BuildDescription:
    return BuildDescription(drv_path=drv, outputs=["out"], input_drvs=deps or [], input_srcs=[])


def manifest_entry(version: str = "1.0", available: bool = False) -> dict:
    return {"version": version, "meta": {"available": available, "broken": False}}


@pytest.fixture
def manifest():
    return {"a": manifest_entry(), "b": manifest_entry(available=True), "c": manifest_entry()}


@pytest.fixture
def introspector():
    return StubIntrospector({"a": build(A_DRV), "b": build(B_DRV, [A_DRV])})


@pytest.fixture
def quiet_console():
    return Console(file=io.StringIO())


def notes(tmp_path: Path) -> dict[str, str]:
    return {p.stem: p.read_text(encoding="utf-8") for p in (tmp_path / "packages").glob("*.md")}


# ═══════════════════════════════════════════
# Run Outcomes
# ═══════════════════════════════════════════


class TestRun:
    @pytest.mark.asyncio
    async def test_dependency_links(self, manifest, introspector, tmp_path, quiet_console):
        builder = VaultBuilder(introspector, MarkdownExporter(tmp_path), concurrency=2, console=quiet_console)
        stats = await builder.run(manifest, show_progress=False)

        assert stats.total == 3
        assert stats.succeeded == 2
        assert stats.introspection_failures == 1
        assert stats.failed == 1

        written = notes(tmp_path)
        a_id, b_id = normalize_id(A_DRV), normalize_id(B_DRV)
        assert set(written) == {a_id, b_id}

        assert WIKILINK_RE.findall(written[b_id]) == [a_id]
        assert "## Dependencies" not in written[a_id]

    @pytest.mark.asyncio
    async def test_available_rendered_negated(self, manifest, introspector, tmp_path, quiet_console):
        builder = VaultBuilder(introspector, MarkdownExporter(tmp_path), console=quiet_console)
        await builder.run(manifest, show_progress=False)

        written = notes(tmp_path)
        # raw "available: true" in the manifest
        assert "- **Available:** ❌ No" in written[normalize_id(B_DRV)]
        assert "#unavailable" in written[normalize_id(B_DRV)]
        assert "- **Available:** ✅ Yes" in written[normalize_id(A_DRV)]

    @pytest.mark.asyncio
    async def test_every_entry_has_exactly_one_outcome(self, tmp_path, quiet_console):
        manifest = {f"pkg{i}": manifest_entry() for i in range(40)}
        builds = {
            f"pkg{i}": build(f"/nix/store/{i:032d}-pkg{i}.drv") for i in range(40) if i % 3 != 0
        }
        exporter = FailingExporter(tmp_path, fail={"pkg1", "pkg2"})
        builder = VaultBuilder(StubIntrospector(builds), exporter, concurrency=4, console=quiet_console)

        stats = await builder.run(manifest, show_progress=False)

        assert stats.processed == stats.total == 40
        assert stats.introspection_failures == 14
        assert stats.save_failures == 2
        assert stats.succeeded + stats.failed == stats.total
        assert len(notes(tmp_path)) == stats.succeeded == 24
        assert stats.snapshot() == (40, 40, 16)

    @pytest.mark.asyncio
    async def test_failures_logged_with_distinct_tags(self, manifest, introspector, tmp_path, quiet_console, caplog):
        exporter = FailingExporter(tmp_path, fail={"a"})
        builder = VaultBuilder(introspector, exporter, console=quiet_console)

        with caplog.at_level("ERROR"):
            await builder.run(manifest, show_progress=False)

        assert "[INTROSPECT] c: timed out" in caplog.text
        assert "[SAVE] a: disk full" in caplog.text

    @pytest.mark.asyncio
    async def test_rerun_is_stable(self, manifest, introspector, tmp_path, quiet_console):
        def strip_timestamp(text):
            return text.rsplit("*Generated:", 1)[0]

        await VaultBuilder(introspector, MarkdownExporter(tmp_path), console=quiet_console).run(
            manifest, show_progress=False
        )
        first = {k: strip_timestamp(v) for k, v in notes(tmp_path).items()}
        await VaultBuilder(introspector, MarkdownExporter(tmp_path), console=quiet_console).run(
            manifest, show_progress=False
        )
        second = {k: strip_timestamp(v) for k, v in notes(tmp_path).items()}
        assert first == second

    @pytest.mark.asyncio
    async def test_progress_output(self, manifest, introspector, tmp_path):
        output = io.StringIO()
        builder = VaultBuilder(introspector, MarkdownExporter(tmp_path), console=Console(file=output))
        await builder.run(manifest)
        assert "Vault generation complete" in output.getvalue()
        assert "Failed: 1" in output.getvalue()


# ═══════════════════════════════════════════
# Concurrency & Selection
# ═══════════════════════════════════════════


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_pool_is_bounded(self, tmp_path, quiet_console):
        manifest = {f"pkg{i}": manifest_entry() for i in range(20)}
        builds = {name: build(f"/nix/store/{i:032d}-{name}.drv") for i, name in enumerate(manifest)}
        introspector = StubIntrospector(builds, delay=0.01)

        builder = VaultBuilder(introspector, MarkdownExporter(tmp_path), concurrency=3, console=quiet_console)
        await builder.run(manifest, show_progress=False)

        assert introspector.max_in_flight <= 3
        assert introspector.max_in_flight > 1

    def test_default_concurrency_is_cpu_count(self, tmp_path, monkeypatch):
        monkeypatch.setattr("nixpkgs_vault.core.vault.os.cpu_count", lambda: 7)
        builder = VaultBuilder(StubIntrospector({}), MarkdownExporter(tmp_path))
        assert builder.concurrency == 7

    def test_invalid_concurrency(self, tmp_path):
        with pytest.raises(ValueError):
            VaultBuilder(StubIntrospector({}), MarkdownExporter(tmp_path), concurrency=0)


class TestSelection:
    def test_limit_takes_prefix(self, manifest):
        assert [n for n, _ in VaultBuilder.select_entries(manifest, limit=2)] == ["a", "b"]

    def test_negative_limit_rejected(self, manifest):
        with pytest.raises(ValueError, match="negative"):
            VaultBuilder.select_entries(manifest, limit=-1)

    def test_zero_limit_selects_nothing(self, manifest):
        assert VaultBuilder.select_entries(manifest, limit=0) == []

    def test_names_subset_keeps_manifest_order(self, manifest):
        entries = VaultBuilder.select_entries(manifest, names=["c", "a", "missing"])
        assert [n for n, _ in entries] == ["a", "c"]

    @pytest.mark.asyncio
    async def test_only_selected_are_introspected(self, manifest, introspector, tmp_path, quiet_console):
        builder = VaultBuilder(introspector, MarkdownExporter(tmp_path), console=quiet_console)
        stats = await builder.run(manifest, names=["b"], show_progress=False)
        assert introspector.calls == ["b"]
        assert stats.total == 1
