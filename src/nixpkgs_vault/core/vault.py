"""
Vault Builder — Parallel introspection and note generation.

Turns a nixpkgs manifest into one Markdown note per package:
- Bounded concurrency (one asyncio task per package, gated by a semaphore)
- Per-package failure isolation: a failed package is counted, never fatal
- Real-time progress tracking with rich
"""

import asyncio
import logging
import os

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeRemainingColumn,
)

from nixpkgs_vault.core.introspection import Introspector
from nixpkgs_vault.core.stats import RunStats
from nixpkgs_vault.exporters.base import Exporter
from nixpkgs_vault.parsers.manifest import parse_manifest_entry

logger = logging.getLogger("VaultBuilder")

STATUS_REFRESH_EVERY = 50


class VaultBuilder:
    """
    Orchestrates introspection and export for every manifest entry.

    Args:
        introspector: Produces build descriptions (usually NixDerivationIntrospector).
        exporter: Persists enriched records (usually MarkdownExporter).
        concurrency: Max packages in flight; defaults to the CPU count.
        console: rich Console for progress output.
    """

    def __init__(
        self,
        introspector: Introspector,
        exporter: Exporter,
        concurrency: int | None = None,
        console: Console | None = None,
    ):
        if concurrency is None:
            concurrency = os.cpu_count() or 1
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")

        self.introspector = introspector
        self.exporter = exporter
        self.concurrency = concurrency
        self.console = console or Console()
        self.stats = RunStats()

    # ──────────────────────────────────────────────
    # Selection
    # ──────────────────────────────────────────────

    @staticmethod
    def select_entries(
        manifest: dict[str, dict], limit: int | None = None, names: list[str] | None = None
    ) -> list[tuple[str, dict]]:
        """Pick the manifest entries to process, in manifest order."""
        if names:
            wanted = set(names)
            missing = wanted - manifest.keys()
            for name in sorted(missing):
                logger.warning(f"Package {name!r} is not in the manifest")
            entries = [(n, raw) for n, raw in manifest.items() if n in wanted]
        else:
            entries = list(manifest.items())

        if limit is not None:
            if limit < 0:
                raise ValueError(f"limit must not be negative, got {limit}")
            entries = entries[:limit]
        return entries

    # ──────────────────────────────────────────────
    # Main Run
    # ──────────────────────────────────────────────

    async def run(
        self,
        manifest: dict[str, dict],
        limit: int | None = None,
        names: list[str] | None = None,
        show_progress: bool = True,
    ) -> RunStats:
        """
        Generate notes for the selected manifest entries.

        Args:
            manifest: Package name -> raw manifest entry.
            limit: Process only the first N selected entries.
            names: Process only these package names.
            show_progress: Render a progress bar on the console.

        Returns:
            Final RunStats. Per-package failures are reported in the stats,
            never raised.
        """
        entries = self.select_entries(manifest, limit, names)
        self.stats = RunStats(total=len(entries))
        logger.info(f"Starting vault generation for {len(entries)} packages ({self.concurrency} jobs).")

        await self._process_packages(entries, show_progress)

        try:
            await self.exporter.finalize()
        except Exception as e:
            logger.error(f"Exporter finalization error: {e}")

        if show_progress:
            self._print_final_statistics()
        logger.info(f"Vault generation complete. {self.stats.summary()}")
        return self.stats

    async def _process_packages(self, entries: list[tuple[str, dict]], show_progress: bool):
        """Process all entries with progress tracking."""
        sem = asyncio.Semaphore(self.concurrency)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TaskProgressColumn(),
            TimeRemainingColumn(),
            console=self.console,
            disable=not show_progress,
        ) as progress:
            task_id = progress.add_task("[green]Generating notes...[/green]", total=len(entries))

            async def process_single(name: str, raw: dict):
                async with sem:
                    await self._process_one_package(name, raw)
                progress.advance(task_id)

                if self.stats.processed % STATUS_REFRESH_EVERY == 0:
                    progress.update(
                        task_id,
                        description=f"[green]Generating notes... (failed: {self.stats.failed})[/green]",
                    )

            await asyncio.gather(*(process_single(name, raw) for name, raw in entries))

    async def _process_one_package(self, name: str, raw: dict) -> None:
        """Introspect and export a single package; failures are counted."""
        record = parse_manifest_entry(name, raw).record

        try:
            build = await self.introspector.introspect(name)
            record.enrich(build)
        except Exception as e:
            logger.error(f"[INTROSPECT] {name}: {e}")
            self.stats.record_introspection_failure()
            return

        try:
            await self.exporter.export(record)
        except Exception as e:
            logger.error(f"[SAVE] {name}: {e}")
            self.stats.record_save_failure()
            return

        self.stats.record_success()

    def _print_final_statistics(self):
        """Print final run statistics."""
        stats = self.stats
        self.console.print("\n[bold green][DONE] Vault generation complete[/bold green]")
        self.console.print(
            f"Total: {stats.total} | Written: {stats.succeeded} | Failed: {stats.failed} "
            f"(introspection: {stats.introspection_failures}, save: {stats.save_failures})"
        )
        self.console.print(f"\n[cyan]Final Stats:[/cyan] {stats.summary()}")
