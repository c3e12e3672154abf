"""
Exporter Protocol — Base interface for document backends.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from nixpkgs_vault.models.package import PackageRecord


class SaveError(Exception):
    """A document could not be written to disk."""


@runtime_checkable
class Exporter(Protocol):
    """
    Protocol that all exporters must implement.

    Exporters receive enriched PackageRecord objects and persist them,
    raising SaveError when the write fails.
    """

    async def export(self, record: PackageRecord) -> Path:
        """Persist a single record and return the written path."""
        ...

    async def finalize(self) -> None:
        """Called after all packages have been exported. Use for cleanup."""
        ...
