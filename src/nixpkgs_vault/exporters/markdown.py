"""
Markdown Exporter — writes one cross-linked Markdown note per package.

Output structure (an Obsidian-compatible vault):
    output_dir/
    ├── packages.json
    └── packages/
        ├── 0c9f...-hello-2.12.1.md
        └── 7d4a...-bash-5.2p26.md

Dependencies are rendered as ``[[<normalized-id>]]`` wikilinks, which
resolve to the sibling note of the dependency's own derivation.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path

import aiofiles

from nixpkgs_vault.exporters.base import SaveError
from nixpkgs_vault.models.package import PackageRecord, normalize_id

logger = logging.getLogger(__name__)

PACKAGES_DIR = "packages"


def _yes_no(value: bool, yes: str = "✅ Yes", no: str = "❌ No") -> str:
    return yes if value else no


def render_document(record: PackageRecord, generated_at: datetime) -> str:
    """
    Render a package note.

    Sections appear in a fixed order and are omitted when they have no
    data. Output depends only on the record, apart from the final
    timestamp line.
    """
    tags = ["#package"]
    if record.broken:
        tags.append("#broken")
    if not record.available:
        tags.append("#unavailable")

    lines = [f"# {record.name}", "", " ".join(tags), "", "## Metadata", ""]
    lines.append(f"- **Name:** {record.name}")
    lines.append(f"- **Version:** {record.version}")
    lines.append(f"- **Available:** {_yes_no(record.available)}")
    lines.append(f"- **Broken:** {_yes_no(record.broken, yes='⚠️ Yes', no='No')}")
    if record.description:
        lines.append(f"- **Description:** {record.description}")
    if record.homepage:
        lines.append(f"- **Homepage:** {record.homepage}")
    lines.append(f"- **License:** {record.license_short_name}")
    if record.platforms:
        lines.append(f"- **Platforms:** {', '.join(record.platforms)}")
    lines.append("")

    if record.long_description:
        lines += ["## Description", "", record.long_description.strip(), ""]

    if record.maintainers:
        lines += ["## Maintainers", ""]
        lines += [f"- {m}" for m in record.maintainers]
        lines.append("")

    if record.drv_path:
        lines += ["## Build Information", ""]
        lines.append(f"- **Derivation:** `{record.drv_path}`")
        if record.outputs:
            lines.append(f"- **Outputs:** {', '.join(record.outputs)}")
        lines.append("")

    if record.dependencies:
        lines += ["## Dependencies", ""]
        lines += [f"- [[{normalize_id(dep)}]]" for dep in record.dependencies]
        lines.append("")

    if record.input_srcs:
        lines += ["## Input Sources", ""]
        lines += [f"- `{src}`" for src in record.input_srcs]
        lines.append("")

    lines += ["---", "", f"*Generated: {generated_at.isoformat(timespec='seconds')}*", ""]
    return "\n".join(lines)


class MarkdownExporter:
    """
    Exports PackageRecord objects as Markdown notes under ``packages/``.

    Existing notes are overwritten. If two records map to the same
    identifier in one run, the later one wins and a warning is logged.
    """

    def __init__(self, output_dir: Path):
        self.output_dir = output_dir
        self.packages_dir = output_dir / PACKAGES_DIR
        self.count = 0
        self._written: dict[str, str] = {}  # doc_id -> package name

    def path_for(self, record: PackageRecord) -> Path:
        return self.packages_dir / f"{record.doc_id}.md"

    async def export(self, record: PackageRecord) -> Path:
        """Render and write a single note."""
        doc_id = record.doc_id
        previous = self._written.get(doc_id)
        if previous is not None and previous != record.name:
            logger.warning(f"[MD] {record.name} overwrites note {doc_id} written for {previous}")

        filepath = self.path_for(record)
        content = render_document(record, datetime.now(timezone.utc))

        try:
            self.packages_dir.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(filepath, "w", encoding="utf-8") as f:
                await f.write(content)
        except OSError as e:
            raise SaveError(f"cannot write {filepath}: {e}") from e

        self._written[doc_id] = record.name
        self.count += 1
        logger.debug(f"[MD] Exported {record.name} -> {filepath.name}")
        return filepath

    async def finalize(self) -> None:
        """Log export summary."""
        logger.info(f"[MD] Export complete: {self.count} notes written to {self.packages_dir}")
