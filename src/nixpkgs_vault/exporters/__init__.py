"""Export backends for generated package notes."""

from nixpkgs_vault.exporters.base import Exporter, SaveError
from nixpkgs_vault.exporters.markdown import MarkdownExporter, render_document

__all__ = ["Exporter", "SaveError", "MarkdownExporter", "render_document"]
