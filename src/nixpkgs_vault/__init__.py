"""
Nixpkgs Vault - Cross-linked Markdown knowledge base for nixpkgs.

Pipeline: a ``packages.json`` manifest is parsed into PackageRecords, each
package's derivation is queried with ``nix derivation show``, and every
successfully introspected package becomes ``<outdir>/packages/<id>.md``,
whose dependencies are ``[[<id>]]`` links to sibling notes.

Library use:

    builder = VaultBuilder(NixDerivationIntrospector(nixpkgs), MarkdownExporter(outdir))
    stats = await builder.run(load_manifest(outdir / "packages.json"))

The names below are imported on first access so that ``import nixpkgs_vault``
stays cheap for the CLI.
"""

from importlib import import_module

__version__ = "0.1.0"

_LAZY_EXPORTS = {
    "VaultBuilder": "nixpkgs_vault.core.vault",
    "NixDerivationIntrospector": "nixpkgs_vault.core.introspection",
    "MarkdownExporter": "nixpkgs_vault.exporters.markdown",
    "PackageRecord": "nixpkgs_vault.models.package",
    "load_manifest": "nixpkgs_vault.parsers.manifest",
}


def __getattr__(name: str):
    module = _LAZY_EXPORTS.get(name)
    if module is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    return getattr(import_module(module), name)


__all__ = [*_LAZY_EXPORTS, "__version__"]
