"""
Example: Generate notes for a handful of packages from a local nixpkgs tree.

Usage:
    python examples/build_vault.py /nix/store/...-source
"""

import asyncio
import sys
from pathlib import Path

from nixpkgs_vault import VaultBuilder
from nixpkgs_vault.core.introspection import NixDerivationIntrospector
from nixpkgs_vault.core.nixpkgs import generate_manifest
from nixpkgs_vault.exporters.markdown import MarkdownExporter
from nixpkgs_vault.parsers.manifest import load_manifest


async def main(nixpkgs_path: Path):
    output_dir = Path("./nixpkgs-vault")
    manifest = load_manifest(generate_manifest(nixpkgs_path, output_dir))

    builder = VaultBuilder(
        introspector=NixDerivationIntrospector(nixpkgs_path),
        exporter=MarkdownExporter(output_dir=output_dir),
        concurrency=4,
    )
    stats = await builder.run(manifest, names=["hello", "jq", "ripgrep"])

    print(f"\n✅ {stats.succeeded} notes written to: {(output_dir / 'packages').absolute()}")


if __name__ == "__main__":
    asyncio.run(main(Path(sys.argv[1])))
