"""
Manifest Parser.

Reads the ``packages.json`` manifest produced by ``nix-env -qa --json --meta``
and turns each entry into a manifest-only PackageRecord. Entry parsing never
fails: absent or ill-typed fields fall back to defaults, and the names of the
defaulted fields are returned alongside the record.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from nixpkgs_vault.models.package import UNKNOWN, PackageRecord

logger = logging.getLogger(__name__)


class ManifestError(Exception):
    """The manifest file is missing or not a packages.json document."""


@dataclass
class ParsedEntry:
    """A manifest-only record and the fields that had to be defaulted."""

    record: PackageRecord
    defaulted: list[str] = field(default_factory=list)


def load_manifest(path: Path) -> dict[str, dict]:
    """
    Load the ``packages`` mapping from a manifest file.

    Raises:
        ManifestError: if the file cannot be read or has no ``packages`` object.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ManifestError(f"Cannot read manifest {path}: {e}") from e

    packages = data.get("packages") if isinstance(data, dict) else None
    if not isinstance(packages, dict):
        raise ManifestError(f"Manifest {path} has no 'packages' object")

    logger.info(f"[MANIFEST] Loaded {len(packages)} packages from {path}")
    return packages


def parse_manifest_entry(name: str, raw: Any) -> ParsedEntry:
    """Build a PackageRecord from one manifest entry, defaulting bad fields."""
    defaulted: list[str] = []

    if not isinstance(raw, dict):
        defaulted.append("entry")
        raw = {}

    meta = raw.get("meta")
    if not isinstance(meta, dict):
        meta = {}

    def text(source: dict, key: str, field_name: str, default=None):
        value = source.get(key)
        if isinstance(value, str):
            return value
        defaulted.append(field_name)
        return default

    def flag(key: str) -> bool:
        value = meta.get(key)
        if isinstance(value, bool):
            return value
        defaulted.append(key)
        return False

    record = PackageRecord(
        name=name,
        version=text(raw, "version", "version", UNKNOWN),
        available=not flag("available"),
        broken=flag("broken"),
        description=text(meta, "description", "description"),
        long_description=text(meta, "longDescription", "long_description"),
        homepage=_homepage(meta.get("homepage"), defaulted),
        license_short_name=_license_short_name(raw, meta, defaulted),
        maintainers=_maintainers(meta.get("maintainers"), defaulted),
        platforms=_string_list(meta.get("platforms"), "platforms", defaulted),
    )

    if defaulted:
        logger.debug(f"[MANIFEST] {name}: defaulted {', '.join(defaulted)}")

    return ParsedEntry(record=record, defaulted=defaulted)


def _homepage(value: Any, defaulted: list[str]) -> str | None:
    # Some packages list several homepages
    if isinstance(value, list) and value and isinstance(value[0], str):
        return value[0]
    if isinstance(value, str):
        return value
    defaulted.append("homepage")
    return None


def _license_short_name(raw: dict, meta: dict, defaulted: list[str]) -> str:
    for candidate in (raw.get("license"), meta.get("license")):
        if isinstance(candidate, list) and candidate:
            candidate = candidate[0]
        if isinstance(candidate, dict) and isinstance(candidate.get("shortName"), str):
            return candidate["shortName"]
    defaulted.append("license_short_name")
    return UNKNOWN


def _maintainers(value: Any, defaulted: list[str]) -> list[str]:
    if not isinstance(value, list):
        defaulted.append("maintainers")
        return []

    maintainers = []
    for item in value:
        if isinstance(item, str):
            maintainers.append(item)
        elif isinstance(item, dict):
            handle = item.get("name") or item.get("github")
            if isinstance(handle, str):
                maintainers.append(handle)
    if len(maintainers) != len(value):
        defaulted.append("maintainers")
    return maintainers


def _string_list(value: Any, field_name: str, defaulted: list[str]) -> list[str]:
    if not isinstance(value, list):
        defaulted.append(field_name)
        return []

    items = [item for item in value if isinstance(item, str)]
    if len(items) != len(value):
        defaulted.append(field_name)
    return items
