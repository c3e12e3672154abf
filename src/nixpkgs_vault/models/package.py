"""
Package Record Model — one nixpkgs package and its derivation metadata.

A record starts out "manifest-only" (fields copied from packages.json) and
becomes "enriched" once the derivation introspection for it succeeds.
"""

from dataclasses import dataclass, field


NIX_STORE_PREFIX = "/nix/store/"
DRV_SUFFIX = ".drv"
UNKNOWN = "unknown"


def normalize_id(identifier: str) -> str:
    """
    Turn a store path or derivation identifier into a stable document id.

    Strips the store prefix, then the ``.drv`` suffix:

        /nix/store/abc123-hello-2.12.drv -> abc123-hello-2.12

    Every filename and every dependency link goes through this function,
    so a link always matches the filename of the linked document.
    """
    if identifier.startswith(NIX_STORE_PREFIX):
        identifier = identifier[len(NIX_STORE_PREFIX):]
    if identifier.endswith(DRV_SUFFIX):
        identifier = identifier[: -len(DRV_SUFFIX)]
    return identifier


@dataclass
class BuildDescription:
    """Parsed result of a successful derivation introspection."""

    drv_path: str
    outputs: list[str]
    input_drvs: list[str]
    input_srcs: list[str]


@dataclass
class PackageRecord:
    """
    Normalized package metadata plus derivation fields.

    ``available`` holds the negation of the manifest's raw ``meta.available``
    flag; the rendered vault has always shown it this way.
    """

    name: str
    version: str = UNKNOWN
    available: bool = True
    broken: bool = False
    description: str | None = None
    long_description: str | None = None
    homepage: str | None = None
    license_short_name: str = UNKNOWN
    maintainers: list[str] = field(default_factory=list)
    platforms: list[str] = field(default_factory=list)

    # Populated together by enrich()
    drv_path: str = ""
    outputs: list[str] = field(default_factory=list)
    input_srcs: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)

    @property
    def is_enriched(self) -> bool:
        return bool(self.drv_path)

    @property
    def doc_id(self) -> str:
        """Document identifier; falls back to the package name if not enriched."""
        if self.drv_path:
            return normalize_id(self.drv_path)
        return self.name

    def enrich(self, build: BuildDescription) -> None:
        """Attach derivation metadata. All four fields are set at once."""
        if self.is_enriched:
            raise ValueError(f"{self.name} is already enriched")
        if not build.drv_path:
            raise ValueError(f"{self.name}: build description has no derivation path")

        self.outputs = sorted(build.outputs)
        self.input_srcs = list(build.input_srcs)
        self.dependencies = list(build.input_drvs)
        self.drv_path = build.drv_path
