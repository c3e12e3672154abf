"""
Derivation Parser.

Parses the JSON printed by ``nix derivation show``:

    {
      "/nix/store/<hash>-hello-2.12.drv": {
        "outputs": {"out": {...}},
        "inputDrvs": {"/nix/store/<hash>-bash-5.2.drv": {...}, ...},
        "inputSrcs": ["/nix/store/<hash>-default-builder.sh"],
        ...
      }
    }
"""

import json

from nixpkgs_vault.models.package import BuildDescription


class DerivationParseError(ValueError):
    """Introspection output is empty, not JSON, or not shaped as expected."""


def parse_derivation_output(stdout: str) -> BuildDescription:
    """
    Parse ``nix derivation show`` output into a BuildDescription.

    Args:
        stdout: Raw standard output of the introspection command.

    Returns:
        BuildDescription for the single derivation in the output.

    Raises:
        DerivationParseError: on empty, malformed or unexpected output.
    """
    if not stdout.strip():
        raise DerivationParseError("empty output")

    try:
        data = json.loads(stdout)
    except json.JSONDecodeError as e:
        raise DerivationParseError(f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise DerivationParseError(f"expected an object, got {type(data).__name__}")
    if not data:
        raise DerivationParseError("no derivation in output")
    if len(data) > 1:
        raise DerivationParseError(f"expected one derivation, got {len(data)}")

    drv_path, drv = next(iter(data.items()))
    if not drv_path or not isinstance(drv, dict):
        raise DerivationParseError(f"malformed derivation entry for {drv_path!r}")

    outputs = drv.get("outputs")
    input_drvs = drv.get("inputDrvs")
    input_srcs = drv.get("inputSrcs")

    if not isinstance(outputs, dict):
        raise DerivationParseError("missing 'outputs' object")
    if not isinstance(input_drvs, dict):
        raise DerivationParseError("missing 'inputDrvs' object")
    if not isinstance(input_srcs, list) or not all(isinstance(s, str) for s in input_srcs):
        raise DerivationParseError("missing 'inputSrcs' array")

    return BuildDescription(
        drv_path=drv_path,
        outputs=list(outputs),
        input_drvs=list(input_drvs),
        input_srcs=input_srcs,
    )
