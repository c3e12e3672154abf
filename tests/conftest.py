"""Shared fixtures: fake ``nix`` executables."""

import stat

import pytest


@pytest.fixture
def make_script(tmp_path):
    """Write an executable shell script into tmp_path and return its path."""

    def _make(name: str, body: str):
        path = tmp_path / name
        path.write_text("#!/bin/sh\n" + body)
        path.chmod(path.stat().st_mode | stat.S_IEXEC)
        return path

    return _make


@pytest.fixture
def fake_nix(make_script):
    """
    A ``nix`` stand-in that prints a derivation for its last argument.

    Packages named ``broken-*`` exit non-zero; ``empty`` prints ``{}``.
    """
    return make_script(
        "nix",
        """for last; do :; done
case "$last" in
  broken-*) echo "error: evaluation aborted for $last" >&2; exit 1 ;;
  empty) echo '{}' ;;
  *) printf '{"/nix/store/00000000000000000000000000000000-%s.drv": {"outputs": {"out": {}}, "inputDrvs": {}, "inputSrcs": []}}' "$last" ;;
esac
""",
    )
