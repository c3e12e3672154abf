"""
Derivation Introspection — queries Nix for a package's build description.

Each call spawns one independent ``nix derivation show`` process, so any
number of workers may introspect concurrently. Every failure mode (timeout,
non-zero exit, missing binary, unexpected output) surfaces as an
IntrospectionError; nothing is retried.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from nixpkgs_vault.models.package import BuildDescription
from nixpkgs_vault.parsers.derivation import DerivationParseError, parse_derivation_output

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class IntrospectionError(Exception):
    """Soft, per-package failure to obtain a build description."""


@runtime_checkable
class Introspector(Protocol):
    """Anything that can produce a BuildDescription for a package name."""

    async def introspect(self, name: str) -> BuildDescription:
        """Return the build description, or raise IntrospectionError."""
        ...


class NixDerivationIntrospector:
    """
    Runs ``nix derivation show --file <nixpkgs> <attr>`` for each package.

    Args:
        repo_path: Local nixpkgs checkout (a store path from fetchGit).
        timeout: Hard limit in seconds for one query.
        nix_bin: The ``nix`` executable to run.
    """

    def __init__(self, repo_path: Path, timeout: float = DEFAULT_TIMEOUT, nix_bin: str = "nix"):
        self.repo_path = repo_path
        self.timeout = timeout
        self.nix_bin = nix_bin

    def command(self, name: str) -> list[str]:
        return [
            self.nix_bin,
            "--extra-experimental-features",
            "nix-command",
            "derivation",
            "show",
            "--file",
            str(self.repo_path),
            name,
        ]

    async def introspect(self, name: str) -> BuildDescription:
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.command(name),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise IntrospectionError(f"cannot run {self.nix_bin}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()
            raise IntrospectionError(f"timed out after {self.timeout:.0f}s") from None

        if proc.returncode != 0:
            message = stderr.decode(errors="replace").strip().splitlines()
            detail = message[-1] if message else "no error output"
            raise IntrospectionError(f"exit code {proc.returncode}: {detail}")

        try:
            build = parse_derivation_output(stdout.decode(errors="replace"))
        except DerivationParseError as e:
            raise IntrospectionError(str(e)) from e

        logger.debug(
            f"[INTROSPECT] {name}: {build.drv_path} "
            f"({len(build.input_drvs)} deps, {len(build.input_srcs)} srcs)"
        )
        return build
