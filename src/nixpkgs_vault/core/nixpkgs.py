"""
Nixpkgs acquisition and manifest generation.

These steps run once, before vault generation starts. Any failure here is
fatal for the run and raised as AcquisitionError.
"""

import json
import logging
import os
import re
import subprocess
from pathlib import Path

import requests
from github import Github, GithubException

logger = logging.getLogger(__name__)

DEFAULT_GIT_URL = "https://github.com/NixOS/nixpkgs.git"
DEFAULT_REVISION = "nixos-unstable"
MANIFEST_FILENAME = "packages.json"
MANIFEST_VERSION = 2

_GITHUB_REPO_RE = re.compile(r"github\.com[/:]([\w.-]+)/([\w.-]+?)(?:\.git)?/?$")
_COMMIT_SHA_RE = re.compile(r"^[0-9a-f]{40}$")


class AcquisitionError(Exception):
    """Fetching nixpkgs or generating its manifest failed."""


def tree_url(git_url: str, revision: str) -> str:
    """Browser URL for a revision, e.g. https://github.com/NixOS/nixpkgs/tree/nixos-unstable."""
    return f"{git_url.removesuffix('.git')}/tree/{revision}"


def github_repo_name(git_url: str) -> str | None:
    """Return ``owner/repo`` for a GitHub URL, else None."""
    match = _GITHUB_REPO_RE.search(git_url)
    if not match:
        return None
    return f"{match.group(1)}/{match.group(2)}"


def resolve_revision(git_url: str, ref: str, token: str | None = None) -> str | None:
    """
    Resolve a branch or tag to a commit SHA via the GitHub API.

    Returns None when the URL is not on GitHub or the lookup fails; the
    fetch then follows the ref as-is.
    """
    if _COMMIT_SHA_RE.match(ref):
        return ref

    repo_name = github_repo_name(git_url)
    if not repo_name:
        return None

    token = token or os.environ.get("GITHUB_TOKEN")
    if not token:
        logger.warning("No GITHUB_TOKEN. Revision lookup will be rate-limited.")

    try:
        gh = Github(token) if token else Github()
        sha = gh.get_repo(repo_name).get_commit(ref).sha
    except (GithubException, requests.RequestException) as e:
        logger.warning(f"Could not resolve {ref} on {repo_name}: {e}")
        return None

    logger.info(f"Resolved {repo_name}@{ref} to {sha}")
    return sha


def fetch_nixpkgs(git_url: str, ref: str, rev: str | None = None) -> Path:
    """
    Fetch a nixpkgs tree into the Nix store with ``builtins.fetchGit``.

    Returns:
        The store path of the fetched tree.
    """
    attrs = f'url = "{git_url}"; ref = "{ref}";'
    if rev and rev != ref:
        attrs += f' rev = "{rev}";'
    nix_expr = f"builtins.fetchGit {{ {attrs} }}"

    try:
        result = subprocess.run(
            ["nix-instantiate", "--eval", "--json", "--expr", nix_expr],
            capture_output=True,
            text=True,
        )
    except OSError as e:
        raise AcquisitionError(f"Failed to run nix-instantiate: {e}") from e

    if result.returncode != 0:
        raise AcquisitionError(f"nix-instantiate failed: {result.stderr.strip()}")

    path = result.stdout.strip().strip('"')
    if not path:
        raise AcquisitionError("nix-instantiate returned no store path")

    logger.info(f"Fetched nixpkgs to {path}")
    return Path(path)


def validate_nixpkgs(path: Path) -> bool:
    """Check that the tree looks like a nixpkgs checkout."""
    return (path / "pkgs").is_dir()


def generate_manifest(repo_path: Path, outdir: Path, force: bool = False) -> Path:
    """
    Write ``<outdir>/packages.json`` for every package in the tree.

    The manifest is regenerated only when missing or when ``force`` is set.
    """
    manifest_path = outdir / MANIFEST_FILENAME
    if manifest_path.exists() and not force:
        logger.info(f"Using existing manifest {manifest_path}")
        return manifest_path

    try:
        result = subprocess.run(
            ["nix-env", "-f", str(repo_path), "-qa", "--json", "--meta"],
            capture_output=True,
            text=True,
        )
    except OSError as e:
        raise AcquisitionError(f"Failed to run nix-env: {e}") from e

    if result.returncode != 0:
        raise AcquisitionError(f"nix-env failed: {result.stderr.strip()}")

    try:
        packages = json.loads(result.stdout)
    except json.JSONDecodeError as e:
        raise AcquisitionError(f"nix-env returned invalid JSON: {e}") from e

    try:
        outdir.mkdir(parents=True, exist_ok=True)
        with open(manifest_path, "w") as f:
            json.dump({"version": MANIFEST_VERSION, "packages": packages}, f, indent=2)
    except OSError as e:
        raise AcquisitionError(f"Cannot write manifest {manifest_path}: {e}") from e

    logger.info(f"Wrote manifest with {len(packages)} packages to {manifest_path}")
    return manifest_path
