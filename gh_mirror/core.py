#!/usr/bin/env python3
"""
Core utilities for keeping bare mirrors of GitHub repositories on disk.

Layout:
  <destination>/github.com/<owner>/<repo>.git

Examples:
  numpy/numpy     -> destination/github.com/numpy/numpy.git
  torvalds/linux  -> destination/github.com/torvalds/linux.git

Notes:
- Clones use `--mirror`. Existing mirrors are updated with `git remote update --prune`.
- Automatic gc is switched off in every mirror (`gc.auto=0`); housekeeping
  only happens through an explicit repack when a pack file grows past the
  configured size.
- Empty `.gitkeep` files are dropped into `refs/` and `objects/` so that a
  freshly cloned mirror without loose refs never looks empty.
"""

from __future__ import annotations
import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Tuple, List

from .config import MIB

log = logging.getLogger(__name__)

HOST = "github.com"
MARKER = ".gitkeep"
PACK_SUFFIX = ".pack"


@dataclass(frozen=True)
class RepoID:
    host: str
    owner: str
    name: str  # repo name without trailing .git

    @classmethod
    def from_full_name(cls, full_name: str, host: str = HOST) -> "RepoID":
        owner, sep, name = full_name.partition("/")
        if not sep or not owner or name in ("", ".", ".."):
            raise ValueError(f"Cannot parse owner/repo from: {full_name}")
        return cls(host=host, owner=owner, name=name)

    def mirror_dir(self, base_dir: Path) -> Path:
        return base_dir / self.host / self.owner / f"{self.name}.git"


def mirror_path(destination: Path, full_name: str) -> Path:
    return RepoID.from_full_name(full_name).mirror_dir(destination)


def mirror_exists(path: Path) -> bool:
    """
    Return whether *path* exists. Only a missing path counts as absent;
    other stat failures (permissions, I/O) are raised to the caller.
    """
    try:
        os.stat(path)
    except FileNotFoundError:
        return False
    return True


def _run(cmd: List[str], cwd: Optional[Path] = None) -> subprocess.CompletedProcess:
    return subprocess.run(
        cmd,
        cwd=str(cwd) if cwd else None,
        check=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    )


class Git:
    """
    The git operations a mirror run needs. Every method blocks until the
    command finishes and raises CalledProcessError (or OSError for plain
    filesystem work) on failure.
    """

    def mirror_clone(self, url: str, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        _run(["git", "clone", "--mirror", url, str(path)])

    def set_config(self, path: Path, key: str, value: str) -> None:
        _run(["git", "config", key, value], cwd=path)

    def touch_markers(self, path: Path) -> None:
        for sub in ("refs", "objects"):
            (path / sub / MARKER).touch()

    def repack(self, path: Path, max_pack_size: int) -> None:
        size = f"{max_pack_size // MIB}m"
        _run(["git", "repack", f"--max-pack-size={size}", "-A", "-d"], cwd=path)

    def update_mirror(self, path: Path, prune: bool = True) -> None:
        cmd = ["git", "remote", "update"]
        if prune:
            cmd.append("--prune")
        _run(cmd, cwd=path)

    def remove(self, path: Path) -> None:
        shutil.rmtree(path, ignore_errors=True)


def _raise(err: OSError) -> None:
    raise err


def scan_packs(path: Path) -> Tuple[int, int]:
    """
    Walk the objects directory of the mirror at *path*.
    Returns (size of the largest *.pack file in bytes, number of files visited).
    """
    largest = 0
    visited = 0
    for root, _dirs, files in os.walk(path / "objects", onerror=_raise):
        for name in files:
            visited += 1
            if name.endswith(PACK_SUFFIX):
                largest = max(largest, os.stat(os.path.join(root, name)).st_size)
    return largest, visited


def needs_repack(path: Path, threshold: int) -> bool:
    """True when the largest pack file under *path* is at least *threshold* bytes."""
    largest, visited = scan_packs(path)
    log.debug("%s: largest pack %d bytes, %d object files", path, largest, visited)
    return largest >= threshold


def is_git_mirror_dir(path: Path) -> bool:
    """A bare mirror has HEAD, config and objects/ directly inside it."""
    return (
        path.is_dir()
        and (path / "HEAD").is_file()
        and (path / "config").is_file()
        and (path / "objects").is_dir()
    )


def iter_mirrored_repos(destination: Path) -> Iterator[Path]:
    """
    Yield the mirrors laid out as <destination>/<host>/<owner>/<repo>.git,
    sorted by path.
    """
    if not destination.is_dir():
        return
    for p in sorted(destination.glob("*/*/*.git")):
        if is_git_mirror_dir(p):
            yield p
