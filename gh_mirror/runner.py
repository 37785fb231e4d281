#!/usr/bin/env python3
"""
The mirror run: for each source, list its repositories and clone, update or
skip each one, keeping a Stat of outcomes per source.

Per repository exactly one Outcome is produced. Failures never leave this
module; they are logged, counted, and the run moves on. The repository is
tried again (from scratch, or incrementally) on the next run.
"""

from __future__ import annotations
import enum
import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote

import requests

from .config import Config, Source
from .core import Git, mirror_exists, mirror_path, needs_repack
from .errors import DestinationError, ListingError
from .filters import should_skip
from .github import Repo, list_repos, remote_url, transfer_url

log = logging.getLogger(__name__)

GC_AUTO = ("gc.auto", "0")


class Outcome(enum.Enum):
    SKIPPED = "skipped"
    MIRRORED = "mirrored"
    UPDATED = "updated"
    FAILED = "failed"
    FAILED_MIRROR = "failed_mirror"
    FAILED_UPDATE = "failed_update"


@dataclass
class Stat:
    source: Source
    repos: List[Repo] = field(default_factory=list)
    skipped: int = 0
    mirrored: int = 0
    updated: int = 0
    failed: int = 0
    failed_mirror: int = 0
    failed_update: int = 0
    error: Optional[str] = None

    def record(self, outcome: Outcome) -> None:
        name = outcome.value
        setattr(self, name, getattr(self, name) + 1)

    def total(self) -> int:
        return sum(getattr(self, o.value) for o in Outcome)

    def summary(self) -> str:
        return (
            f"Source [{self.source.username}] stats: repos:{len(self.repos)} "
            f"skipped:{self.skipped} mirrored:{self.mirrored} updated:{self.updated} "
            f"failed:{self.failed} failed_mirror:{self.failed_mirror} "
            f"failed_update:{self.failed_update}"
        )


def _describe(err: Exception, source: Source) -> str:
    if isinstance(err, subprocess.CalledProcessError) and err.stderr:
        msg = err.stderr.strip()
    else:
        msg = str(err)
    if source.token:
        for secret in (source.token, quote(source.token, safe="")):
            msg = msg.replace(secret, "***")
    return msg


def _maybe_repack(path: Path, config: Config, git: Git) -> None:
    if needs_repack(path, config.max_pack_size):
        log.info("Repacking [%s] with max pack size %d bytes", path, config.max_pack_size)
        git.repack(path, config.max_pack_size)


def _clone(source: Source, repo: Repo, local: Path, config: Config, git: Git) -> Outcome:
    remote = remote_url(repo)
    log.info("Mirroring [%s] -> [%s]", remote, local)
    steps = [
        ("clone", lambda: git.mirror_clone(transfer_url(repo, source), local)),
        ("config", lambda: git.set_config(local, *GC_AUTO)),
        ("touch", lambda: git.touch_markers(local)),
        ("repack", lambda: _maybe_repack(local, config, git)),
        ("update", lambda: git.update_mirror(local)),
    ]
    for step, action in steps:
        try:
            action()
        except (subprocess.CalledProcessError, OSError) as e:
            log.error("Failed mirror [%s] -> [%s]: %s error: %s", remote, local, step, _describe(e, source))
            git.remove(local)
            return Outcome.FAILED_MIRROR
    log.info("Successfully mirrored [%s] -> [%s]", remote, local)
    return Outcome.MIRRORED


def _update(source: Source, repo: Repo, local: Path, config: Config, git: Git) -> Outcome:
    remote = remote_url(repo)
    log.info("Updating [%s] -> [%s]", remote, local)
    steps = [
        ("config", lambda: git.set_config(local, *GC_AUTO)),
        ("update", lambda: git.update_mirror(local, prune=True)),
        ("repack", lambda: _maybe_repack(local, config, git)),
    ]
    for step, action in steps:
        try:
            action()
        except (subprocess.CalledProcessError, OSError) as e:
            log.error("Failed update [%s] -> [%s]: %s error: %s", remote, local, step, _describe(e, source))
            return Outcome.FAILED_UPDATE
    log.info("Successfully updated [%s] -> [%s]", remote, local)
    return Outcome.UPDATED


def process_repo(source: Source, repo: Repo, config: Config, git: Git) -> Outcome:
    """Skip, clone or update a single repository and return what happened."""
    remote = remote_url(repo)
    if should_skip(source, remote):
        log.debug("Skipping [%s]", remote)
        return Outcome.SKIPPED

    try:
        local = mirror_path(config.destination, repo.full_name)
        present = mirror_exists(local)
    except (OSError, ValueError) as e:
        log.error("Failed to stat local mirror for [%s]: %s", remote, e)
        return Outcome.FAILED

    if present:
        return _update(source, repo, local, config, git)
    return _clone(source, repo, local, config, git)


def mirror_source(
    source: Source,
    config: Config,
    git: Git,
    session: Optional[requests.Session] = None,
) -> Stat:
    stat = Stat(source=source)
    try:
        stat.repos = list_repos(source, session=session)
    except ListingError as e:
        stat.error = _describe(e, source)
        log.warning("Failed to get source [%s] repos: %s", source.username, stat.error)
        return stat

    log.info("Found %d repos for source [%s]", len(stat.repos), source.username)
    for repo in stat.repos:
        stat.record(process_repo(source, repo, config, git))
    return stat


def ensure_destination(destination: Path) -> None:
    try:
        destination.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DestinationError(f"cannot create destination {destination}: {e}") from e


def run(
    config: Config,
    git: Optional[Git] = None,
    session: Optional[requests.Session] = None,
) -> List[Stat]:
    """
    Mirror every configured source into config.destination, one repository
    at a time. Raises DestinationError if the destination cannot be created;
    everything else is reported through the returned stats and the log.
    """
    ensure_destination(config.destination)
    git = Git() if git is None else git
    if session is None:
        with requests.Session() as session:
            return _run_sources(config, git, session)
    return _run_sources(config, git, session)


def _run_sources(config: Config, git: Git, session: requests.Session) -> List[Stat]:
    stats = [mirror_source(source, config, git, session) for source in config.sources]
    for stat in stats:
        log.info(stat.summary())
    return stats
