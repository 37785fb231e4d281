#!/usr/bin/env python3
"""
CLI for gh_mirror.

Commands:
  run   [--config config.json] [--destination DIR]   Mirror all configured sources
  list  [--config config.json] [--destination DIR]   List mirrors on disk

Examples:
  gh-mirror run --config /etc/gh-mirror/config.json
  gh-mirror -v list --destination /srv/git
"""

from __future__ import annotations
import argparse
import dataclasses
import logging
from pathlib import Path
from typing import List, Optional

from .config import Config, load_config
from .core import iter_mirrored_repos
from .errors import ConfigError, DestinationError
from .runner import run

log = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def _load(args: argparse.Namespace) -> Config:
    config = load_config(Path(args.config) if args.config else None)
    if args.destination:
        config = dataclasses.replace(config, destination=Path(args.destination))
    return config


def cmd_run(args: argparse.Namespace) -> int:
    config = _load(args)
    run(config)
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    config = _load(args)
    for repo in iter_mirrored_repos(config.destination):
        print(str(repo))
    return 0


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="gh-mirror", description="Mirror all GitHub repositories of users and organizations as bare clones.")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_run = sub.add_parser("run", help="Mirror-clone or update every repository of every source")
    p_run.add_argument("--config", help="Path to config.json (default: search from the current directory upwards)")
    p_run.add_argument("--destination", help="Override the Destination from the config")
    p_run.set_defaults(func=cmd_run)

    p_list = sub.add_parser("list", help="List mirror repositories under the destination")
    p_list.add_argument("--config", help="Path to config.json (default: search from the current directory upwards)")
    p_list.add_argument("--destination", help="Override the Destination from the config")
    p_list.set_defaults(func=cmd_list)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
    )
    try:
        return args.func(args)
    except ConfigError as e:
        log.error("Failed to load config: %s", e)
    except DestinationError as e:
        log.error("Failed to create destination directory: %s", e)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
