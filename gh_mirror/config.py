from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .errors import ConfigError

CONFIG_FILENAME = "config.json"

MIB = 1024 * 1024
DEFAULT_MAX_PACK_SIZE = 95 * MIB
MIN_MAX_PACK_SIZE = MIB


@dataclass(frozen=True)
class Source:
    username: str
    token: str
    organization: bool = False
    include: Tuple[str, ...] = ()
    exclude: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Config:
    destination: Path
    sources: List[Source] = field(default_factory=list)
    max_pack_size: int = DEFAULT_MAX_PACK_SIZE


def effective_max_pack_size(value: Optional[int]) -> int:
    """Return the repack threshold for a configured *value*.

    Unset means the 95 MiB default; anything under 1 MiB is raised to 1 MiB.
    There is no way to switch repacking off: ``0`` is a 1 MiB threshold, so
    every mirror with a pack of 1 MiB or more is repacked on every run.
    """
    if value is None:
        return DEFAULT_MAX_PACK_SIZE
    return max(int(value), MIN_MAX_PACK_SIZE)


def config_path(base_dir: Path) -> Path:
    """Return the path to the config file inside *base_dir*."""
    return base_dir / CONFIG_FILENAME


def find_base_dir(start: Optional[Path] = None) -> Optional[Path]:
    """Search upwards from *start* (or CWD) for the config file.

    Returns the directory containing the config, or ``None`` if not found.
    """
    current = start or Path.cwd()
    for path in [current, *current.parents]:
        if config_path(path).exists():
            return path
    return None


def _string_list(raw: Dict[str, Any], key: str, where: str) -> Tuple[str, ...]:
    value = raw.get(key) or []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{where}: {key} must be a list of URLs")
    return tuple(value)


def _parse_source(raw: Any, index: int) -> Source:
    where = f"Sources[{index}]"
    if not isinstance(raw, dict):
        raise ConfigError(f"{where}: expected an object")
    username = raw.get("Username")
    token = raw.get("Token")
    if not isinstance(username, str) or not username:
        raise ConfigError(f"{where}: Username is required")
    if not isinstance(token, str):
        raise ConfigError(f"{where}: Token must be a string")
    return Source(
        username=username,
        token=token,
        organization=bool(raw.get("Organization", False)),
        include=_string_list(raw, "Include", where),
        exclude=_string_list(raw, "Exclude", where),
    )


def parse_config(data: Any) -> Config:
    """Build a Config from the decoded JSON document."""
    if not isinstance(data, dict):
        raise ConfigError("config root must be a JSON object")

    destination = data.get("Destination")
    if not isinstance(destination, str) or not destination:
        raise ConfigError("Destination is required")

    sources = data.get("Sources") or []
    if not isinstance(sources, list):
        raise ConfigError("Sources must be a list")

    max_pack_size = data.get("MaxPackSize")
    if max_pack_size is not None and (
        isinstance(max_pack_size, bool) or not isinstance(max_pack_size, int)
    ):
        raise ConfigError("MaxPackSize must be an integer number of bytes")

    return Config(
        destination=Path(destination).expanduser(),
        sources=[_parse_source(s, i) for i, s in enumerate(sources)],
        max_pack_size=effective_max_pack_size(max_pack_size),
    )


def load_config(path: Optional[Path] = None) -> Config:
    """Load configuration from *path*.

    Without an explicit path, ``config.json`` is looked up from the current
    directory upwards.
    """
    if path is None:
        base_dir = find_base_dir()
        if base_dir is None:
            raise ConfigError(f"{CONFIG_FILENAME} not found in {Path.cwd()} or its parents")
        path = config_path(base_dir)

    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"cannot read {path}: {e}") from e
    try:
        data = json.loads(text)
    except ValueError as e:
        raise ConfigError(f"cannot parse {path}: {e}") from e
    return parse_config(data)
