from __future__ import annotations


class MirrorError(Exception):
    """Base class for errors raised by gh_mirror."""


class ConfigError(MirrorError):
    """The config file is missing, unreadable or invalid."""


class DestinationError(MirrorError):
    """The destination directory cannot be created."""


class ListingError(MirrorError):
    """Listing repositories for a source failed."""
