from __future__ import annotations

from .config import Source


def should_skip(source: Source, remote: str) -> bool:
    """Return True if *remote* does not take part in mirroring for *source*.

    A non-empty include list acts as an allow-list; the exclude list is
    checked afterwards. Entries are compared verbatim against the canonical
    ``https://github.com/<owner>/<repo>.git`` URL, so globs and prefixes are
    not supported.
    """
    if source.include and remote not in source.include:
        return True
    return remote in source.exclude
