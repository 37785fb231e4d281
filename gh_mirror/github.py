#!/usr/bin/env python3
"""
Listing of GitHub repositories for a configured source.

A user source lists ``/user/repos`` (everything the token can see), an
organization source lists ``/orgs/<name>/repos``. Pages are requested with
``per_page=100`` starting at page 1 until GitHub returns an empty array.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, List, Optional
from urllib.parse import quote

import requests

from .config import Source
from .errors import ListingError

log = logging.getLogger(__name__)

API_BASE = "https://api.github.com"
API_VERSION = "2022-11-28"
PER_PAGE = 100
REQUEST_TIMEOUT = 60

GITHUB_URL = "https://github.com"


@dataclass(frozen=True)
class Repo:
    name: str
    full_name: str  # owner/name
    owner: str
    private: bool = False

    @classmethod
    def from_json(cls, data: Any) -> "Repo":
        try:
            return cls(
                name=data["name"],
                full_name=data["full_name"],
                owner=data["owner"]["login"],
                private=bool(data.get("private", False)),
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise ListingError(f"malformed repository entry: {e!r}") from e


def repos_url(source: Source) -> str:
    if source.organization:
        return f"{API_BASE}/orgs/{quote(source.username, safe='')}/repos"
    return f"{API_BASE}/user/repos"


def api_headers(token: str) -> dict:
    return {
        "Authorization": f"Bearer {token}",
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": API_VERSION,
    }


def remote_url(repo: Repo) -> str:
    """Canonical clone URL, used for include/exclude matching and logging."""
    return f"{GITHUB_URL}/{repo.full_name}.git"


def transfer_url(repo: Repo, source: Source) -> str:
    """
    URL handed to ``git clone``. Private repositories carry the source's
    credentials in the authority part; public ones are fetched anonymously.
    """
    remote = remote_url(repo)
    if not repo.private:
        return remote
    userinfo = f"{quote(source.username, safe='')}:{quote(source.token, safe='')}"
    return remote.replace("https://", f"https://{userinfo}@", 1)


def get_repo_page(
    source: Source,
    page: int,
    session: requests.Session,
    per_page: int = PER_PAGE,
) -> List[Repo]:
    """Fetch a single page of repositories for *source*."""
    url = repos_url(source)
    log.debug("Fetching %s page=%d per_page=%d", url, page, per_page)
    try:
        r = session.get(
            url,
            headers=api_headers(source.token),
            params={"page": page, "per_page": per_page},
            timeout=REQUEST_TIMEOUT,
        )
        r.raise_for_status()
        data = r.json()
    except requests.RequestException as e:
        raise ListingError(f"failed to fetch {url} page {page}: {e}") from e
    except ValueError as e:
        raise ListingError(f"cannot decode {url} page {page}: {e}") from e

    if not isinstance(data, list):
        raise ListingError(f"unexpected response from {url} page {page}: expected a JSON array")
    return [Repo.from_json(item) for item in data]


def list_repos(source: Source, session: Optional[requests.Session] = None) -> List[Repo]:
    """
    Return every repository visible to *source*, walking pages until an
    empty one comes back.
    """
    if session is None:
        with requests.Session() as session:
            return list_repos(source, session)

    repos: List[Repo] = []
    page = 1
    while True:
        page_repos = get_repo_page(source, page, session)
        if not page_repos:
            break
        repos.extend(page_repos)
        page += 1
    return repos
