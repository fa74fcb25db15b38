from __future__ import annotations

import logging
import time
from typing import Any
from urllib.parse import quote, urlsplit, urlunsplit

import httpx

from ._version import __version__
from .config import DEFAULT_API_URL, DEFAULT_ARCHIVE_TIMEOUT_S, DEFAULT_METADATA_TIMEOUT_S, DEFAULT_WEB_URL
from .errors import SkillpullError

logger = logging.getLogger(__name__)

FALLBACK_BRANCH = "main"
COMMIT_SHA_LENGTH = 12


class DownloadError(SkillpullError):
    pass


class SkillpullHTTPError(DownloadError):
    def __init__(self, url: str, status_code: int) -> None:
        self.url = url
        self.status_code = status_code
        super().__init__(f"HTTP {status_code} from {url}")


def _origin(url: str) -> str | None:
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    return urlunsplit((parts.scheme, parts.netloc, "", "", "")).rstrip("/")


def _segment(value: str) -> str:
    return quote(value, safe="")


class GitHubClient:
    """
    Thin GitHub client covering the three calls needed to pull skills:
    default branch lookup, commit resolution and archive download.

    Metadata calls never fail the caller; they fall back to a placeholder.
    Archive download raises DownloadError with the URL embedded.
    """

    def __init__(
        self,
        *,
        api_url: str = DEFAULT_API_URL,
        web_url: str = DEFAULT_WEB_URL,
        token: str | None = None,
        metadata_timeout_s: float = DEFAULT_METADATA_TIMEOUT_S,
        archive_timeout_s: float = DEFAULT_ARCHIVE_TIMEOUT_S,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.web_url = web_url.rstrip("/")
        self.token = token
        self.metadata_timeout_s = metadata_timeout_s
        self.archive_timeout_s = archive_timeout_s

        self._http = httpx.Client(
            follow_redirects=True,
            headers={"user-agent": f"skillpull/{__version__}"},
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "GitHubClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _headers_for(self, url: str, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = dict(extra or {})
        # Only the API origin gets the token; archive redirects go to other hosts.
        if self.token and _origin(url) == _origin(self.api_url):
            headers["authorization"] = f"Bearer {self.token}"
        return headers

    def _get(self, url: str, *, timeout_s: float, headers: dict[str, str] | None = None) -> httpx.Response:
        try:
            return self._http.get(url, headers=self._headers_for(url, headers), timeout=timeout_s)
        except httpx.TimeoutException as e:
            raise DownloadError(f"Request to {url} timed out after {timeout_s:g}s") from e
        except httpx.HTTPError as e:
            raise DownloadError(f"Request to {url} failed: {e}") from e

    def repo_url(self, owner: str, repo: str) -> str:
        return f"{self.api_url}/repos/{_segment(owner)}/{_segment(repo)}"

    def archive_url(self, owner: str, repo: str, ref: str) -> str:
        return f"{self.web_url}/{_segment(owner)}/{_segment(repo)}/archive/refs/heads/{quote(ref, safe='/')}.tar.gz"

    def default_branch(self, owner: str, repo: str) -> str:
        url = self.repo_url(owner, repo)
        try:
            resp = self._get(
                url,
                timeout_s=self.metadata_timeout_s,
                headers={"accept": "application/vnd.github.v3+json"},
            )
            if resp.is_success:
                data: Any = resp.json()
                branch = data.get("default_branch") if isinstance(data, dict) else None
                if isinstance(branch, str) and branch.strip():
                    return branch.strip()
            logger.debug("No default branch from %s (HTTP %s)", url, resp.status_code)
        except (DownloadError, ValueError) as e:
            logger.debug("Default branch lookup failed for %s: %s", url, e)
        return FALLBACK_BRANCH

    def commit_sha(self, owner: str, repo: str, ref: str) -> str:
        url = f"{self.repo_url(owner, repo)}/commits/{quote(ref, safe='')}"
        try:
            resp = self._get(
                url,
                timeout_s=self.metadata_timeout_s,
                headers={"accept": "application/vnd.github.sha"},
            )
            if resp.is_success:
                sha = resp.text.strip()
                if sha:
                    return sha[:COMMIT_SHA_LENGTH]
            logger.debug("No commit sha from %s (HTTP %s)", url, resp.status_code)
        except DownloadError as e:
            logger.debug("Commit lookup failed for %s: %s", url, e)
        return f"unknown-{int(time.time() * 1000)}"

    def download_archive(self, owner: str, repo: str, ref: str) -> bytes:
        url = self.archive_url(owner, repo, ref)
        resp = self._get(url, timeout_s=self.archive_timeout_s)
        if not resp.is_success:
            raise SkillpullHTTPError(url, resp.status_code)
        return resp.content
