from __future__ import annotations

import gzip
import logging
import os
import re
import shutil
import tempfile
import zlib
from contextlib import contextmanager
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Iterator, Protocol

from .client import DownloadError, GitHubClient
from .errors import SkillpullError
from .source import SourceRef

logger = logging.getLogger(__name__)

BLOCK_SIZE = 512
TMP_PREFIX = "skillpull-"

_PAX_PATH_RE = re.compile(r"(?:^|\n)\d+ path=([^\n]+)")

_REGULAR_TYPES = {"0", "", "\0"}
_EXTENDED_TYPES = {"x", "g"}


class ExtractError(SkillpullError):
    pass


class RepoRootNotFound(SkillpullError):
    pass


@dataclass(frozen=True)
class FetchedRepo:
    source: SourceRef
    root: Path
    tmp_dir: Path

    def cleanup(self) -> None:
        if self.tmp_dir.exists():
            logger.debug("Removing %s", self.tmp_dir)
            shutil.rmtree(self.tmp_dir, ignore_errors=True)


class RepoFetcher(Protocol):
    def fetch(self, source: SourceRef) -> FetchedRepo:
        ...

    def resolve_commit(self, source: SourceRef) -> str:
        ...


def _padded(size: int) -> int:
    return -(-size // BLOCK_SIZE) * BLOCK_SIZE


def _cstr(field: bytes, *, what: str, offset: int) -> str:
    raw = field.split(b"\0", 1)[0]
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ExtractError(f"Undecodable {what} in tar header at offset {offset}") from e


def _parse_size(field: bytes, *, offset: int) -> int:
    if field and field[0] & 0x80:
        # GNU base-256 encoding for sizes that overflow 11 octal digits.
        value = field[0] & 0x7F
        for b in field[1:]:
            value = (value << 8) | b
        return value
    text = field.replace(b"\0", b" ").strip()
    if not text:
        return 0
    try:
        return int(text.decode("ascii"), 8)
    except (UnicodeDecodeError, ValueError) as e:
        raise ExtractError(f"Invalid size field {field!r} in tar header at offset {offset}") from e


def _target(dest: Path, name: str, *, offset: int) -> Path:
    if name.startswith("/") or os.path.isabs(name):
        raise ExtractError(f"Archive contains an absolute path entry: {name!r}")
    base = dest.resolve()
    target = (dest / name).resolve()
    if target != base and not str(target).startswith(str(base) + os.sep):
        raise ExtractError(f"Archive contains an invalid path entry: {name!r} (offset {offset})")
    return target


def extract_tar(data: bytes, dest: Path) -> None:
    """
    Extract an uncompressed POSIX/UStar tar buffer into ``dest``.

    Only directories and regular files are materialized. PAX ``path=``
    records rename the next entry; links and devices are skipped.
    """
    dest.mkdir(parents=True, exist_ok=True)
    total = len(data)
    offset = 0
    pax_path = ""

    while offset < total:
        if offset + BLOCK_SIZE > total:
            raise ExtractError(f"Truncated tar header at offset {offset} ({total - offset} bytes left)")

        header = data[offset : offset + BLOCK_SIZE]
        if not any(header):
            break

        raw_name = _cstr(header[0:100], what="name", offset=offset)
        size = _parse_size(header[124:136], offset=offset)
        type_flag = chr(header[156])
        prefix = _cstr(header[345:500], what="prefix", offset=offset)

        header_offset = offset
        offset += BLOCK_SIZE
        if offset + size > total:
            raise ExtractError(
                f"Truncated tar entry {raw_name!r} at offset {header_offset}: "
                f"declares {size} bytes, {total - offset} available"
            )
        payload = data[offset : offset + size]
        offset += _padded(size)

        if type_flag in _EXTENDED_TYPES:
            try:
                text = payload.decode("utf-8")
            except UnicodeDecodeError as e:
                raise ExtractError(f"Undecodable PAX header at offset {header_offset}") from e
            m = _PAX_PATH_RE.search(text)
            if m:
                pax_path = m.group(1)
            continue

        name = pax_path or (f"{prefix}/{raw_name}" if prefix else raw_name)
        pax_path = ""
        if not name:
            continue

        if type_flag == "5" or name.endswith("/"):
            _target(dest, name, offset=header_offset).mkdir(parents=True, exist_ok=True)
        elif type_flag in _REGULAR_TYPES:
            target = _target(dest, name, offset=header_offset)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(payload)
        else:
            logger.debug("Skipping tar entry %r (type %r)", name, type_flag)


def gunzip(data: bytes) -> bytes:
    try:
        return gzip.decompress(data)
    except (OSError, EOFError, zlib.error) as e:
        raise ExtractError(f"Could not decompress archive: {e}") from e


def find_repo_root(tmp_dir: Path, repo: str) -> Path:
    prefix = f"{repo}-"
    for child in sorted(tmp_dir.iterdir()):
        if child.is_dir() and child.name.startswith(prefix):
            return child
    raise RepoRootNotFound(f"Could not find extracted repository directory ({prefix}*) in {tmp_dir}")


def fetch_repo(client: GitHubClient, source: SourceRef) -> FetchedRepo:
    if not source.ref:
        source = replace(source, ref=client.default_branch(source.owner, source.repo))
        logger.debug("Resolved default branch for %s: %s", source.display_name, source.ref)

    tmp_dir = Path(tempfile.mkdtemp(prefix=TMP_PREFIX))
    try:
        try:
            archive = client.download_archive(source.owner, source.repo, source.ref)
        except DownloadError as e:
            raise DownloadError(
                f"Failed to download {source.display_name}: {e}. "
                f"Check that the repository {source.display_name!r} exists and branch {source.ref!r} is correct."
            ) from e
        extract_tar(gunzip(archive), tmp_dir)
        root = find_repo_root(tmp_dir, source.repo)
    except Exception:
        shutil.rmtree(tmp_dir, ignore_errors=True)
        raise
    return FetchedRepo(source=source, root=root, tmp_dir=tmp_dir)


@contextmanager
def open_repo(fetcher: RepoFetcher, source: SourceRef) -> Iterator[FetchedRepo]:
    fetched = fetcher.fetch(source)
    try:
        yield fetched
    finally:
        fetched.cleanup()


class GitHubRepoFetcher:
    def __init__(self, client: GitHubClient) -> None:
        self._client = client

    def fetch(self, source: SourceRef) -> FetchedRepo:
        return fetch_repo(self._client, source)

    def resolve_commit(self, source: SourceRef) -> str:
        ref = source.ref or self._client.default_branch(source.owner, source.repo)
        return self._client.commit_sha(source.owner, source.repo, ref)
