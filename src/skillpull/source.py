from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import unquote

from .errors import SkillpullError

SOURCE_PREFIX = "github:"
DEFAULT_REF = "main"

_WEB_URL_RE = re.compile(r"^https?://github\.com/(.+)$")


class InvalidSourceFormat(SkillpullError):
    pass


@dataclass(frozen=True)
class SourceRef:
    owner: str
    repo: str
    skill_path: str | None = None
    ref: str = ""
    host: str = "github"

    @property
    def lock_source(self) -> str:
        return f"{SOURCE_PREFIX}{self.owner}/{self.repo}"

    @property
    def display_name(self) -> str:
        return f"{self.owner}/{self.repo}"


def normalize_github_url(url: str) -> str:
    """
    Rewrite a github.com web URL into the ``github:`` shorthand.

        https://github.com/o/r                 -> github:o/r
        https://github.com/o/r.git             -> github:o/r
        https://github.com/o/r/tree/dev        -> github:o/r#dev
        https://github.com/o/r/tree/dev/a/b    -> github:o/r/a/b#dev

    Anything that is not a github.com URL is returned unchanged.
    """
    cleaned = url.rstrip("/")
    if cleaned.endswith(".git"):
        cleaned = cleaned[: -len(".git")]

    m = _WEB_URL_RE.match(cleaned)
    if not m:
        return url

    segments = m.group(1).split("/")
    if len(segments) < 2:
        return url

    owner, repo = segments[0], segments[1]
    if len(segments) >= 4 and segments[2] == "tree":
        ref = segments[3]
        skill_path = "/".join(segments[4:])
        result = f"{SOURCE_PREFIX}{owner}/{repo}"
        if skill_path:
            result += f"/{skill_path}"
        return f"{result}#{ref}"

    return f"{SOURCE_PREFIX}{owner}/{repo}"


def parse_source(uri: str) -> SourceRef:
    raw = uri.strip()
    if raw.startswith(("https://github.com/", "http://github.com/")):
        raw = normalize_github_url(raw)

    if not raw.startswith(SOURCE_PREFIX):
        raise InvalidSourceFormat(
            f"Unsupported source format: {uri!r}. Use github:owner/repo[/path][#ref] or https://github.com/owner/repo"
        )

    body = raw[len(SOURCE_PREFIX) :]
    ref = ""
    hash_idx = body.rfind("#")
    if hash_idx != -1:
        ref = unquote(body[hash_idx + 1 :].strip())
        body = body[:hash_idx]

    parts = [unquote(p) for p in body.split("/")]
    if len(parts) < 2 or not parts[0].strip() or not parts[1].strip():
        raise InvalidSourceFormat(f"Invalid GitHub source: {uri!r}. Expected github:owner/repo")

    rest = [p for p in parts[2:] if p]
    skill_path = "/".join(rest) if rest else None
    return SourceRef(owner=parts[0].strip(), repo=parts[1].strip(), skill_path=skill_path, ref=ref)


def format_source(source: SourceRef) -> str:
    uri = source.lock_source
    if source.skill_path:
        uri += f"/{source.skill_path}"
    if source.ref and source.ref != DEFAULT_REF:
        uri += f"#{source.ref}"
    return uri


def source_from_lock(source: str, ref: str) -> SourceRef:
    parsed = parse_source(source)
    return SourceRef(owner=parsed.owner, repo=parsed.repo, skill_path=None, ref=ref)
