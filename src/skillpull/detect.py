from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from .errors import SkillpullError

logger = logging.getLogger(__name__)

SKILL_FILENAME = "SKILL.md"
SKILLS_SUBDIR = "skills"
MAX_DESCRIPTION_CHARS = 100

# Dependency caches that never hold skills.
SKIP_DIR_NAMES = {"node_modules"}

_FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)
_NAME_RE = re.compile(r"^name:[ \t]*(.+?)[ \t]*$", re.MULTILINE)
_DESCRIPTION_RE = re.compile(r"^description:[ \t]*(.+?)[ \t]*$", re.MULTILINE)


class NoSkillsFound(SkillpullError):
    pass


@dataclass(frozen=True)
class DetectedSkill:
    name: str
    description: str
    path: Path
    relative_path: str

    @property
    def label(self) -> str:
        return f"{self.name} -- {self.description}" if self.description else self.name


def parse_frontmatter(text: str) -> tuple[str, str]:
    m = _FRONTMATTER_RE.match(text)
    if not m:
        return "", ""
    block = m.group(1)
    name_m = _NAME_RE.search(block)
    desc_m = _DESCRIPTION_RE.search(block)
    name = name_m.group(1).strip() if name_m else ""
    description = desc_m.group(1).strip()[:MAX_DESCRIPTION_CHARS] if desc_m else ""
    return name, description


def _read_metadata(skill_md: Path) -> tuple[str, str]:
    try:
        text = skill_md.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("Could not read %s: %s", skill_md, e)
        return "", ""
    return parse_frontmatter(text)


def is_safe_skill_name(name: str) -> bool:
    """A skill name becomes a directory name, so it must be a single path segment."""
    name = name.strip()
    if name in ("", ".", ".."):
        return False
    return not any(c in name for c in ("/", "\\", "\0"))


def _skill_at(skill_dir: Path, relative_path: str) -> DetectedSkill:
    name, description = _read_metadata(skill_dir / SKILL_FILENAME)
    if name and not is_safe_skill_name(name):
        logger.warning("Ignoring unsafe skill name %r in %s", name, skill_dir / SKILL_FILENAME)
        name = ""
    return DetectedSkill(
        name=name or skill_dir.name,
        description=description,
        path=skill_dir,
        relative_path=relative_path,
    )


def _is_candidate_dir(path: Path) -> bool:
    name = path.name
    if name.startswith((".", "_")) or name in SKIP_DIR_NAMES:
        return False
    return path.is_dir()


def _scan(parent: Path, prefix: str) -> list[DetectedSkill]:
    if not parent.is_dir():
        return []
    found: list[DetectedSkill] = []
    for child in sorted(parent.iterdir(), key=lambda p: p.name):
        if not _is_candidate_dir(child):
            continue
        if not (child / SKILL_FILENAME).is_file():
            continue
        rel = f"{prefix}/{child.name}" if prefix else child.name
        found.append(_skill_at(child, rel))
    return found


def detect_skills(repo_root: Path) -> list[DetectedSkill]:
    """
    Find installable skills in an unpacked repository.

    Patterns are tried in order and the first one that yields anything wins:

    1. ``SKILL.md`` at the root: the whole repository is one skill.
    2. ``skills/<name>/SKILL.md``: a collection under ``skills/``.
    3. ``<name>/SKILL.md``: a collection at the root.
    """
    if (repo_root / SKILL_FILENAME).is_file():
        return [_skill_at(repo_root, "")]

    skills = _scan(repo_root / SKILLS_SUBDIR, SKILLS_SUBDIR)
    if skills:
        return skills

    skills = _scan(repo_root, "")
    if skills:
        return skills

    raise NoSkillsFound(
        f"No skills found in {repo_root.name}. Expected {SKILL_FILENAME} at the root or in subdirectories."
    )


def find_skill(detected: list[DetectedSkill], *, name: str, path: str | None) -> DetectedSkill | None:
    for skill in detected:
        if skill.name == name:
            return skill
    if path is not None:
        for skill in detected:
            if skill.relative_path == path:
                return skill
    return None
