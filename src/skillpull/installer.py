from __future__ import annotations

import os
import shutil
from pathlib import Path

from .errors import SkillpullError
from .detect import is_safe_skill_name

BACKUP_SUFFIX = ".skillpull-backup"


class UnsafeSkillPath(SkillpullError):
    pass


def skill_target(project_dir: Path, agent_skills_dir: str, skill_name: str) -> Path:
    skills_dir = project_dir / agent_skills_dir
    base = skills_dir.resolve()
    if not is_safe_skill_name(skill_name) or Path(os.path.normpath(base / skill_name)).parent != base:
        raise UnsafeSkillPath(f"Skill name {skill_name!r} does not name a directory inside {skills_dir}")
    return skills_dir / skill_name


def install_skill_for_agent(project_dir: Path, agent_skills_dir: str, skill_name: str, source_dir: Path) -> Path:
    """Replace ``<project>/<skills dir>/<name>`` with a copy of ``source_dir``."""
    dest = skill_target(project_dir, agent_skills_dir, skill_name)
    dest.parent.mkdir(parents=True, exist_ok=True)

    backup = dest.with_name(dest.name + BACKUP_SUFFIX)
    had_existing = dest.exists()
    if backup.exists():
        shutil.rmtree(backup, ignore_errors=True)
    if had_existing:
        dest.rename(backup)

    try:
        shutil.copytree(source_dir, dest, symlinks=True)
    except Exception:
        if dest.exists():
            shutil.rmtree(dest, ignore_errors=True)
        if had_existing and backup.exists():
            backup.rename(dest)
        raise
    finally:
        if backup.exists():
            shutil.rmtree(backup, ignore_errors=True)
    return dest


def remove_skill_for_agent(project_dir: Path, agent_skills_dir: str, skill_name: str) -> None:
    target = skill_target(project_dir, agent_skills_dir, skill_name)
    if target.is_symlink() or target.is_file():
        target.unlink()
    elif target.exists():
        shutil.rmtree(target)


def skill_exists_for_agent(project_dir: Path, agent_skills_dir: str, skill_name: str) -> bool:
    return skill_target(project_dir, agent_skills_dir, skill_name).exists()
