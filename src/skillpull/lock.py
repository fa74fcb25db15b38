from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .config import DEFAULT_LOCK_FILENAME
from .errors import SkillpullError

LOCK_VERSION = 1
SOURCE_TYPE_GITHUB = "github"


class LockFileError(SkillpullError):
    pass


@dataclass(frozen=True)
class Provenance:
    source: str
    ref: str
    path: str
    source_type: str = SOURCE_TYPE_GITHUB


@dataclass(frozen=True)
class LockedSkill:
    name: str
    source: str
    source_type: str
    ref: str
    path: str
    installed_at: str
    agents: tuple[str, ...]


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _write_json_atomic(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    tmp.replace(path)


class LockRecord:
    """
    In-memory lock: skill name -> provenance, agent id -> skill names.

    Every name listed under ``agents`` has an entry under ``skills`` and no
    agent is kept with an empty list.
    """

    def __init__(
        self,
        *,
        version: int = LOCK_VERSION,
        skills: dict[str, dict[str, str]] | None = None,
        agents: dict[str, list[str]] | None = None,
    ) -> None:
        self.version = version
        self.skills: dict[str, dict[str, str]] = dict(skills or {})
        self.agents: dict[str, list[str]] = {k: list(v) for k, v in (agents or {}).items()}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "LockRecord":
        version = raw.get("version")
        skills_raw = raw.get("skills")
        agents_raw = raw.get("agents")

        skills: dict[str, dict[str, str]] = {}
        if isinstance(skills_raw, dict):
            for name, item in skills_raw.items():
                if not isinstance(name, str) or not isinstance(item, dict):
                    continue
                skills[name] = {
                    "source": str(item.get("source", "")),
                    "sourceType": str(item.get("sourceType", SOURCE_TYPE_GITHUB)),
                    "ref": str(item.get("ref", "")),
                    "path": str(item.get("path", "")),
                    "installedAt": str(item.get("installedAt", "")),
                }

        agents: dict[str, list[str]] = {}
        if isinstance(agents_raw, dict):
            for agent_id, names in agents_raw.items():
                if not isinstance(agent_id, str) or not isinstance(names, list):
                    continue
                kept = [n for n in dict.fromkeys(names) if isinstance(n, str) and n in skills]
                if kept:
                    agents[agent_id] = kept

        return cls(version=version if isinstance(version, int) else LOCK_VERSION, skills=skills, agents=agents)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "skills": {name: dict(item) for name, item in self.skills.items()},
            "agents": {agent_id: list(names) for agent_id, names in self.agents.items() if names},
        }

    def skill_names(self) -> list[str]:
        return list(self.skills)

    def agents_for_skill(self, name: str) -> list[str]:
        return [agent_id for agent_id, names in self.agents.items() if name in names]

    def add_skill(self, name: str, provenance: Provenance, agent_ids: list[str]) -> None:
        self.skills[name] = {
            "source": provenance.source,
            "sourceType": provenance.source_type,
            "ref": provenance.ref,
            "path": provenance.path,
            "installedAt": _now(),
        }
        for agent_id in agent_ids:
            self.grant(agent_id, name)

    def remove_skill(self, name: str) -> None:
        self.skills.pop(name, None)
        for agent_id in list(self.agents):
            remaining = [n for n in self.agents[agent_id] if n != name]
            if remaining:
                self.agents[agent_id] = remaining
            else:
                del self.agents[agent_id]

    def touch(self, name: str) -> None:
        if name in self.skills:
            self.skills[name]["installedAt"] = _now()

    def grant(self, agent_id: str, name: str) -> None:
        if name not in self.skills:
            raise KeyError(name)
        names = self.agents.setdefault(agent_id, [])
        if name not in names:
            names.append(name)

    def drop_agent(self, agent_id: str) -> bool:
        return self.agents.pop(agent_id, None) is not None

    def list_skills(self) -> list[LockedSkill]:
        out: list[LockedSkill] = []
        for name, item in self.skills.items():
            out.append(
                LockedSkill(
                    name=name,
                    source=item["source"],
                    source_type=item["sourceType"],
                    ref=item["ref"],
                    path=item["path"],
                    installed_at=item["installedAt"],
                    agents=tuple(self.agents_for_skill(name)),
                )
            )
        return out


def lock_path(project_dir: Path, filename: str = DEFAULT_LOCK_FILENAME) -> Path:
    return project_dir / filename


def load_lock(project_dir: Path, filename: str = DEFAULT_LOCK_FILENAME) -> LockRecord:
    path = lock_path(project_dir, filename)
    if not path.exists():
        return LockRecord()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise LockFileError(f"Could not read lock file {path}: {e}") from e
    if not isinstance(raw, dict):
        raise LockFileError(f"Lock file {path} does not contain a JSON object.")
    return LockRecord.from_dict(raw)


def save_lock(project_dir: Path, lock: LockRecord, filename: str = DEFAULT_LOCK_FILENAME) -> Path:
    path = lock_path(project_dir, filename)
    _write_json_atomic(path, lock.to_dict())
    return path
