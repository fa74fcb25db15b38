from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from .config import DEFAULT_MANIFEST_FILENAME
from .errors import SkillpullError


class ManifestError(SkillpullError):
    pass


@dataclass(frozen=True)
class Agent:
    id: str
    skills_dir: str


def load_agents(project_dir: Path, filename: str = DEFAULT_MANIFEST_FILENAME) -> list[Agent]:
    """Agents declared in the project manifest; an absent manifest declares none."""
    path = project_dir / filename
    if not path.exists():
        return []
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ManifestError(f"Could not read manifest {path}: {e}") from e
    if not isinstance(raw, dict):
        raise ManifestError(f"Manifest {path} does not contain a JSON object.")

    entries = raw.get("agents")
    if not isinstance(entries, list):
        return []

    agents: list[Agent] = []
    seen: set[str] = set()
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        agent_id = entry.get("id")
        skills_dir = entry.get("skillsDir")
        if not isinstance(agent_id, str) or not agent_id.strip():
            continue
        if not isinstance(skills_dir, str) or not skills_dir.strip():
            continue
        agent_id = agent_id.strip()
        if agent_id in seen:
            continue
        seen.add(agent_id)
        agents.append(Agent(id=agent_id, skills_dir=skills_dir.strip()))
    return agents
