from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from .archive import RepoFetcher, open_repo
from .config import DEFAULT_LOCK_FILENAME
from .errors import SkillpullError
from .detect import DetectedSkill, detect_skills, find_skill
from .installer import install_skill_for_agent, remove_skill_for_agent, skill_exists_for_agent
from .lock import LockedSkill, LockRecord, Provenance, load_lock, lock_path, save_lock
from .manifest import Agent
from .source import SourceRef, parse_source, source_from_lock

logger = logging.getLogger(__name__)

Selector = Callable[[list[DetectedSkill]], list[DetectedSkill]]
GroupKey = tuple[str, str]


class SkillNotFound(SkillpullError):
    pass


class NoAgentsConfigured(SkillpullError):
    pass


@dataclass(frozen=True)
class AddResult:
    source: str
    ref: str
    commit: str
    installed: tuple[str, ...]
    agents: tuple[str, ...]
    lock_path: Path


@dataclass(frozen=True)
class RemoveResult:
    removed: tuple[str, ...]
    agents: tuple[str, ...]
    warnings: tuple[str, ...]
    lock_path: Path


@dataclass(frozen=True)
class UpdateResult:
    updated: tuple[str, ...]
    skipped: tuple[str, ...]
    warnings: tuple[str, ...]
    failures: tuple[str, ...]
    lock_path: Path


@dataclass(frozen=True)
class SyncResult:
    installed: tuple[tuple[str, str], ...]  # (skill, agent id)
    dropped_agents: tuple[str, ...]
    warnings: tuple[str, ...]
    failures: tuple[str, ...]
    lock_path: Path

    @property
    def in_sync(self) -> bool:
        return not self.installed and not self.dropped_agents and not self.failures


def _group_label(key: GroupKey) -> str:
    source, ref = key
    return f"{source}#{ref}" if ref else source


def _select_all(detected: list[DetectedSkill]) -> list[DetectedSkill]:
    return list(detected)


class RemoteSkillManager:
    def __init__(
        self,
        *,
        project_dir: Path,
        agents: list[Agent],
        fetcher: RepoFetcher,
        lock_filename: str = DEFAULT_LOCK_FILENAME,
    ) -> None:
        self.project_dir = project_dir.expanduser().resolve()
        self.agents = list(agents)
        self.fetcher = fetcher
        self.lock_filename = lock_filename

    @property
    def lock_path(self) -> Path:
        return lock_path(self.project_dir, self.lock_filename)

    def _load(self) -> LockRecord:
        return load_lock(self.project_dir, self.lock_filename)

    def _save(self, lock: LockRecord) -> Path:
        return save_lock(self.project_dir, lock, self.lock_filename)

    def _require_agents(self) -> list[Agent]:
        if not self.agents:
            raise NoAgentsConfigured("No agents configured. Declare agents with an id and skillsDir in the manifest.")
        return self.agents

    def _agent_map(self) -> dict[str, Agent]:
        return {agent.id: agent for agent in self.agents}

    def _install(self, agent: Agent, name: str, skill: DetectedSkill) -> None:
        install_skill_for_agent(self.project_dir, agent.skills_dir, name, skill.path)
        logger.debug("Installed %s for %s from %s", name, agent.id, skill.path)

    def _known_names(self, lock: LockRecord, names: list[str]) -> tuple[list[str], list[str]]:
        requested = list(dict.fromkeys(names))
        known = [n for n in requested if n in lock.skills]
        missing = [n for n in requested if n not in lock.skills]
        if requested and not known:
            raise SkillNotFound(f"Remote skill not found: {', '.join(missing)}")
        return known, missing

    def _choose(self, source: SourceRef, detected: list[DetectedSkill], select: Selector | None) -> list[DetectedSkill]:
        if source.skill_path:
            for skill in detected:
                if skill.relative_path == source.skill_path or skill.name == source.skill_path:
                    return [skill]
            available = ", ".join(f"{s.name} ({s.relative_path or 'root'})" for s in detected)
            raise SkillNotFound(
                f"Skill {source.skill_path!r} not found in {source.display_name}. Available skills: {available}"
            )
        if len(detected) == 1:
            return list(detected)
        return (select or _select_all)(detected)

    def add(self, source: str, *, select: Selector | None = None) -> AddResult:
        agents = self._require_agents()
        parsed = parse_source(source)
        lock = self._load()

        with open_repo(self.fetcher, parsed) as fetched:
            resolved = fetched.source
            chosen = self._choose(resolved, detect_skills(fetched.root), select)
            if not chosen:
                return AddResult(
                    source=resolved.lock_source,
                    ref=resolved.ref,
                    commit="",
                    installed=(),
                    agents=(),
                    lock_path=self.lock_path,
                )

            commit = self.fetcher.resolve_commit(resolved)
            agent_ids = [agent.id for agent in agents]
            installed: list[str] = []
            for skill in chosen:
                for agent in agents:
                    self._install(agent, skill.name, skill)
                provenance = Provenance(source=resolved.lock_source, ref=resolved.ref, path=skill.relative_path)
                lock.add_skill(skill.name, provenance, agent_ids)
                installed.append(skill.name)

        path = self._save(lock)
        return AddResult(
            source=resolved.lock_source,
            ref=resolved.ref,
            commit=commit,
            installed=tuple(installed),
            agents=tuple(agent_ids),
            lock_path=path,
        )

    def remove(self, names: list[str]) -> RemoveResult:
        self._require_agents()
        if not names:
            raise SkillNotFound("No skill names given.")
        lock = self._load()
        known, missing = self._known_names(lock, names)
        warnings = [f"Remote skill not found: {name}" for name in missing]

        by_id = self._agent_map()
        affected: list[str] = []
        for name in known:
            for agent_id in lock.agents_for_skill(name):
                agent = by_id.get(agent_id)
                if agent is None:
                    warnings.append(f"{name}: agent {agent_id!r} is not in the manifest, files left in place")
                    continue
                remove_skill_for_agent(self.project_dir, agent.skills_dir, name)
                if agent_id not in affected:
                    affected.append(agent_id)
            lock.remove_skill(name)

        path = self._save(lock)
        return RemoveResult(removed=tuple(known), agents=tuple(affected), warnings=tuple(warnings), lock_path=path)

    def list_skills(self) -> list[LockedSkill]:
        return self._load().list_skills()

    def update(self, names: list[str] | None = None) -> UpdateResult:
        self._require_agents()
        lock = self._load()
        if names is None:
            known, missing = lock.skill_names(), []
        else:
            known, missing = self._known_names(lock, names)
        warnings = [f"Remote skill not found: {name}" for name in missing]

        groups: dict[GroupKey, list[str]] = {}
        for name in known:
            item = lock.skills[name]
            groups.setdefault((item["source"], item["ref"]), []).append(name)

        by_id = self._agent_map()
        updated: list[str] = []
        skipped: list[str] = []
        failures: list[str] = []

        for key, group_names in groups.items():
            source, ref = key
            try:
                with open_repo(self.fetcher, source_from_lock(source, ref)) as fetched:
                    detected = detect_skills(fetched.root)
                    for name in group_names:
                        skill = find_skill(detected, name=name, path=lock.skills[name]["path"])
                        if skill is None:
                            warnings.append(f"{name}: not found in updated {_group_label(key)}, skipping")
                            skipped.append(name)
                            continue
                        for agent_id in lock.agents_for_skill(name):
                            agent = by_id.get(agent_id)
                            if agent is None:
                                warnings.append(f"{name}: agent {agent_id!r} is not in the manifest, not reinstalled")
                                continue
                            self._install(agent, name, skill)
                        lock.touch(name)
                        updated.append(name)
            except (SkillpullError, OSError) as e:
                logger.debug("Update of %s failed", _group_label(key), exc_info=True)
                failures.append(f"{_group_label(key)}: {e}")

        path = self._save(lock)
        return UpdateResult(
            updated=tuple(updated),
            skipped=tuple(skipped),
            warnings=tuple(warnings),
            failures=tuple(failures),
            lock_path=path,
        )

    def sync(self) -> SyncResult:
        agents = self._require_agents()
        lock = self._load()
        all_names = lock.skill_names()

        # Disk state decides what is missing, not the agents map.
        pending: dict[GroupKey, dict[str, list[Agent]]] = {}
        for name in all_names:
            item = lock.skills[name]
            for agent in agents:
                if skill_exists_for_agent(self.project_dir, agent.skills_dir, name):
                    continue
                group = pending.setdefault((item["source"], item["ref"]), {})
                group.setdefault(name, []).append(agent)

        installed: list[tuple[str, str]] = []
        warnings: list[str] = []
        failures: list[str] = []

        for key, group in pending.items():
            source, ref = key
            try:
                with open_repo(self.fetcher, source_from_lock(source, ref)) as fetched:
                    detected = detect_skills(fetched.root)
                    for name, targets in group.items():
                        skill = find_skill(detected, name=name, path=lock.skills[name]["path"])
                        if skill is None:
                            warnings.append(f"{name}: not found in {_group_label(key)}, skipping")
                            continue
                        for agent in targets:
                            self._install(agent, name, skill)
                            lock.grant(agent.id, name)
                            installed.append((name, agent.id))
            except (SkillpullError, OSError) as e:
                logger.debug("Sync of %s failed", _group_label(key), exc_info=True)
                failures.append(f"{_group_label(key)}: {e}")

        for agent in agents:
            for name in all_names:
                lock.grant(agent.id, name)

        declared = {agent.id for agent in agents}
        dropped: list[str] = []
        for agent_id in list(lock.agents):
            if agent_id not in declared:
                # Its skills dir is unknown now, so its files stay on disk.
                lock.drop_agent(agent_id)
                dropped.append(agent_id)

        path = self._save(lock)
        return SyncResult(
            installed=tuple(installed),
            dropped_agents=tuple(dropped),
            warnings=tuple(warnings),
            failures=tuple(failures),
            lock_path=path,
        )
