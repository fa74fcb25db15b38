from ._version import __version__
from .archive import ExtractError, FetchedRepo, GitHubRepoFetcher, RepoRootNotFound, extract_tar, fetch_repo, open_repo
from .client import DownloadError, GitHubClient, SkillpullHTTPError
from .detect import DetectedSkill, NoSkillsFound, detect_skills
from .errors import ConfigError, SkillpullError
from .local_skills import NoAgentsConfigured, RemoteSkillManager, SkillNotFound
from .lock import LockRecord, Provenance, load_lock, save_lock
from .manifest import Agent, load_agents
from .source import InvalidSourceFormat, SourceRef, format_source, parse_source

__all__ = [
    "__version__",
    "Agent",
    "ConfigError",
    "DetectedSkill",
    "DownloadError",
    "ExtractError",
    "FetchedRepo",
    "GitHubClient",
    "GitHubRepoFetcher",
    "InvalidSourceFormat",
    "LockRecord",
    "NoAgentsConfigured",
    "NoSkillsFound",
    "Provenance",
    "RemoteSkillManager",
    "RepoRootNotFound",
    "SkillNotFound",
    "SkillpullError",
    "SkillpullHTTPError",
    "SourceRef",
    "detect_skills",
    "extract_tar",
    "fetch_repo",
    "format_source",
    "load_agents",
    "load_lock",
    "open_repo",
    "parse_source",
    "save_lock",
]
