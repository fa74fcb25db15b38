from __future__ import annotations

import json
import os
import stat
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from platformdirs import user_config_path

from .errors import ConfigError

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_WEB_URL = "https://github.com"
DEFAULT_METADATA_TIMEOUT_S = 15.0
DEFAULT_ARCHIVE_TIMEOUT_S = 60.0
DEFAULT_MANIFEST_FILENAME = ".skillpull.json"
DEFAULT_LOCK_FILENAME = "remote-skills-lock.json"


@dataclass(frozen=True)
class Config:
    github_token: str | None = None
    api_url: str = DEFAULT_API_URL
    web_url: str = DEFAULT_WEB_URL
    metadata_timeout_s: float = DEFAULT_METADATA_TIMEOUT_S
    archive_timeout_s: float = DEFAULT_ARCHIVE_TIMEOUT_S
    manifest_filename: str = DEFAULT_MANIFEST_FILENAME
    lock_filename: str = DEFAULT_LOCK_FILENAME


def config_path(path_override: str | Path | None = None) -> Path:
    if path_override is not None:
        return Path(path_override).expanduser()
    if env := os.getenv("SKILLPULL_CONFIG_PATH"):
        return Path(env).expanduser()
    return user_config_path("skillpull") / "config.json"


def load_config(path_override: str | Path | None = None) -> Config:
    path = config_path(path_override)
    if not path.exists():
        return Config()

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ConfigError(f"Could not read config file {path}: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {path} does not contain a JSON object.")

    allowed = {f.name for f in Config.__dataclass_fields__.values()}  # type: ignore[attr-defined]
    filtered: dict[str, Any] = {k: v for k, v in raw.items() if k in allowed}
    return Config(**filtered)  # type: ignore[arg-type]


def save_config(cfg: Config, path_override: str | Path | None = None) -> Path:
    path = config_path(path_override)
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(asdict(cfg), indent=2, sort_keys=True) + "\n", encoding="utf-8")
    tmp.replace(path)

    # The file may hold a GitHub token.
    try:
        os.chmod(path, stat.S_IRUSR | stat.S_IWUSR)
    except OSError:
        pass

    return path


def redact_token(token: str | None) -> str | None:
    if not token:
        return token
    if len(token) <= 10:
        return token[:2] + "..." + token[-2:]
    return token[:6] + "..." + token[-4:]
