from __future__ import annotations


class SkillpullError(RuntimeError):
    pass


class ConfigError(SkillpullError):
    pass
