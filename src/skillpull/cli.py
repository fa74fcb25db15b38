from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import textwrap
from dataclasses import asdict, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ._version import __version__
from .archive import GitHubRepoFetcher
from .client import GitHubClient, SkillpullHTTPError
from .config import Config, config_path, load_config, redact_token, save_config
from .detect import DetectedSkill
from .errors import SkillpullError
from .local_skills import RemoteSkillManager
from .lock import LockedSkill
from .manifest import load_agents
from .prompt import select_multiple, select_one


def _print_table(rows: list[list[str]]) -> None:
    if not rows:
        return
    widths = [0] * len(rows[0])
    for r in rows:
        for i, c in enumerate(r):
            widths[i] = max(widths[i], len(c))
    for r in rows:
        line = "  ".join(c.ljust(widths[i]) for i, c in enumerate(r))
        print(line.rstrip())


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def _is_interactive() -> bool:
    return sys.stdin.isatty()


def _time_since(iso: str, *, now: datetime | None = None) -> str:
    try:
        then = datetime.strptime(iso, "%Y-%m-%dT%H:%M:%SZ").replace(tzinfo=timezone.utc)
    except ValueError:
        return "unknown"
    days = ((now or datetime.now(timezone.utc)) - then).days
    if days <= 0:
        return "today"
    if days == 1:
        return "1 day ago"
    if days < 30:
        return f"{days} days ago"
    months = days // 30
    return "1 month ago" if months == 1 else f"{months} months ago"


def _merge_cfg(base: Config, args: argparse.Namespace) -> Config:
    # Env overrides config; CLI overrides both.
    token = (
        getattr(args, "token", None)
        or os.getenv("SKILLPULL_GITHUB_TOKEN")
        or os.getenv("GITHUB_TOKEN")
        or base.github_token
    )
    timeout_s = getattr(args, "timeout_s", None) or os.getenv("SKILLPULL_TIMEOUT_S")
    cfg = replace(base, github_token=token)
    if timeout_s is None:
        return cfg
    try:
        timeout_s_f = float(timeout_s)
    except (TypeError, ValueError):
        return cfg
    return replace(cfg, metadata_timeout_s=timeout_s_f, archive_timeout_s=timeout_s_f)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="skillpull",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description="Install skills from GitHub repositories into local agent directories.",
        epilog=textwrap.dedent(
            """\
            Sources:
              github:owner/repo[/path][#ref]
              https://github.com/owner/repo[/tree/<ref>[/path]]

            Environment variables:
              SKILLPULL_GITHUB_TOKEN (or GITHUB_TOKEN), SKILLPULL_TIMEOUT_S, SKILLPULL_CONFIG_PATH
            """
        ),
    )
    p.add_argument("--project-dir", default=".", help="Project root holding the manifest and lock file (default: .)")
    p.add_argument("--token", help="GitHub token (overrides config/env)")
    p.add_argument("--timeout-s", type=float, help="HTTP timeout in seconds for every request")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")
    p.add_argument("--verbose-errors", action="store_true", help="Print the cause chain of errors")
    p.add_argument("--version", action="version", version=f"skillpull {__version__}")

    sub = p.add_subparsers(dest="cmd", required=True)

    add = sub.add_parser("add", help="Install skill(s) from a GitHub repository for every agent")
    add.add_argument("source", help="github:owner/repo[/path][#ref] or a github.com URL")
    add.add_argument("--all", action="store_true", help="Install every detected skill without prompting")
    add.add_argument("--json", action="store_true", help="Output JSON")

    remove = sub.add_parser("remove", aliases=["rm"], help="Remove remote skills from every agent")
    remove.add_argument("names", nargs="*", help="Skill names (prompted when omitted)")
    remove.add_argument("--json", action="store_true", help="Output JSON")

    lst = sub.add_parser("list", aliases=["ls"], help="List installed remote skills")
    lst.add_argument("--json", action="store_true", help="Output JSON")

    update = sub.add_parser("update", help="Re-download remote skills from their sources")
    update.add_argument("names", nargs="*", help="Skill names (default: all)")
    update.add_argument("--all", action="store_true", help="Update every skill without prompting")
    update.add_argument("--json", action="store_true", help="Output JSON")

    sync = sub.add_parser("sync", help="Reconcile installed skills with the agents in the manifest")
    sync.add_argument("--json", action="store_true", help="Output JSON")

    cfg = sub.add_parser("config", help="Manage user config")
    cfg_sub = cfg.add_subparsers(dest="subcmd", required=True)
    cfg_sub.add_parser("path", help="Print config path")
    cfg_sub.add_parser("show", help="Show config (token redacted)")
    cfg_set = cfg_sub.add_parser("set", help="Set config fields")
    cfg_set.add_argument("--github-token")
    cfg_set.add_argument("--metadata-timeout-s", type=float)
    cfg_set.add_argument("--archive-timeout-s", type=float)
    cfg_set.add_argument("--manifest-filename")
    cfg_set.add_argument("--lock-filename")

    return p


def _make_runtime_client(cfg: Config) -> GitHubClient:
    return GitHubClient(
        api_url=cfg.api_url,
        web_url=cfg.web_url,
        token=cfg.github_token,
        metadata_timeout_s=cfg.metadata_timeout_s,
        archive_timeout_s=cfg.archive_timeout_s,
    )


def _make_manager(args: argparse.Namespace, cfg: Config, client: GitHubClient) -> RemoteSkillManager:
    project_dir = Path(args.project_dir).expanduser()
    return RemoteSkillManager(
        project_dir=project_dir,
        agents=load_agents(project_dir, cfg.manifest_filename),
        fetcher=GitHubRepoFetcher(client),
        lock_filename=cfg.lock_filename,
    )


def _prompt_skills(detected: list[DetectedSkill]) -> list[DetectedSkill]:
    print(f"  Found {len(detected)} skills:\n", file=sys.stderr)
    return select_multiple([(s.label, s) for s in detected], "Select skills to install")


def _skill_choices(skills: list[LockedSkill]) -> list[tuple[str, str]]:
    return [(f"{s.name} ({s.source})", s.name) for s in skills]


def _print_problems(warnings: tuple[str, ...], failures: tuple[str, ...] = ()) -> None:
    for warning in warnings:
        print(f"warning: {warning}", file=sys.stderr)
    for failure in failures:
        print(f"failed: {failure}", file=sys.stderr)


def cmd_config(args: argparse.Namespace) -> int:
    if args.subcmd == "path":
        print(str(config_path()))
        return 0

    if args.subcmd == "show":
        cfg = load_config()
        d = asdict(cfg)
        d["github_token"] = redact_token(cfg.github_token)
        _print_json(d)
        return 0

    if args.subcmd == "set":
        cfg = load_config()
        updates = {
            "github_token": args.github_token,
            "metadata_timeout_s": args.metadata_timeout_s,
            "archive_timeout_s": args.archive_timeout_s,
            "manifest_filename": args.manifest_filename,
            "lock_filename": args.lock_filename,
        }
        cfg = replace(cfg, **{k: v for k, v in updates.items() if v is not None})
        print(str(save_config(cfg)))
        return 0

    raise AssertionError("unreachable")


def cmd_add(args: argparse.Namespace, cfg: Config) -> int:
    select = None if args.all or not _is_interactive() else _prompt_skills
    client = _make_runtime_client(cfg)
    try:
        manager = _make_manager(args, cfg, client)
        result = manager.add(args.source, select=select)
    finally:
        client.close()

    if args.json:
        _print_json(
            {
                "source": result.source,
                "ref": result.ref,
                "commit": result.commit,
                "installed": list(result.installed),
                "agents": list(result.agents),
                "lock_path": str(result.lock_path),
            }
        )
        return 0

    if not result.installed:
        print("No skills to install.")
        return 0
    print(f"source: {result.source}#{result.ref} ({result.commit})")
    for name in result.installed:
        print(f"installed: {name} [{', '.join(result.agents)}]")
    print(f"lock: {result.lock_path}")
    return 0


def cmd_remove(args: argparse.Namespace, cfg: Config) -> int:
    client = _make_runtime_client(cfg)
    try:
        manager = _make_manager(args, cfg, client)
        names = list(args.names)
        if not names:
            if not _is_interactive():
                raise SkillpullError("Specify at least one skill name to remove.")
            skills = manager.list_skills()
            if not skills:
                print("No remote skills installed.")
                return 0
            names = select_multiple(_skill_choices(skills), "Select remote skills to remove")
            if not names:
                return 0
        result = manager.remove(names)
    finally:
        client.close()

    if args.json:
        _print_json(
            {
                "removed": list(result.removed),
                "agents": list(result.agents),
                "warnings": list(result.warnings),
                "lock_path": str(result.lock_path),
            }
        )
        return 0

    for name in result.removed:
        print(f"removed: {name}")
    print(f"agents: {', '.join(result.agents) or 'none'}")
    _print_problems(result.warnings)
    return 0


def cmd_list(args: argparse.Namespace, cfg: Config) -> int:
    client = _make_runtime_client(cfg)
    try:
        skills = _make_manager(args, cfg, client).list_skills()
    finally:
        client.close()

    if args.json:
        _print_json(
            [
                {
                    "name": s.name,
                    "source": s.source,
                    "sourceType": s.source_type,
                    "ref": s.ref,
                    "path": s.path,
                    "installedAt": s.installed_at,
                    "agents": list(s.agents),
                }
                for s in skills
            ]
        )
        return 0

    if not skills:
        print("No remote skills installed.")
        return 0

    rows = [["SKILL", "SOURCE", "AGENTS", "ADDED"]]
    for s in skills:
        rows.append(
            [
                s.name,
                f"{s.source}#{s.ref}" if s.ref else s.source,
                ", ".join(s.agents) or "none",
                _time_since(s.installed_at),
            ]
        )
    _print_table(rows)
    return 0


def cmd_update(args: argparse.Namespace, cfg: Config) -> int:
    client = _make_runtime_client(cfg)
    try:
        manager = _make_manager(args, cfg, client)
        names: list[str] | None = list(args.names) or None
        if names is None and not args.all and _is_interactive():
            skills = manager.list_skills()
            if len(skills) > 1:
                mode = select_one(
                    [("All remote skills", "all"), ("Select skills to update", "select")],
                    "What would you like to update?",
                )
                if mode == "select":
                    names = select_multiple(_skill_choices(skills), "Select skills to update")
                    if not names:
                        return 0
        result = manager.update(names)
    finally:
        client.close()

    if args.json:
        _print_json(
            {
                "updated": list(result.updated),
                "skipped": list(result.skipped),
                "warnings": list(result.warnings),
                "failures": list(result.failures),
                "lock_path": str(result.lock_path),
            }
        )
        return 1 if result.failures else 0

    _print_table(
        [
            ["ACTION", "COUNT"],
            ["updated", str(len(result.updated))],
            ["skipped", str(len(result.skipped))],
            ["failed", str(len(result.failures))],
        ]
    )
    for name in result.updated:
        print(f"updated: {name}")
    _print_problems(result.warnings, result.failures)
    return 1 if result.failures else 0


def cmd_sync(args: argparse.Namespace, cfg: Config) -> int:
    client = _make_runtime_client(cfg)
    try:
        result = _make_manager(args, cfg, client).sync()
    finally:
        client.close()

    if args.json:
        _print_json(
            {
                "installed": [{"skill": name, "agent": agent_id} for name, agent_id in result.installed],
                "dropped_agents": list(result.dropped_agents),
                "warnings": list(result.warnings),
                "failures": list(result.failures),
                "lock_path": str(result.lock_path),
            }
        )
        return 1 if result.failures else 0

    if result.in_sync:
        print("Everything is in sync.")
    for name, agent_id in result.installed:
        print(f"installed: {name} -> {agent_id}")
    for agent_id in result.dropped_agents:
        print(f"dropped agent: {agent_id} (no longer in the manifest)")
    _print_problems(result.warnings, result.failures)
    return 1 if result.failures else 0


def _format_error(err: BaseException) -> str:
    if isinstance(err, SkillpullHTTPError) and err.status_code == 404:
        return f"{err} (repository or branch not found)"
    return str(err)


def _print_error_details(err: BaseException) -> None:
    print("error_details:", file=sys.stderr)
    cause = err.__cause__ or err.__context__
    depth = 1
    while cause is not None:
        print(f"  cause[{depth}]: {type(cause).__name__}: {_format_error(cause)}", file=sys.stderr)
        cause = cause.__cause__ or cause.__context__
        depth += 1


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        if args.cmd == "config":
            return cmd_config(args)
        cfg = _merge_cfg(load_config(), args)
        if args.cmd == "add":
            return cmd_add(args, cfg)
        if args.cmd in ("remove", "rm"):
            return cmd_remove(args, cfg)
        if args.cmd in ("list", "ls"):
            return cmd_list(args, cfg)
        if args.cmd == "update":
            return cmd_update(args, cfg)
        if args.cmd == "sync":
            return cmd_sync(args, cfg)
        raise AssertionError("unreachable")
    except SkillpullError as e:
        print(f"error: {_format_error(e)}", file=sys.stderr)
        if args.verbose_errors:
            _print_error_details(e)
        return 1
    except OSError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
