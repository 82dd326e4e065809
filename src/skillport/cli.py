from __future__ import annotations

import argparse
import json
import os
import sys
import textwrap
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any

from ._version import __version__
from .config import Config, base_dir, config_path, load_config, local_skills_dir, save_config, state_path
from .errors import SkillNotFoundError, SkillportError, UninstallError
from .installer import Installer, InstallReport
from .local_skills import register_local_skills, register_repository_skills
from .log import setup_logging
from .manifest import collect_project_manifest, read_manifest, sync_manifest, write_manifest
from .models import InstallationRecord, Source
from .paths import PathResolver
from .platforms import parse_platforms, platform_from_string_or_alias
from .scopes import all_scopes, new_install_location, parse_scopes
from .service import InstallOptions, InstallResult, InstallService
from .store import JsonStore
from .symlinks import SymlinkManager, backup_path


@dataclass
class Runtime:
    cfg: Config
    store: JsonStore
    paths: PathResolver
    installer: Installer
    service: InstallService


def _runtime(args: argparse.Namespace) -> Runtime:
    cfg = load_config()
    if args.home:
        cfg = replace(cfg, base_dir=args.home)
    store = JsonStore(state_path(cfg))
    paths = PathResolver(base_dir(cfg))
    installer = Installer(store=store, paths=paths, preferences=store)
    return Runtime(cfg=cfg, store=store, paths=paths, installer=installer, service=InstallService(installer))


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


def _report_payload(slug: str, report: InstallReport | None, error: Exception | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"slug": slug, "ok": error is None}
    if report is not None:
        payload["source_path"] = report.source_path
        payload["installed"] = [
            {"platform": o.location.platform, "scope": o.location.scope, "path": o.path}
            for o in report.installed
            if o.location is not None
        ]
        payload["failed"] = [
            {"location": o.location.id if o.location else None, "error": str(o.error)} for o in report.failed
        ]
        payload["skipped"] = [loc.id for loc in report.skipped]
    if error is not None:
        payload["error"] = str(error)
    return payload


def _record_payload(record: InstallationRecord) -> dict[str, str]:
    return {
        "skill_id": record.skill_id,
        "platform": record.platform,
        "scope": record.scope,
        "path": record.symlink_path,
    }


def _print_install_result(result: InstallResult) -> None:
    if result.error is not None:
        print(f"{result.slug}: error: {result.error}")
        return
    report = result.report
    print(f"{result.slug}: installed to {len(report.installed) if report else 0} location(s)")
    if report is None:
        return
    rows = [["PLATFORM", "SCOPE", "PATH"]]
    for o in report.installed:
        if o.location is not None:
            rows.append([o.location.platform, o.location.scope, o.path])
    _print_table(rows)
    for o in report.failed:
        print(f"warning: {o.describe()}")
    for loc in report.skipped:
        print(f"skipped: {loc.id} (no skills directory)")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="skillport",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description="Install skills into AI coding tools by symlink.",
        epilog=textwrap.dedent(
            """\
            Environment variables:
              SKILLPORT_CONFIG_PATH, SKILLPORT_HOME, SKILLPORT_LOG_LEVEL
            """
        ),
    )
    p.add_argument("--home", help="Data directory (overrides config/env)")
    p.add_argument("--log-level", help="Log level, e.g. DEBUG or INFO")
    p.add_argument("--version", action="version", version=f"skillport {__version__}")

    sub = p.add_subparsers(dest="cmd", required=True)

    # config
    cfg = sub.add_parser("config", help="Manage local config")
    cfg_sub = cfg.add_subparsers(dest="subcmd", required=True)
    cfg_sub.add_parser("path", help="Print config path")
    cfg_sub.add_parser("show", help="Show effective config")

    cfg_set = cfg_sub.add_parser("set", help="Set config fields")
    cfg_set.add_argument("--base-dir", help="Data directory (state, repositories, local skills)")
    cfg_set.add_argument("--log-level")
    cfg_set.add_argument(
        "--backup-existing",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Let `link` move an existing file aside instead of failing",
    )

    # install / uninstall
    install = sub.add_parser("install", aliases=["i"], help="Link one or more skills into AI tools")
    install.add_argument("slugs", nargs="+", metavar="slug")
    install.add_argument("-p", "--platform", action="append", default=[], help="Platform id (repeatable)")
    install.add_argument("-s", "--scope", action="append", default=[], help="global or project (repeatable)")
    install.add_argument("--json", action="store_true", help="Output JSON")

    uninstall = sub.add_parser("uninstall", aliases=["rm"], help="Remove a skill's links")
    uninstall.add_argument("slug")
    uninstall.add_argument("-p", "--platform", action="append", default=[], help="Platform id (repeatable)")
    uninstall.add_argument("-s", "--scope", action="append", default=[], help="global or project (repeatable)")
    uninstall.add_argument(
        "--all",
        action="store_true",
        help="Remove every link, recorded or not (default without -p/-s)",
    )

    check = sub.add_parser("check", help="List installed skills and where they are linked")
    check.add_argument("--json", action="store_true", help="Output JSON")

    rec = sub.add_parser("reconcile", help="Resync installation records with the links on disk")
    rec.add_argument("--json", action="store_true", help="Output JSON")

    plats = sub.add_parser("platforms", help="List supported platforms")
    plats.add_argument("--detected", action="store_true", help="Only platforms detected on this machine")
    plats.add_argument("--json", action="store_true", help="Output JSON")

    tools = sub.add_parser("tools", help="Preferred platforms used when installing without -p")
    tools_sub = tools.add_subparsers(dest="subcmd", required=True)
    tools_sub.add_parser("show", help="Print preferred platforms")
    tools_set = tools_sub.add_parser("set", help="Replace preferred platforms")
    tools_set.add_argument("platforms", nargs="*", metavar="platform")

    add_local = sub.add_parser("add-local", help="Register local skills (directories containing SKILL.md)")
    add_local.add_argument("--skills-dir", help="Directory to scan (default: <data dir>/skills)")

    add_repo = sub.add_parser("add-repo", help="Register the skills of a repository checkout")
    add_repo.add_argument("source", help="owner/repo, checked out under <data dir>/repositories/owner/repo")

    sub.add_parser("save", help="Write project-scope installs of this directory to skillport.json")

    sync = sub.add_parser("sync", help="Install the skills listed in ./skillport.json at project scope")
    sync.add_argument("-p", "--platform", action="append", default=[], help="Platform id (repeatable)")

    link = sub.add_parser("link", help="Create a single symlink")
    link.add_argument("source")
    link.add_argument("target")
    link.add_argument("--backup", action="store_true", help="Move an existing file/dir at target to <target>.backup")

    unlink = sub.add_parser("unlink", help="Remove a single symlink")
    unlink.add_argument("target")
    unlink.add_argument("--restore", action="store_true", help="Put <target>.backup back in place")

    return p


def cmd_config(args: argparse.Namespace) -> int:
    if args.subcmd == "path":
        print(str(config_path()))
        return 0

    if args.subcmd == "show":
        cfg = load_config()
        d = asdict(cfg)
        d["data_dir"] = str(base_dir(cfg))
        print(json.dumps(d, indent=2, sort_keys=True))
        return 0

    if args.subcmd == "set":
        cfg = load_config()
        new_cfg = Config(
            base_dir=args.base_dir if args.base_dir is not None else cfg.base_dir,
            log_level=args.log_level or cfg.log_level,
            backup_existing=args.backup_existing if args.backup_existing is not None else cfg.backup_existing,
        )
        path = save_config(new_cfg)
        print(f"Saved: {path}")
        return 0

    raise AssertionError("unreachable")


def cmd_install(args: argparse.Namespace) -> int:
    rt = _runtime(args)
    options = InstallOptions(platforms=tuple(args.platform), scopes=tuple(args.scope))

    if len(args.slugs) == 1:
        results = [rt.service.install(args.slugs[0], options)]
    else:
        results = rt.service.install_batch(args.slugs, options)

    if args.json:
        print(json.dumps([_report_payload(r.slug, r.report, r.error) for r in results], indent=2, sort_keys=True))
    else:
        for r in results:
            _print_install_result(r)
    return 0 if all(r.ok for r in results) else 1


def cmd_uninstall(args: argparse.Namespace) -> int:
    rt = _runtime(args)
    if rt.store.get_skill_by_slug(args.slug) is None:
        raise SkillNotFoundError(f"Skill not found: {args.slug}")
    recorded = rt.service.get_install_locations(args.slug)

    if args.all or not (args.platform or args.scope):
        rt.service.uninstall_all(args.slug)
        removed = recorded
    else:
        if args.platform:
            platforms = parse_platforms(args.platform)
        else:
            platforms = parse_platforms([loc.platform for loc in recorded])
        scopes = parse_scopes(args.scope) or all_scopes()
        locations = [new_install_location(p, s) for p in platforms for s in scopes]
        rt.service.uninstall(args.slug, locations)
        requested = {loc.key for loc in locations}
        removed = [loc for loc in recorded if loc.key in requested]

    if not removed:
        print(f"{args.slug}: no recorded installations to remove")
    for loc in removed:
        print(f"removed: {loc.id}")
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    rt = _runtime(args)
    summary = rt.service.get_installed_skills_summary()
    if args.json:
        print(json.dumps([asdict(s) for s in summary], indent=2, sort_keys=True))
        return 0
    if not summary:
        print("No skills installed.")
        return 0
    rows = [["SKILL", "TITLE", "LOCATIONS"]]
    for s in summary:
        where = ", ".join(f"{platform} ({'/'.join(scopes)})" for platform, scopes in sorted(s.locations.items()))
        rows.append([s.slug, s.title, where])
    _print_table(rows)
    return 0


def cmd_reconcile(args: argparse.Namespace) -> int:
    rt = _runtime(args)
    result = rt.installer.sync_install_state()
    payload = {
        "added": [_record_payload(r) for r in result.added],
        "removed": [_record_payload(r) for r in result.removed],
        "flags_changed": list(result.flags_changed),
        "skipped": list(result.skipped_units),
    }
    if args.json:
        print(json.dumps(payload, indent=2, sort_keys=True))
        return 0
    _print_table(
        [
            ["ACTION", "COUNT"],
            ["added", str(len(result.added))],
            ["removed", str(len(result.removed))],
            ["flags", str(len(result.flags_changed))],
        ]
    )
    for r in result.added:
        print(f"added: {r.skill_id} {r.platform}:{r.scope}")
    for r in result.removed:
        print(f"removed: {r.skill_id} {r.platform}:{r.scope}")
    return 0


def cmd_platforms(args: argparse.Namespace) -> int:
    rt = _runtime(args)
    detected = rt.service.detect_platforms()
    if args.detected:
        detected = [d for d in detected if d.detected]
    if args.json:
        print(json.dumps([asdict(d) for d in detected], indent=2, sort_keys=True))
        return 0
    rows = [["ID", "NAME", "PATH", "DETECTED"]]
    for d in detected:
        rows.append([d.id, d.name, d.path, "yes" if d.detected else ""])
    _print_table(rows)
    return 0


def cmd_tools(args: argparse.Namespace) -> int:
    rt = _runtime(args)
    if args.subcmd == "show":
        tools = rt.store.get_ai_tools()
        if not tools:
            print("No preferred platforms set.")
        for t in tools:
            print(t)
        return 0

    if args.subcmd == "set":
        resolved: list[str] = []
        for raw in args.platforms:
            platform = platform_from_string_or_alias(raw)
            if not platform:
                raise SkillportError(f"Unknown platform {raw!r}. Run `skillport platforms` for the list.")
            resolved.append(platform)
        rt.store.set_ai_tools(resolved)
        print(f"Preferred platforms: {', '.join(rt.store.get_ai_tools()) or '(none)'}")
        return 0

    raise AssertionError("unreachable")


def cmd_add_local(args: argparse.Namespace) -> int:
    rt = _runtime(args)
    skills_dir = Path(args.skills_dir).expanduser() if args.skills_dir else local_skills_dir(rt.cfg)
    result = register_local_skills(rt.store, skills_dir)
    print(f"skills_dir: {skills_dir}")
    for slug in result.added:
        print(f"added: {slug}")
    for slug in result.updated:
        print(f"updated: {slug}")
    for path in result.skipped:
        print(f"skipped: {path}")
    return 0


def cmd_add_repo(args: argparse.Namespace) -> int:
    rt = _runtime(args)
    try:
        source = Source.from_owner_repo(args.source)
    except ValueError as e:
        raise SkillportError(str(e)) from e
    result = register_repository_skills(rt.store, rt.paths, source)
    for slug in result.added:
        print(f"added: {slug}")
    for slug in result.updated:
        print(f"updated: {slug}")
    for path in result.skipped:
        print(f"skipped: {path}")
    return 0


def cmd_save(args: argparse.Namespace) -> int:
    rt = _runtime(args)
    project_dir = os.getcwd()
    manifest = collect_project_manifest(rt.store, project_dir)
    path = write_manifest(project_dir, manifest)
    print(f"Saved {len(manifest.skills)} skill(s) to {path}")
    return 0


def cmd_sync(args: argparse.Namespace) -> int:
    rt = _runtime(args)
    project_dir = os.getcwd()
    manifest = read_manifest(project_dir)
    if manifest is None:
        raise SkillportError(f"No skillport.json in {project_dir}. Run `skillport save` first.")
    report = sync_manifest(rt.service, manifest, platforms=tuple(args.platform))
    for r in report.results:
        _print_install_result(r)
    for slug in report.skipped:
        print(f"skipped: {slug}")
    return 0 if all(r.ok for r in report.results) else 1


def cmd_link(args: argparse.Namespace) -> int:
    cfg = load_config()
    source = os.path.abspath(os.path.expanduser(args.source))
    target = os.path.abspath(os.path.expanduser(args.target))
    links = SymlinkManager()
    links.create(source, target, backup_existing=args.backup or cfg.backup_existing)
    print(f"{target} -> {links.read_link(target)}")
    return 0


def cmd_unlink(args: argparse.Namespace) -> int:
    target = os.path.abspath(os.path.expanduser(args.target))
    links = SymlinkManager()
    links.remove(target)
    if args.restore:
        links.restore_backup(target)
        print(f"restored: {backup_path(target)} -> {target}")
    else:
        print(f"removed: {target}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        cfg_level = args.log_level or load_config().log_level
        setup_logging(cfg_level)
        if args.cmd == "config":
            return cmd_config(args)
        if args.cmd in ("install", "i"):
            return cmd_install(args)
        if args.cmd in ("uninstall", "rm"):
            return cmd_uninstall(args)
        if args.cmd == "check":
            return cmd_check(args)
        if args.cmd == "reconcile":
            return cmd_reconcile(args)
        if args.cmd == "platforms":
            return cmd_platforms(args)
        if args.cmd == "tools":
            return cmd_tools(args)
        if args.cmd == "add-local":
            return cmd_add_local(args)
        if args.cmd == "add-repo":
            return cmd_add_repo(args)
        if args.cmd == "save":
            return cmd_save(args)
        if args.cmd == "sync":
            return cmd_sync(args)
        if args.cmd == "link":
            return cmd_link(args)
        if args.cmd == "unlink":
            return cmd_unlink(args)
        raise AssertionError("unreachable")
    except UninstallError as e:
        print(f"error: {e.summary}", file=sys.stderr)
        for outcome in e.failed:
            print(f"  {outcome.describe()}", file=sys.stderr)
        return 1
    except SkillportError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
