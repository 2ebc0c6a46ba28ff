"""Command line interface for confstore.

Usage:
    confstore list [--dir DIR]                    List configurations in a store
    confstore stores [--dir DIR]                  List child stores
    confstore show NAME [--dir DIR] [--type T]    Load a configuration and print it
    confstore settings list                       Show all settings sections
    confstore settings get <section.key>          Print effective value
    confstore settings set [--global] <key> <v>   Write a settings value
    confstore settings reset [--global] <key>     Remove an override
    confstore settings show                       Dump full effective settings

``--import MODULE`` (repeatable) imports modules that register configuration
types before a store is read.
"""

from __future__ import annotations

import argparse
import dataclasses
import importlib
import logging
import pathlib
import sys

import confstore.base  # noqa: F401  registers OrmConfig
import confstore.errors
import confstore.registry
import confstore.serializer
import confstore.settings
import confstore.store

logger = logging.getLogger("confstore.cli")


def _setup_logging() -> None:
    cfg = confstore.settings.load("logging")
    logging.basicConfig(
        level=getattr(logging, str(cfg.level).upper(), logging.WARNING),
        format=cfg.format,
    )


def _import_modules(modules: list[str]) -> None:
    """Import modules so their configuration types are registered."""
    for name in modules:
        importlib.import_module(name)
        logger.debug("Imported %s", name)


def _open_store(directory: pathlib.Path | None) -> confstore.store.FileConfigurationStore:
    store_cfg = confstore.settings.load("store")
    if directory is None:
        directory = pathlib.Path(store_cfg.config_root or ".")
    return confstore.store.FileConfigurationStore(
        directory, read_only=store_cfg.read_only
    )


# ---------------------------------------------------------------------------
# Store commands
# ---------------------------------------------------------------------------

def cmd_list(directory: pathlib.Path | None) -> int:
    """Print the configuration names held in a store."""
    try:
        names = _open_store(directory).list()
    except confstore.errors.StoreError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    if not names:
        print("No configurations found.")
        return 0
    for name in sorted(names):
        print(name)
    return 0


def cmd_stores(directory: pathlib.Path | None) -> int:
    """Print the child store names of a store."""
    try:
        names = _open_store(directory).child_stores()
    except (confstore.errors.StoreError, OSError) as exc:
        print(str(exc), file=sys.stderr)
        return 1
    for name in sorted(names):
        print(name)
    return 0


def cmd_show(name: str, directory: pathlib.Path | None, type_name: str | None) -> int:
    """Load a configuration and print it re-serialized."""
    try:
        cls = confstore.registry.REGISTRY.lookup(type_name) if type_name else None
    except KeyError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    try:
        config = _open_store(directory).get(name, cls)
        confstore.serializer.serialize(config, sys.stdout)
    except confstore.errors.ConfigError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    return 0


# ---------------------------------------------------------------------------
# Settings commands
# ---------------------------------------------------------------------------

def _split_key(key: str) -> tuple[str, str] | None:
    parts = key.split(".", 1)
    if len(parts) != 2:
        print(f"Invalid key format: {key!r} (expected section.key)", file=sys.stderr)
        return None
    return parts[0], parts[1]


def cmd_settings_list() -> int:
    """Print all settings sections with their fields."""
    for name, cls in sorted(confstore.settings.list_sections().items()):
        print(f"[{name}]")
        for f in dataclasses.fields(cls):
            type_name = f.type if isinstance(f.type, str) else f.type.__name__
            print(f"  {f.name}: {type_name} = {f.default!r}")
        print()
    return 0


def cmd_settings_get(key: str, root: pathlib.Path) -> int:
    split = _split_key(key)
    if split is None:
        return 1
    try:
        value = confstore.settings.get_effective(split[0], split[1], root)
    except (KeyError, AttributeError) as exc:
        print(str(exc), file=sys.stderr)
        return 1
    print(value)
    return 0


def cmd_settings_set(key: str, value: str, *, global_flag: bool, root: pathlib.Path) -> int:
    split = _split_key(key)
    if split is None:
        return 1
    scope = "global" if global_flag else "local"
    try:
        confstore.settings.set_value(split[0], split[1], value, scope=scope, root=root)
    except (KeyError, ValueError) as exc:
        print(str(exc), file=sys.stderr)
        return 1
    print(f"Set {key} = {value} ({scope})")
    return 0


def cmd_settings_reset(key: str, *, global_flag: bool, root: pathlib.Path) -> int:
    split = _split_key(key)
    if split is None:
        return 1
    scope = "global" if global_flag else "local"
    confstore.settings.reset_value(split[0], split[1], scope=scope, root=root)
    print(f"Reset {key} ({scope})")
    return 0


def cmd_settings_show(root: pathlib.Path) -> int:
    for name in sorted(confstore.settings.list_sections()):
        instance = confstore.settings.load(name, root)
        print(f"[{name}]")
        for f in dataclasses.fields(instance):
            print(f"  {f.name} = {getattr(instance, f.name)!r}")
        print()
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="confstore",
        description="Inspect XML configuration stores.",
    )
    parser.add_argument(
        "--import",
        dest="imports",
        action="append",
        default=[],
        metavar="MODULE",
        help="Import a module that registers configuration types",
    )
    sub = parser.add_subparsers(dest="command")

    p_list = sub.add_parser("list", help="List configurations in a store")
    p_list.add_argument("--dir", type=pathlib.Path, default=None)

    p_stores = sub.add_parser("stores", help="List child stores")
    p_stores.add_argument("--dir", type=pathlib.Path, default=None)

    p_show = sub.add_parser("show", help="Load a configuration and print it")
    p_show.add_argument("name")
    p_show.add_argument("--dir", type=pathlib.Path, default=None)
    p_show.add_argument("--type", dest="type_name", default=None,
                        help="Registered type name to load as")

    p_settings = sub.add_parser("settings", help="Tool settings")
    settings_sub = p_settings.add_subparsers(dest="subcmd")
    settings_sub.add_parser("list", help="Show all settings sections")

    p_get = settings_sub.add_parser("get", help="Print effective value")
    p_get.add_argument("key", help="section.key")
    p_get.add_argument("--path", type=pathlib.Path, default=pathlib.Path.cwd())

    p_set = settings_sub.add_parser("set", help="Set a settings value")
    p_set.add_argument("key", help="section.key")
    p_set.add_argument("value", help="New value")
    p_set.add_argument("--global", dest="global_flag", action="store_true")
    p_set.add_argument("--path", type=pathlib.Path, default=pathlib.Path.cwd())

    p_reset = settings_sub.add_parser("reset", help="Remove an override")
    p_reset.add_argument("key", help="section.key")
    p_reset.add_argument("--global", dest="global_flag", action="store_true")
    p_reset.add_argument("--path", type=pathlib.Path, default=pathlib.Path.cwd())

    p_show_settings = settings_sub.add_parser("show", help="Dump effective settings")
    p_show_settings.add_argument("--path", type=pathlib.Path, default=pathlib.Path.cwd())

    return parser


def _run_settings(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    if args.subcmd == "list":
        return cmd_settings_list()
    elif args.subcmd == "get":
        return cmd_settings_get(args.key, args.path)
    elif args.subcmd == "set":
        return cmd_settings_set(
            args.key, args.value, global_flag=args.global_flag, root=args.path
        )
    elif args.subcmd == "reset":
        return cmd_settings_reset(args.key, global_flag=args.global_flag, root=args.path)
    elif args.subcmd == "show":
        return cmd_settings_show(args.path)
    parser.print_help()
    return 1


def main(argv: list[str] | None = None) -> int:
    """Entry point for ``confstore``."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    _setup_logging()
    try:
        _import_modules(args.imports)
    except ImportError as exc:
        print(f"Cannot import {exc.name}: {exc}", file=sys.stderr)
        return 1

    if args.command == "list":
        return cmd_list(args.dir)
    elif args.command == "stores":
        return cmd_stores(args.dir)
    elif args.command == "show":
        return cmd_show(args.name, args.dir, args.type_name)
    elif args.command == "settings":
        return _run_settings(args, parser)

    parser.print_help()
    return 1
