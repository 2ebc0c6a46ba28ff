"""Tool settings with TOML-backed persistence.

Provides a ``@section`` decorator that registers dataclass settings models,
and a ``load()`` function that merges code defaults, then the global file,
then the local file, then environment overrides into a populated instance.

Settings files:
    ~/.config/confstore/config.toml     global (user-wide)
    .confstore/config.toml              local  (working directory)

``CONFSTORE_CONFIG_DIR`` overrides ``store.config_root`` from either file.
"""

from __future__ import annotations

import dataclasses
import logging
import os
import pathlib
import tomllib
from typing import Any, TypeVar

logger = logging.getLogger("confstore.settings")

T = TypeVar("T")

CONFIG_DIR_ENV = "CONFSTORE_CONFIG_DIR"

_SECTIONS: dict[str, type] = {}

# (section, key) -> environment variable taking precedence over both files
_ENV_OVERRIDES = {("store", "config_root"): CONFIG_DIR_ENV}


def section(name: str):
    """Class decorator: register a dataclass as a settings section."""

    def decorator(cls: type[T]) -> type[T]:
        _SECTIONS[name] = cls
        return cls

    return decorator


@section("store")
@dataclasses.dataclass
class StoreSettings:
    # Root under which named configuration directories are located
    config_root: str = ""
    read_only: bool = False


@section("logging")
@dataclasses.dataclass
class LoggingSettings:
    level: str = "WARNING"
    format: str = "%(levelname)s %(name)s: %(message)s"


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

def _global_path() -> pathlib.Path:
    return pathlib.Path.home() / ".config" / "confstore" / "config.toml"


def _local_path(root: pathlib.Path) -> pathlib.Path:
    return root / ".confstore" / "config.toml"


def _scope_path(scope: str, root: pathlib.Path | None) -> pathlib.Path:
    if scope == "global":
        return _global_path()
    return _local_path(root if root is not None else pathlib.Path.cwd())


def _read_file(path: pathlib.Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as exc:
        logger.warning("Ignoring unreadable settings file %s: %s", path, exc)
        return {}


def _write_file(path: pathlib.Path, data: dict[str, Any]) -> None:
    import tomli_w

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(tomli_w.dumps(data).encode())
    logger.debug("Wrote settings to %s", path)


# ---------------------------------------------------------------------------
# Fields
# ---------------------------------------------------------------------------

def _coerce(value: str, target_type: type) -> Any:
    """Coerce a command-line string to *target_type*."""
    if target_type is bool:
        return value.strip().lower() in ("true", "1", "yes")
    if target_type is int:
        return int(value)
    if target_type is float:
        return float(value)
    return value


def _field_type(cls: type, key: str) -> type:
    # Annotations are strings under postponed evaluation.
    names = {"int": int, "float": float, "bool": bool, "str": str}
    for f in dataclasses.fields(cls):
        if f.name == key:
            return names.get(f.type, str) if isinstance(f.type, str) else f.type
    raise KeyError(f"Unknown key: {cls.__name__}.{key}")


def _section_cls(name: str) -> type:
    try:
        return _SECTIONS[name]
    except KeyError:
        raise KeyError(f"Unknown settings section: {name}") from None


def _field_names(cls: type) -> set[str]:
    return {f.name for f in dataclasses.fields(cls)}


# ---------------------------------------------------------------------------
# Core API
# ---------------------------------------------------------------------------

def list_sections() -> dict[str, type]:
    """Return a copy of the section registry."""
    return dict(_SECTIONS)


def load(name: str, root: pathlib.Path | None = None) -> Any:
    """Load settings section *name*; later sources override earlier ones."""
    cls = _section_cls(name)
    merged: dict[str, Any] = {}
    for scope in ("global", "local"):
        merged.update(_read_file(_scope_path(scope, root)).get(name, {}))

    for (sec, key), env_name in _ENV_OVERRIDES.items():
        env_value = os.environ.get(env_name)
        if sec == name and env_value:
            merged[key] = _coerce(env_value, _field_type(cls, key))

    known = _field_names(cls)
    return cls(**{k: v for k, v in merged.items() if k in known})


def get_effective(name: str, key: str, root: pathlib.Path | None = None) -> Any:
    """Return the effective value of ``name.key``."""
    return getattr(load(name, root), key)


def set_value(
    name: str,
    key: str,
    value: Any,
    *,
    scope: str = "local",
    root: pathlib.Path | None = None,
) -> None:
    """Write ``name.key`` to the global or local settings file."""
    cls = _section_cls(name)
    if key not in _field_names(cls):
        raise KeyError(f"Unknown key: {name}.{key}")
    if isinstance(value, str):
        value = _coerce(value, _field_type(cls, key))

    path = _scope_path(scope, root)
    data = _read_file(path)
    data.setdefault(name, {})[key] = value
    _write_file(path, data)


def reset_value(
    name: str,
    key: str,
    *,
    scope: str = "local",
    root: pathlib.Path | None = None,
) -> None:
    """Drop ``name.key`` from a settings file; a missing key is a no-op."""
    path = _scope_path(scope, root)
    data = _read_file(path)
    values = data.get(name, {})
    if key not in values:
        return
    del values[key]
    if not values:
        del data[name]
    _write_file(path, data)
