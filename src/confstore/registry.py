"""Type registry: maps persisted type names to configuration classes.

The ``type`` attribute written on every object element is a registered type
name; loading a document looks the name up here and calls the class with no
arguments. Configuration modules register their classes at import time::

    @confstore.registry.configtype("example.SyslogConf", element_name="syslog-conf")
    @dataclasses.dataclass
    class SyslogConf(confstore.base.ConfigBase):
        ...
"""

from __future__ import annotations

import dataclasses
import typing
from typing import TypeVar

import confstore.descriptor
import confstore.errors

T = TypeVar("T")


@dataclasses.dataclass(frozen=True)
class _Entry:
    type_name: str
    cls: type
    element_name: str


class TypeRegistry:
    """Type-name to class mapping plus a per-class descriptor cache."""

    def __init__(self) -> None:
        self._by_name: dict[str, _Entry] = {}
        self._by_class: dict[type, _Entry] = {}
        self._descriptors: dict[type, confstore.descriptor.ConfigurationDescriptor] = {}

    def register(
        self,
        type_name: str,
        cls: type,
        element_name: str | None = None,
    ) -> None:
        """Register *cls* under *type_name*.

        Registering the same class twice under one name is a no-op.
        """
        if not dataclasses.is_dataclass(cls):
            raise confstore.errors.ResolutionError(
                f"Cannot register {cls!r}: not a dataclass"
            )
        existing = self._by_name.get(type_name)
        if existing is not None:
            if existing.cls is cls:
                return
            raise confstore.errors.ResolutionError(
                f"Type name {type_name!r} already registered to "
                f"{existing.cls.__module__}.{existing.cls.__qualname__}"
            )
        entry = _Entry(type_name, cls, element_name or type_name)
        self._by_name[type_name] = entry
        self._by_class[cls] = entry

    def lookup(self, type_name: str) -> type:
        entry = self._by_name.get(type_name)
        if entry is None:
            raise KeyError(f"Unknown configuration type: {type_name}")
        return entry.cls

    def type_name(self, cls: type) -> str:
        entry = self._by_class.get(cls)
        if entry is None:
            return f"{cls.__module__}.{cls.__qualname__}"
        return entry.type_name

    def element_name(self, cls: type) -> str:
        entry = self._by_class.get(cls)
        if entry is None:
            return self.type_name(cls)
        return entry.element_name

    def descriptor(self, cls: type) -> confstore.descriptor.ConfigurationDescriptor:
        """Return the (cached) resolved descriptor for *cls*."""
        found = self._descriptors.get(cls)
        if found is None:
            found = confstore.descriptor.resolve(cls, self)
            self._descriptors[cls] = found
        return found

    def names(self) -> dict[str, type]:
        """Return a copy of the name to class mapping."""
        return {name: e.cls for name, e in self._by_name.items()}

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._by_name


REGISTRY = TypeRegistry()


def configtype(
    type_name: str,
    element_name: str | None = None,
    registry: TypeRegistry | None = None,
) -> typing.Callable[[type[T]], type[T]]:
    """Class decorator: register a dataclass as a persisted configuration type."""

    def decorator(cls: type[T]) -> type[T]:
        (registry or REGISTRY).register(type_name, cls, element_name)
        return cls

    return decorator
