"""Base classes for persisted configuration objects."""

from __future__ import annotations

import dataclasses
import re
import time

import confstore.descriptor
import confstore.registry

_PROPERTY_SEP = re.compile(r"\s*[=:]\s*")


def _now_millis() -> int:
    return time.time_ns() // 1_000_000


@dataclasses.dataclass
class ConfigBase:
    """A named configuration.

    Subclasses are dataclasses; every field needs a default so the class can
    be instantiated with no arguments when a document is loaded.

    ``last_changed`` is refreshed (milliseconds since the epoch) whenever a
    public field is assigned after construction. It is not persisted and does
    not take part in equality. Subclasses defining ``__post_init__`` must call
    ``super().__post_init__()``.
    """

    name: str | None = None
    last_changed: int = confstore.descriptor.conf_field(
        default=0, dont_save=True, compare=False, repr=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "last_changed", 0)
        object.__setattr__(self, "_initialized", True)

    def __setattr__(self, key: str, value: object) -> None:
        object.__setattr__(self, key, value)
        if (
            key != "last_changed"
            and not key.startswith("_")
            and self.__dict__.get("_initialized", False)
        ):
            self.mark_changed()

    def mark_changed(self) -> None:
        object.__setattr__(self, "last_changed", _now_millis())

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, ConfigBase):
            return NotImplemented
        return (self.name or "") < (other.name or "")

    # ------------------------------------------------------------------
    # "name=value" list properties
    # ------------------------------------------------------------------

    def add_list_property(
        self, values: list[str] | None, name: str, value: str
    ) -> list[str]:
        """Append ``name=value`` to *values* (created if ``None``)."""
        result = values if values is not None else []
        result.append(f"{name}={value}")
        self.mark_changed()
        return result

    @staticmethod
    def get_property(values: list[str] | set[str] | None, name: str) -> str | None:
        """Return the value stored as ``name=value`` in *values*, or ``None``."""
        if not values:
            return None
        key = f"{name}="
        for p in values:
            if p.startswith(key):
                return p[len(key):]
        return None

    def remove_property(self, values: list[str] | set[str] | None, name: str) -> None:
        current = self.get_property(values, name)
        if current is None:
            return
        values.remove(f"{name}={current}")  # type: ignore[union-attr]
        self.mark_changed()

    def set_list_property(
        self, values: list[str] | None, name: str, value: str
    ) -> list[str]:
        """Replace (or add) the ``name=value`` entry in *values*."""
        self.remove_property(values, name)
        return self.add_list_property(values, name, value)

    @staticmethod
    def to_properties(values: list[str]) -> dict[str, str]:
        """Parse ``key=value`` / ``key: value`` lines into a dict.

        Blank lines and lines starting with ``#`` or ``!`` are skipped; a
        line without a separator maps to the empty string.
        """
        props: dict[str, str] = {}
        for line in values:
            stripped = line.strip()
            if not stripped or stripped[0] in "#!":
                continue
            parts = _PROPERTY_SEP.split(stripped, maxsplit=1)
            props[parts[0]] = parts[1] if len(parts) > 1 else ""
        return props


@confstore.registry.configtype("confstore.OrmConfig", element_name="orm-config")
@dataclasses.dataclass
class OrmConfig(ConfigBase):
    """Configuration carrying ORM properties as ``name=value`` strings."""

    orm_properties: list[str] | None = confstore.descriptor.conf_field(
        default=None,
        element_name="ormProperties",
        collection_element_name="ormProperty",
    )

    @property
    def hibernate_dialect(self) -> str | None:
        return self.get_orm_property("hibernate.dialect")

    @hibernate_dialect.setter
    def hibernate_dialect(self, value: str) -> None:
        self.set_orm_property("hibernate.dialect", value)

    def add_orm_property(self, name: str, value: str) -> None:
        self.orm_properties = self.add_list_property(self.orm_properties, name, value)

    def get_orm_property(self, name: str) -> str | None:
        return self.get_property(self.orm_properties, name)

    def remove_orm_property(self, name: str) -> None:
        self.remove_property(self.orm_properties, name)

    def set_orm_property(self, name: str, value: str) -> None:
        self.orm_properties = self.set_list_property(self.orm_properties, name, value)
