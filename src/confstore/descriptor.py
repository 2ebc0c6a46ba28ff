"""Metadata resolver: which fields of a configuration type are persisted, and how.

Configuration types are dataclasses. The dataclass field list is the static
descriptor table; per-field marshalling hints are attached with
:func:`conf_field`::

    @configtype("example.SyslogConf", element_name="syslog-conf")
    @dataclasses.dataclass
    class SyslogConf(ConfigBase):
        host: str | None = None
        port: int = conf_field(default=514, int_bits=32)
        facilities: list[str] = conf_field(
            default_factory=list, collection_element_name="facility"
        )
        password: str | None = conf_field(default=None, dont_save=True)

:func:`resolve` turns a type into a :class:`ConfigurationDescriptor` whose
fields are sorted by element name, so persisted output is reproducible.
"""

from __future__ import annotations

import dataclasses
import enum
import types
import typing
from typing import Any

import confstore.errors

if typing.TYPE_CHECKING:
    import confstore.registry

METADATA_KEY = "confstore"

SCALAR_TYPES: dict[str, type] = {
    "str": str,
    "string": str,
    "int": int,
    "integer": int,
    "long": int,
    "bool": bool,
    "boolean": bool,
}

_INT_WIDTHS = (32, 64)


class FieldKind(enum.Enum):
    SCALAR = "scalar"
    NESTED = "nested"
    COLLECTION = "collection"


@dataclasses.dataclass(frozen=True)
class FieldDescriptor:
    """Resolved marshalling metadata for one persisted field."""

    attr: str
    element_name: str
    kind: FieldKind
    # Scalar type, declared nested class, or collection element type.
    value_type: type
    container: type | None = None
    collection_element_name: str | None = None
    int_bits: int = 64

    @property
    def element_type_name(self) -> str:
        return self.value_type.__name__

    @property
    def int_limit(self) -> int:
        """Exclusive upper bound of the signed integer width; ``-int_limit`` is the lower."""
        return 1 << (self.int_bits - 1)


@dataclasses.dataclass(frozen=True)
class ConfigurationDescriptor:
    cls: type
    fields: tuple[FieldDescriptor, ...]

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "_by_element", {f.element_name: f for f in self.fields}
        )

    def field_for(self, element_name: str) -> FieldDescriptor | None:
        """Return the field serialized under *element_name*, if any."""
        return self._by_element.get(element_name)  # type: ignore[attr-defined]

    def __iter__(self) -> typing.Iterator[FieldDescriptor]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)


def conf_field(
    *,
    default: Any = dataclasses.MISSING,
    default_factory: Any = dataclasses.MISSING,
    element_name: str | None = None,
    collection_element_name: str | None = None,
    element_type: type | str | None = None,
    dont_save: bool = False,
    int_bits: int = 64,
    **kwargs: Any,
) -> Any:
    """``dataclasses.field`` with marshalling hints attached as metadata."""
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[METADATA_KEY] = {
        "element_name": element_name,
        "collection_element_name": collection_element_name,
        "element_type": element_type,
        "dont_save": dont_save,
        "int_bits": int_bits,
    }
    return dataclasses.field(
        default=default,
        default_factory=default_factory,
        metadata=metadata,
        **kwargs,
    )


def field_options(f: dataclasses.Field) -> dict[str, Any]:
    """Return the marshalling hints of a dataclass field (defaults if none)."""
    opts = {
        "element_name": None,
        "collection_element_name": None,
        "element_type": None,
        "dont_save": False,
        "int_bits": 64,
    }
    opts.update(f.metadata.get(METADATA_KEY, {}))
    return opts


# ---------------------------------------------------------------------------
# Type classification
# ---------------------------------------------------------------------------

def _unwrap_optional(tp: Any, where: str) -> Any:
    origin = typing.get_origin(tp)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(tp) if a is not type(None)]
        if len(args) != 1:
            raise confstore.errors.ResolutionError(
                f"Unsupported union type {tp!r} for {where}"
            )
        return args[0]
    return tp


def is_config_class(tp: Any) -> bool:
    return isinstance(tp, type) and dataclasses.is_dataclass(tp)


def _element_type(
    override: type | str | None,
    args: tuple[Any, ...],
    registry: confstore.registry.TypeRegistry,
    where: str,
) -> type:
    if isinstance(override, str):
        scalar = SCALAR_TYPES.get(override.lower())
        if scalar is not None:
            return scalar
        try:
            return registry.lookup(override)
        except KeyError as exc:
            raise confstore.errors.ResolutionError(
                f"Unknown collection element type {override!r} for {where}", exc
            ) from exc
    if override is not None:
        return override
    if not args:
        return str
    if len(args) != 1:
        raise confstore.errors.ResolutionError(
            f"Cannot determine collection element type for {where}"
        )
    return _unwrap_optional(args[0], where)


def _describe(
    f: dataclasses.Field,
    tp: Any,
    registry: confstore.registry.TypeRegistry,
    where: str,
) -> FieldDescriptor:
    opts = field_options(f)
    element_name = opts["element_name"] or f.name
    int_bits = opts["int_bits"]
    if int_bits not in _INT_WIDTHS:
        raise confstore.errors.ResolutionError(
            f"Unsupported integer width {int_bits} for {where}"
        )

    tp = _unwrap_optional(tp, where)
    origin = typing.get_origin(tp)
    container = origin if origin in (list, set) else tp if tp in (list, set) else None

    if container is not None:
        el_type = _element_type(
            opts["element_type"], typing.get_args(tp), registry, where
        )
        scalar = el_type in (str, int, bool)
        if not scalar and not is_config_class(el_type):
            raise confstore.errors.ResolutionError(
                f"Unsupported collection element type {el_type!r} for {where}"
            )
        if container is set and not scalar:
            raise confstore.errors.ResolutionError(
                f"Set fields must hold scalar values ({where})"
            )
        return FieldDescriptor(
            attr=f.name,
            element_name=element_name,
            kind=FieldKind.COLLECTION,
            value_type=el_type,
            container=container,
            collection_element_name=opts["collection_element_name"],
            int_bits=int_bits,
        )

    if is_config_class(tp):
        kind = FieldKind.NESTED
    elif tp in (str, int, bool):
        kind = FieldKind.SCALAR
    else:
        raise confstore.errors.ResolutionError(
            f"Unsupported field type {tp!r} for {where}: "
            "expected str, int, bool or a dataclass"
        )
    return FieldDescriptor(
        attr=f.name,
        element_name=element_name,
        kind=kind,
        value_type=tp,
        int_bits=int_bits,
    )


# ---------------------------------------------------------------------------
# Core API
# ---------------------------------------------------------------------------

def resolve(
    cls: type,
    registry: confstore.registry.TypeRegistry | None = None,
) -> ConfigurationDescriptor:
    """Compute the persisted surface of configuration type *cls*."""
    if registry is None:
        import confstore.registry as _registry_module

        registry = _registry_module.REGISTRY

    if not is_config_class(cls):
        raise confstore.errors.ResolutionError(
            f"{cls!r} is not a dataclass configuration type"
        )

    try:
        hints = typing.get_type_hints(cls)
    except Exception as exc:
        raise confstore.errors.ResolutionError(
            f"Cannot evaluate annotations of {cls.__qualname__}: {exc}", exc
        ) from exc

    by_name: dict[str, FieldDescriptor] = {}
    for f in dataclasses.fields(cls):
        if f.name.startswith("_") or field_options(f)["dont_save"]:
            continue
        where = f"{cls.__qualname__}.{f.name}"
        fd = _describe(f, hints.get(f.name, f.type), registry, where)
        if fd.element_name in by_name:
            raise confstore.errors.ResolutionError(
                f"Multiple fields map to element {fd.element_name!r} "
                f"in {cls.__qualname__}"
            )
        by_name[fd.element_name] = fd

    ordered = tuple(by_name[name] for name in sorted(by_name))
    return ConfigurationDescriptor(cls=cls, fields=ordered)
