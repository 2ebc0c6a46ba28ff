"""Deserializer: rebuild a configuration object graph from parsed XML.

Structural mismatches abort the whole load. A child element with no matching
persisted field raises :class:`~confstore.errors.DeserializationError`
rather than being skipped, so stale configuration files are caught early.
"""

from __future__ import annotations

import logging
import os
import re
import typing
from collections.abc import Mapping
from xml.etree import ElementTree

import confstore.descriptor
import confstore.errors
import confstore.registry

logger = logging.getLogger("confstore.deserializer")

_TOKEN = re.compile(r"\$\{([^}]+)\}")
_TRUE_VALUES = ("true", "1", "yes")

T = typing.TypeVar("T")

_Source = typing.Union[str, bytes, typing.IO[str], typing.IO[bytes]]


def property_replace(text: str, env: Mapping[str, str]) -> str:
    """Replace ``${name}`` tokens from *env*; unknown names stay verbatim."""
    return _TOKEN.sub(lambda m: env.get(m.group(1), m.group(0)), text)


def local_name(tag: str) -> str:
    """Strip a ``{namespace}`` prefix from an ElementTree tag."""
    return tag.rsplit("}", 1)[-1] if tag.startswith("{") else tag


def parse_xml(source: _Source) -> ElementTree.Element:
    """Parse a document from a string, bytes or file object; return its root."""
    try:
        if isinstance(source, (str, bytes)):
            return ElementTree.fromstring(source)
        return ElementTree.parse(source).getroot()
    except ElementTree.ParseError as exc:
        raise confstore.errors.DeserializationError(
            f"Malformed configuration document: {exc}", exc
        ) from exc


class _Reader:
    def __init__(
        self,
        registry: confstore.registry.TypeRegistry,
        env: Mapping[str, str],
    ) -> None:
        self.registry = registry
        self.env = env

    def instantiate(
        self,
        el: ElementTree.Element,
        declared: type | None,
        *,
        prefer_declared: bool = False,
    ) -> object:
        """Create the object for *el* from its type attribute or *declared*."""
        type_name = None if prefer_declared else el.get("type")
        if type_name is not None:
            try:
                cls = self.registry.lookup(type_name)
            except KeyError as exc:
                raise confstore.errors.DeserializationError(
                    f"Unknown configuration type {type_name!r}", exc
                ) from exc
            if declared is not None and not issubclass(cls, declared):
                raise confstore.errors.DeserializationError(
                    f"Type {type_name!r} is not a {declared.__qualname__}"
                )
        elif declared is not None:
            cls = declared
        else:
            raise confstore.errors.DeserializationError(
                f"Element <{local_name(el.tag)}> has no type attribute "
                "and no class was supplied"
            )

        try:
            return cls()
        except Exception as exc:
            raise confstore.errors.DeserializationError(
                f"Cannot instantiate {cls.__qualname__}: {exc}", exc
            ) from exc

    def populate(self, obj: object, el: ElementTree.Element) -> object:
        descriptor = self.registry.descriptor(type(obj))
        for child in el:
            self.populate_field(obj, descriptor, child)
        return obj

    def populate_field(
        self,
        obj: object,
        descriptor: confstore.descriptor.ConfigurationDescriptor,
        child: ElementTree.Element,
    ) -> None:
        name = local_name(child.tag)
        fd = descriptor.field_for(name)
        if fd is None:
            raise confstore.errors.DeserializationError(
                f"No field for element <{name}> in {type(obj).__qualname__}"
            )
        where = f"{type(obj).__qualname__}.{fd.attr}"

        if fd.kind is confstore.descriptor.FieldKind.COLLECTION:
            if len(child) == 0:
                if (child.text or "").strip():
                    raise confstore.errors.DeserializationError(
                        f"Collection element <{name}> has text but no items ({where})"
                    )
                return
            items = [self.collection_item(fd, item, where) for item in child]
            container = fd.container or list
            self.assign(obj, fd, container(items))
            return

        if len(child) == 0:
            text = child.text or ""
            if fd.kind is confstore.descriptor.FieldKind.NESTED:
                # Nested object written with no persisted fields.
                value = self.instantiate(child, fd.value_type)
                self.assign(obj, fd, value)
                return
            if not text and fd.value_type is not str:
                return
            self.assign(obj, fd, self.scalar(fd, text, where))
            return

        if fd.kind is not confstore.descriptor.FieldKind.NESTED:
            raise confstore.errors.DeserializationError(
                f"Element <{name}> has children but {where} is a scalar"
            )
        nested = self.instantiate(child, fd.value_type)
        self.populate(nested, child)
        self.assign(obj, fd, nested)

    def collection_item(
        self,
        fd: confstore.descriptor.FieldDescriptor,
        el: ElementTree.Element,
        where: str,
    ) -> object:
        if confstore.descriptor.is_config_class(fd.value_type):
            return self.populate(self.instantiate(el, fd.value_type), el)
        if len(el) != 0:
            raise confstore.errors.DeserializationError(
                f"Collection item <{local_name(el.tag)}> of {where} "
                "must be a simple value"
            )
        text = el.text or ""
        if not text and fd.value_type is not str:
            raise confstore.errors.DeserializationError(
                f"Empty collection item in {where}"
            )
        return self.scalar(fd, text, where)

    def scalar(
        self,
        fd: confstore.descriptor.FieldDescriptor,
        text: str,
        where: str,
    ) -> object:
        cl = fd.value_type
        if cl is str:
            return property_replace(text, self.env)
        if cl is bool:
            return text.strip().lower() in _TRUE_VALUES
        if cl is int:
            try:
                value = int(text.strip())
            except ValueError as exc:
                raise confstore.errors.DeserializationError(
                    f"Invalid integer {text!r} for {where}", exc
                ) from exc
            if not -fd.int_limit <= value < fd.int_limit:
                raise confstore.errors.DeserializationError(
                    f"Integer {value} out of {fd.int_bits}-bit range for {where}"
                )
            return value
        raise confstore.errors.DeserializationError(
            f"Unsupported scalar type {getattr(cl, '__name__', cl)} for {where}"
        )

    @staticmethod
    def assign(
        obj: object, fd: confstore.descriptor.FieldDescriptor, value: object
    ) -> None:
        try:
            setattr(obj, fd.attr, value)
        except Exception as exc:
            raise confstore.errors.DeserializationError(
                f"Cannot set {type(obj).__qualname__}.{fd.attr}: {exc}", exc
            ) from exc


def deserialize(
    root: ElementTree.Element,
    expected_type: type[T] | None = None,
    *,
    registry: confstore.registry.TypeRegistry | None = None,
    env: Mapping[str, str] | None = None,
) -> T:
    """Build a configuration object from parsed element *root*.

    *expected_type* wins over the root's ``type`` attribute. String values
    have ``${name}`` tokens replaced from *env* (``os.environ`` by default).
    """
    registry = registry or confstore.registry.REGISTRY
    reader = _Reader(registry, os.environ if env is None else env)
    try:
        if expected_type is not None:
            obj = reader.instantiate(root, expected_type, prefer_declared=True)
        else:
            obj = reader.instantiate(root, None)
        reader.populate(obj, root)
    except confstore.errors.DeserializationError:
        raise
    except confstore.errors.ResolutionError as exc:
        raise confstore.errors.DeserializationError(str(exc), exc) from exc
    except Exception as exc:
        raise confstore.errors.DeserializationError(
            f"Failed to load <{local_name(root.tag)}>: {exc}", exc
        ) from exc
    logger.debug("Deserialized %s", registry.type_name(type(obj)))
    return typing.cast(T, obj)


def from_xml(
    source: _Source,
    expected_type: type[T] | None = None,
    *,
    registry: confstore.registry.TypeRegistry | None = None,
    env: Mapping[str, str] | None = None,
) -> T:
    """Parse *source* and deserialize its root element."""
    return deserialize(
        parse_xml(source), expected_type, registry=registry, env=env
    )
