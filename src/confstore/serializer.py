"""Serializer: write a configuration object graph as an XML document.

Every object-valued element carries a ``type`` attribute naming the
registered type, which is all the deserializer needs to rebuild the graph::

    <?xml version="1.0" encoding="UTF-8"?>
    <syslog-conf xmlns="http://bedework.org/ns/" type="example.SyslogConf">
      <facilities>
        <facility>auth</facility>
        <facility>mail</facility>
      </facilities>
      <host>loghost</host>
      <name>syslog</name>
      <port>514</port>
    </syslog-conf>
"""

from __future__ import annotations

import io
import logging
import re
import typing
from xml.sax import saxutils

import confstore.descriptor
import confstore.errors
import confstore.registry

logger = logging.getLogger("confstore.serializer")

NAMESPACE = "http://bedework.org/ns/"

_INDENT = "  "

# Element names we emit: no colon, ASCII punctuation limited to "_.-".
_XML_NAME = re.compile(r"[^\W\d][\w.\-]*")

# Parsers normalize "\r" and "\r\n" to "\n"; a character reference survives.
_CR_REF = "&#13;"


def format_scalar(value: object) -> str:
    """Text form of a scalar value (booleans as ``true``/``false``)."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _cdata(text: str) -> str:
    # "]]>" cannot appear inside a CDATA section; split it across two.
    # "\r" is written as a reference between two sections.
    body = text.replace("]]>", "]]]]><![CDATA[>").replace(
        "\r", f"]]>{_CR_REF}<![CDATA["
    )
    return "<![CDATA[" + body + "]]>"


class XmlEmitter:
    """Minimal indenting XML writer over a text stream."""

    def __init__(self, writer: typing.TextIO) -> None:
        self._out = writer
        self._depth = 0

    def declaration(self) -> None:
        self._out.write('<?xml version="1.0" encoding="UTF-8"?>\n')

    def _start(self, tag: str, attrs: dict[str, str] | None) -> str:
        if not _XML_NAME.fullmatch(tag):
            raise confstore.errors.SerializationError(
                f"Invalid XML element name {tag!r}"
            )
        parts = [f"{_INDENT * self._depth}<{tag}"]
        for key, value in (attrs or {}).items():
            parts.append(f" {key}={saxutils.quoteattr(value)}")
        return "".join(parts)

    def open_tag(self, tag: str, attrs: dict[str, str] | None = None) -> None:
        self._out.write(self._start(tag, attrs) + ">\n")
        self._depth += 1

    def close_tag(self, tag: str) -> None:
        self._depth -= 1
        self._out.write(f"{_INDENT * self._depth}</{tag}>\n")

    def property(self, tag: str, text: str) -> None:
        """Leaf element; text with ``&`` or ``<`` goes in a CDATA section."""
        if "&" in text or "<" in text:
            body = _cdata(text)
        else:
            body = saxutils.escape(text, {"\r": _CR_REF})
        self._out.write(f"{self._start(tag, None)}>{body}</{tag}>\n")


class _Writer:
    def __init__(
        self,
        emitter: XmlEmitter,
        registry: confstore.registry.TypeRegistry,
    ) -> None:
        self.xml = emitter
        self.registry = registry

    def dump_object(
        self,
        obj: object,
        tag: str | None = None,
        extra_attrs: dict[str, str] | None = None,
    ) -> None:
        cls = type(obj)
        descriptor = self.registry.descriptor(cls)
        if tag is None:
            tag = self.registry.element_name(cls)
        attrs = dict(extra_attrs or {})
        attrs["type"] = self.registry.type_name(cls)

        self.xml.open_tag(tag, attrs)
        for fd in descriptor:
            try:
                value = getattr(obj, fd.attr)
            except AttributeError as exc:
                raise confstore.errors.SerializationError(
                    f"Cannot read {cls.__qualname__}.{fd.attr}", exc
                ) from exc
            self.dump_value(fd, value)
        self.xml.close_tag(tag)

    def dump_value(
        self, fd: confstore.descriptor.FieldDescriptor, value: object
    ) -> None:
        if value is None:
            return

        kind = fd.kind
        if kind is confstore.descriptor.FieldKind.NESTED:
            self.check_object(fd, value)
            self.dump_object(value, fd.element_name)
        elif kind is confstore.descriptor.FieldKind.COLLECTION:
            self.dump_collection(fd, value)
        else:
            self.check_scalar(fd, value)
            self.xml.property(fd.element_name, format_scalar(value))

    def dump_collection(
        self, fd: confstore.descriptor.FieldDescriptor, value: object
    ) -> None:
        if not isinstance(value, (list, tuple, set, frozenset)):
            raise confstore.errors.SerializationError(
                f"Field {fd.attr!r} holds {type(value).__name__}, expected a collection"
            )
        if not value:
            return

        items = sorted(value) if isinstance(value, (set, frozenset)) else value
        objects = confstore.descriptor.is_config_class(fd.value_type)
        self.xml.open_tag(fd.element_name)
        for item in items:
            if item is None:
                continue
            if objects:
                self.check_object(fd, item)
                self.dump_object(item, fd.collection_element_name)
            else:
                self.check_scalar(fd, item)
                tag = fd.collection_element_name or fd.element_type_name
                self.xml.property(tag, format_scalar(item))
        self.xml.close_tag(fd.element_name)

    @staticmethod
    def check_object(fd: confstore.descriptor.FieldDescriptor, value: object) -> None:
        if not isinstance(value, fd.value_type):
            raise confstore.errors.SerializationError(
                f"Field {fd.attr!r} holds {type(value).__name__}, "
                f"expected {fd.element_type_name}"
            )

    @staticmethod
    def check_scalar(fd: confstore.descriptor.FieldDescriptor, value: object) -> None:
        """Refuse values the reader could not turn back into the field type."""
        expected = fd.value_type
        # bool is an int subclass but is written as true/false.
        matches = isinstance(value, expected) and (
            expected is bool or not isinstance(value, bool)
        )
        if not matches:
            raise confstore.errors.SerializationError(
                f"Field {fd.attr!r} holds {type(value).__name__}, "
                f"expected {fd.element_type_name}"
            )
        if expected is int and not -fd.int_limit <= value < fd.int_limit:  # type: ignore[operator]
            raise confstore.errors.SerializationError(
                f"Integer {value} out of {fd.int_bits}-bit range for field {fd.attr!r}"
            )


def serialize(
    obj: object,
    writer: typing.TextIO,
    *,
    registry: confstore.registry.TypeRegistry | None = None,
    namespace: str = NAMESPACE,
) -> None:
    """Write *obj* as a complete XML document to *writer*."""
    registry = registry or confstore.registry.REGISTRY
    emitter = XmlEmitter(writer)
    try:
        emitter.declaration()
        _Writer(emitter, registry).dump_object(obj, extra_attrs={"xmlns": namespace})
        writer.flush()
    except confstore.errors.SerializationError:
        raise
    except Exception as exc:
        raise confstore.errors.SerializationError(
            f"Failed to serialize {type(obj).__qualname__}: {exc}", exc
        ) from exc
    logger.debug("Serialized %s", registry.type_name(type(obj)))


def to_xml(
    obj: object,
    *,
    registry: confstore.registry.TypeRegistry | None = None,
    namespace: str = NAMESPACE,
) -> str:
    """Return *obj* serialized as an XML string."""
    buf = io.StringIO()
    serialize(obj, buf, registry=registry, namespace=namespace)
    return buf.getvalue()
