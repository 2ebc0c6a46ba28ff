"""Management layer: expose configurations as manageable beans.

A :class:`ManagedConfig` owns one named configuration. It reports a status
string, reloads the configuration from its store and saves it back. Beans are
registered under an :class:`ObjectName` in an explicit
:class:`ManagementRegistry`, which the application creates at startup and
closes at shutdown.

``load_config`` and ``save_config`` are where marshalling and store failures
stop: they are logged and reported as a status string, never raised.
"""

from __future__ import annotations

import dataclasses
import logging
import pathlib
import typing

import confstore.locator
import confstore.store

if typing.TYPE_CHECKING:
    import confstore.base

logger = logging.getLogger("confstore.management")

STATUS_DONE = "Done"
STATUS_FAILED = "Failed"
STATUS_RUNNING = "Running"
STATUS_STOPPED = "Stopped"
STATUS_TIMEDOUT = "Timedout"
STATUS_INTERRUPTED = "Interrupted"
STATUS_UNKNOWN = "Unknown"

_QUOTE_CHARS = frozenset(',=:"*?\n')


@dataclasses.dataclass(frozen=True)
class ObjectName:
    """``domain:key=value,key=value`` bean name."""

    domain: str
    properties: tuple[tuple[str, str], ...]

    @classmethod
    def parse(cls, text: str) -> ObjectName:
        domain, sep, rest = text.partition(":")
        if not sep or not domain or not rest:
            raise ValueError(f"Invalid object name: {text!r}")
        props: list[tuple[str, str]] = []
        for part in _split_properties(rest):
            key, eq, value = part.partition("=")
            if not eq or not key:
                raise ValueError(f"Invalid object name property {part!r} in {text!r}")
            props.append((key, _unquote(value)))
        return cls(domain, tuple(props))

    def get(self, key: str) -> str | None:
        for k, v in self.properties:
            if k == key:
                return v
        return None

    def __str__(self) -> str:
        props = ",".join(f"{k}={quote_value(v)}" for k, v in self.properties)
        return f"{self.domain}:{props}"


def quote_value(value: str) -> str:
    """Quote an object-name value if it contains reserved characters."""
    if not any(ch in _QUOTE_CHARS for ch in value):
        return value
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("*", "\\*")
        .replace("?", "\\?")
        .replace("\n", "\\n")
    )
    return f'"{escaped}"'


def _unquote(value: str) -> str:
    if len(value) < 2 or not (value.startswith('"') and value.endswith('"')):
        return value
    out: list[str] = []
    chars = iter(value[1:-1])
    for ch in chars:
        if ch == "\\":
            nxt = next(chars, "")
            out.append("\n" if nxt == "n" else nxt)
        else:
            out.append(ch)
    return "".join(out)


def _split_properties(text: str) -> list[str]:
    # Split on commas outside quoted values.
    parts: list[str] = []
    current: list[str] = []
    quoted = escaped = False
    for ch in text:
        if escaped:
            escaped = False
        elif ch == "\\" and quoted:
            escaped = True
        elif ch == '"':
            quoted = not quoted
        elif ch == "," and not quoted:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    parts.append("".join(current))
    return parts


def _as_name(name: ObjectName | str) -> ObjectName:
    return name if isinstance(name, ObjectName) else ObjectName.parse(name)


class ManagementRegistry:
    """Registered beans keyed by object name."""

    def __init__(self) -> None:
        self._beans: dict[ObjectName, object] = {}

    def register(self, name: ObjectName | str, bean: object) -> bool:
        """Register *bean*; returns False (and logs) if the name is taken."""
        key = _as_name(name)
        if key in self._beans:
            logger.warning("Failed to register bean %s: name already registered", key)
            return False
        self._beans[key] = bean
        logger.debug("Registered bean %s", key)
        return True

    def unregister(self, name: ObjectName | str) -> bool:
        key = _as_name(name)
        if key not in self._beans:
            logger.debug("Bean %s was not registered", key)
            return False
        del self._beans[key]
        logger.debug("Unregistered bean %s", key)
        return True

    def get(self, name: ObjectName | str) -> object | None:
        return self._beans.get(_as_name(name))

    def names(self) -> list[ObjectName]:
        return sorted(self._beans, key=str)

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, (ObjectName, str)):
            return False
        return _as_name(name) in self._beans

    def __len__(self) -> int:
        return len(self._beans)

    def close(self) -> None:
        """Unregister every bean."""
        for key in list(self._beans):
            self.unregister(key)


class ManagedConfig:
    """Manageable wrapper around one named, stored configuration.

    The store is either given directly or located lazily from
    *config_directory* (and optional *path_suffix*) under the configuration
    root, see :func:`confstore.locator.locate_config_dir`.
    """

    def __init__(
        self,
        service_name: str,
        config_name: str,
        config_type: type | None = None,
        *,
        store: confstore.store.ConfigurationStore | None = None,
        config_directory: str | None = None,
        path_suffix: str | None = None,
        registry: ManagementRegistry | None = None,
    ) -> None:
        self.service_name = service_name
        self.config_name = config_name
        self.config_type = config_type
        self.config_directory = config_directory
        self.path_suffix = path_suffix
        self.registry = registry
        self._store = store
        self._config: confstore.base.ConfigBase | None = None
        self._status = STATUS_UNKNOWN
        self._running = True

    # ------------------------------------------------------------------
    # Status and lifecycle
    # ------------------------------------------------------------------

    @property
    def status(self) -> str:
        return self._status

    def set_status(self, value: str) -> None:
        self._status = value

    def start(self) -> None:
        self._running = True
        self._status = STATUS_RUNNING

    def stop(self) -> None:
        self._running = False
        self._status = STATUS_STOPPED

    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Store and configuration
    # ------------------------------------------------------------------

    def set_store(self, store: confstore.store.ConfigurationStore) -> None:
        self._store = store

    def get_store(self) -> confstore.store.ConfigurationStore:
        if self._store is None:
            path: pathlib.Path = confstore.locator.locate_config_dir(
                self.config_directory or "", self.path_suffix
            )
            self._store = confstore.store.FileConfigurationStore(path)
        return self._store

    @property
    def config(self) -> confstore.base.ConfigBase | None:
        return self._config

    @config.setter
    def config(self, value: confstore.base.ConfigBase | None) -> None:
        self._config = value

    def load_config(self) -> str:
        """(Re)load the configuration; returns a status string.

        ``"OK"`` on success and ``"failed"`` when the store raises. A store that
        returns ``None`` instead of raising (possible for custom
        :class:`~confstore.store.ConfigurationStore` implementations, never for
        the file store) yields ``"Unable to read configuration"`` and keeps the
        previous configuration.
        """
        try:
            cfg = self.get_store().get(self.config_name, self.config_type)
        except Exception as exc:
            logger.error(
                "Failed to load configuration %s: %s",
                self.config_name,
                exc,
                exc_info=True,
            )
            return "failed"
        if cfg is None:
            return "Unable to read configuration"
        self._config = cfg
        return "OK"

    def save_config(self) -> str:
        """Save the configuration under this bean's name; returns a status string."""
        config = self._config
        if config is None:
            return "No configuration to save"
        try:
            config.name = self.config_name
            self.get_store().put(config)
        except Exception as exc:
            logger.error(
                "Failed to save configuration %s: %s",
                self.config_name,
                exc,
                exc_info=True,
            )
            return str(exc)
        return "saved"

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def service_object_name(self) -> ObjectName:
        return ObjectName.parse(self.service_name)

    def object_name(self, service_type: str, name: str) -> ObjectName:
        """Name for a bean of *service_type* called *name* within this service."""
        service = self.service_object_name()
        return ObjectName(
            service.domain,
            (
                ("service", service.get("service") or ""),
                ("Type", service_type),
                ("Name", name),
            ),
        )

    def register(self, service_type: str, name: str, view: object) -> bool:
        if self.registry is None:
            logger.error("Failed to register %s:%s: no registry", service_type, name)
            return False
        try:
            key = self.object_name(service_type, name)
        except ValueError:
            logger.error("Failed to register %s:%s", service_type, name, exc_info=True)
            return False
        return self.registry.register(key, view)

    def unregister(self, service_type: str, name: str) -> bool:
        if self.registry is None:
            return False
        try:
            key = self.object_name(service_type, name)
        except ValueError:
            logger.error("Failed to unregister %s:%s", service_type, name, exc_info=True)
            return False
        return self.registry.unregister(key)
