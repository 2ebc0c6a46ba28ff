"""Directory-backed configuration stores.

One ``<name>.xml`` file per configuration, one subdirectory per child store.
Writes overwrite in place: no locking, no atomic rename, no backup. When two
callers save the same name, the last write wins.
"""

from __future__ import annotations

import abc
import logging
import pathlib
import typing
from collections.abc import Mapping

import confstore.deserializer
import confstore.errors
import confstore.registry
import confstore.serializer

if typing.TYPE_CHECKING:
    import confstore.base

logger = logging.getLogger("confstore.store")

EXTENSION = ".xml"


def ensure_dir(path: pathlib.Path) -> pathlib.Path:
    """Return *path* if it is an existing directory, else raise StoreError."""
    if not path.exists():
        raise confstore.errors.StoreError(
            f"No configuration directory at {path.absolute()}"
        )
    if not path.is_dir():
        raise confstore.errors.StoreError(f"{path.absolute()} is not a directory")
    return path


class ConfigurationStore(abc.ABC):
    """A namespace of named configurations plus child stores."""

    @property
    @abc.abstractmethod
    def read_only(self) -> bool: ...

    @property
    @abc.abstractmethod
    def dir_path(self) -> pathlib.Path: ...

    @abc.abstractmethod
    def put(self, config: confstore.base.ConfigBase) -> None:
        """Save *config* under its own name, replacing any previous version."""

    @abc.abstractmethod
    def get(self, name: str, cls: type | None = None) -> typing.Any:
        """Load the configuration called *name*.

        Without *cls* the stored document's ``type`` attribute decides the class.
        """

    @abc.abstractmethod
    def list(self) -> set[str]:
        """Names of the configurations held directly in this store."""

    @abc.abstractmethod
    def child_store(self, name: str) -> ConfigurationStore: ...


class FileConfigurationStore(ConfigurationStore):
    def __init__(
        self,
        dir_path: str | pathlib.Path,
        *,
        read_only: bool = False,
        registry: confstore.registry.TypeRegistry | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._dir = ensure_dir(pathlib.Path(dir_path))
        self._read_only = read_only
        self._registry = registry
        self._env = env

    def __repr__(self) -> str:
        mode = "ro" if self._read_only else "rw"
        return f"FileConfigurationStore({str(self._dir)!r}, {mode})"

    @property
    def read_only(self) -> bool:
        return self._read_only

    @property
    def dir_path(self) -> pathlib.Path:
        return self._dir

    def path_for(self, name: str) -> pathlib.Path:
        return self._dir / f"{name}{EXTENSION}"

    def put(self, config: confstore.base.ConfigBase) -> None:
        if self._read_only:
            raise confstore.errors.StoreError(
                f"Store at {self._dir} is read-only"
            )
        if not config.name:
            raise confstore.errors.StoreError(
                "Cannot save a configuration without a name"
            )

        path = self.path_for(config.name)
        # Serialize fully before touching the file so a failure keeps the old one.
        text = confstore.serializer.to_xml(config, registry=self._registry)
        try:
            path.write_text(text, encoding="utf-8")
        except OSError as exc:
            raise confstore.errors.StoreError(f"Cannot write {path}: {exc}", exc) from exc
        logger.debug("Saved configuration %s to %s", config.name, path)

    def get(self, name: str, cls: type | None = None) -> typing.Any:
        path = self.path_for(name)
        if not path.is_file():
            raise confstore.errors.ConfigNotFoundError(name, path)

        try:
            with path.open("rb") as fh:
                config = confstore.deserializer.from_xml(
                    fh, cls, registry=self._registry, env=self._env
                )
        except OSError as exc:
            raise confstore.errors.StoreError(f"Cannot read {path}: {exc}", exc) from exc
        logger.debug("Loaded configuration %s from %s", name, path)
        return config

    def list(self) -> set[str]:
        try:
            return {
                p.name[: -len(EXTENSION)]
                for p in self._dir.iterdir()
                if p.is_file() and p.name.endswith(EXTENSION)
            }
        except OSError as exc:
            raise confstore.errors.StoreError(
                f"Cannot list {self._dir}: {exc}", exc
            ) from exc

    def child_stores(self) -> set[str]:
        """Names of the existing child stores."""
        return {p.name for p in self._dir.iterdir() if p.is_dir()}

    def child_store(self, name: str) -> FileConfigurationStore:
        """Return the store rooted at subdirectory *name*, creating it if absent."""
        path = self._dir / name
        if not path.exists() and not self._read_only:
            try:
                path.mkdir()
            except FileExistsError:
                pass
            except OSError as exc:
                raise confstore.errors.StoreError(
                    f"Cannot create store directory {path}: {exc}", exc
                ) from exc
            logger.debug("Created child store %s", path)
        return FileConfigurationStore(
            path,
            read_only=self._read_only,
            registry=self._registry,
            env=self._env,
        )
