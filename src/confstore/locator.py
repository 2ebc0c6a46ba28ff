"""Locate named configuration directories under the configured root."""

from __future__ import annotations

import pathlib

import confstore.errors
import confstore.settings
import confstore.store


def config_root(root: str | pathlib.Path | None = None) -> pathlib.Path:
    """Return the existing configuration root directory.

    Falls back to the ``store.config_root`` setting (``CONFSTORE_CONFIG_DIR``
    takes precedence over the TOML files).
    """
    if root is None:
        root = confstore.settings.load("store").config_root
    if not root:
        raise confstore.errors.StoreError(
            "No configuration root: set store.config_root or "
            f"${confstore.settings.CONFIG_DIR_ENV}"
        )
    return confstore.store.ensure_dir(pathlib.Path(root))


def locate_config_dir(
    config_directory: str,
    path_suffix: str | None = None,
    *,
    root: str | pathlib.Path | None = None,
) -> pathlib.Path:
    """Resolve ``<root>/<config_directory>[/<path_suffix>]``; every level must exist."""
    if not config_directory:
        raise confstore.errors.StoreError("Must supply a config directory name")

    config_path = confstore.store.ensure_dir(config_root(root) / config_directory)
    if path_suffix is None:
        return config_path
    return confstore.store.ensure_dir(config_path / path_suffix)
