"""Tests for confstore.registry."""

from __future__ import annotations

import dataclasses

import pytest

import confstore.base
import confstore.errors
import confstore.registry


@dataclasses.dataclass
class _Alpha(confstore.base.ConfigBase):
    level: int = 0


@dataclasses.dataclass
class _Beta(confstore.base.ConfigBase):
    pass


class _NotADataclass:
    pass


@pytest.fixture
def registry() -> confstore.registry.TypeRegistry:
    return confstore.registry.TypeRegistry()


class TestRegister:
    def test_lookup_registered(self, registry: confstore.registry.TypeRegistry) -> None:
        registry.register("test.Alpha", _Alpha, "alpha")
        assert registry.lookup("test.Alpha") is _Alpha
        assert "test.Alpha" in registry
        assert registry.names() == {"test.Alpha": _Alpha}

    def test_type_and_element_names(
        self, registry: confstore.registry.TypeRegistry
    ) -> None:
        registry.register("test.Alpha", _Alpha, "alpha")
        assert registry.type_name(_Alpha) == "test.Alpha"
        assert registry.element_name(_Alpha) == "alpha"

    def test_element_name_defaults_to_type_name(
        self, registry: confstore.registry.TypeRegistry
    ) -> None:
        registry.register("test.Beta", _Beta)
        assert registry.element_name(_Beta) == "test.Beta"

    def test_unregistered_class_names(
        self, registry: confstore.registry.TypeRegistry
    ) -> None:
        expected = f"{__name__}._Beta"
        assert registry.type_name(_Beta) == expected
        assert registry.element_name(_Beta) == expected

    def test_unknown_lookup(self, registry: confstore.registry.TypeRegistry) -> None:
        with pytest.raises(KeyError, match="Unknown configuration type"):
            registry.lookup("test.Missing")

    def test_same_class_twice_is_noop(
        self, registry: confstore.registry.TypeRegistry
    ) -> None:
        registry.register("test.Alpha", _Alpha)
        registry.register("test.Alpha", _Alpha)
        assert registry.lookup("test.Alpha") is _Alpha

    def test_conflicting_class_rejected(
        self, registry: confstore.registry.TypeRegistry
    ) -> None:
        registry.register("test.Alpha", _Alpha)
        with pytest.raises(confstore.errors.ResolutionError, match="already registered"):
            registry.register("test.Alpha", _Beta)

    def test_non_dataclass_rejected(
        self, registry: confstore.registry.TypeRegistry
    ) -> None:
        with pytest.raises(confstore.errors.ResolutionError, match="not a dataclass"):
            registry.register("test.Plain", _NotADataclass)


class TestDescriptorCache:
    def test_descriptor_is_cached(
        self, registry: confstore.registry.TypeRegistry
    ) -> None:
        first = registry.descriptor(_Alpha)
        assert registry.descriptor(_Alpha) is first
        assert [f.attr for f in first] == ["level", "name"]


class TestConfigtype:
    def test_decorator_registers_and_returns_class(
        self, registry: confstore.registry.TypeRegistry
    ) -> None:
        decorated = confstore.registry.configtype(
            "test.Decorated", "decorated", registry=registry
        )(_Alpha)
        assert decorated is _Alpha
        assert registry.lookup("test.Decorated") is _Alpha

    def test_global_registry_knows_orm_config(self) -> None:
        cls = confstore.registry.REGISTRY.lookup("confstore.OrmConfig")
        assert cls is confstore.base.OrmConfig
        assert confstore.registry.REGISTRY.element_name(cls) == "orm-config"
