"""Tests for confstore.store.FileConfigurationStore."""

from __future__ import annotations

import dataclasses
import pathlib

import pytest

import confstore.base
import confstore.errors
import confstore.registry
import confstore.store
from confstore.descriptor import conf_field

REG = confstore.registry.TypeRegistry()


@confstore.registry.configtype("test.Mail", "mail-conf", registry=REG)
@dataclasses.dataclass
class _MailConf(confstore.base.ConfigBase):
    server: str | None = None
    port: int = conf_field(default=25, int_bits=32)
    recipients: list[str] = conf_field(
        default_factory=list, collection_element_name="recipient"
    )


@confstore.registry.configtype("test.MailCopy", "mail-copy", registry=REG)
@dataclasses.dataclass
class _MailCopy(_MailConf):
    pass


def _store(path: pathlib.Path, **kwargs) -> confstore.store.FileConfigurationStore:
    return confstore.store.FileConfigurationStore(path, registry=REG, env={}, **kwargs)


class TestEnsureDir:
    def test_missing(self, tmp_path: pathlib.Path) -> None:
        with pytest.raises(confstore.errors.StoreError, match="No configuration directory"):
            confstore.store.ensure_dir(tmp_path / "missing")

    def test_not_a_directory(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "file"
        path.write_text("x")
        with pytest.raises(confstore.errors.StoreError, match="is not a directory"):
            confstore.store.ensure_dir(path)

    def test_existing(self, store_dir: pathlib.Path) -> None:
        assert confstore.store.ensure_dir(store_dir) == store_dir

    def test_constructor_checks_directory(self, tmp_path: pathlib.Path) -> None:
        with pytest.raises(confstore.errors.StoreError):
            _store(tmp_path / "missing")


class TestPutGet:
    def test_round_trip(self, store_dir: pathlib.Path) -> None:
        store = _store(store_dir)
        conf = _MailConf(name="mail", server="smtp", recipients=["a@x", "b@x"])
        store.put(conf)
        assert (store_dir / "mail.xml").is_file()
        assert store.get("mail") == conf

    def test_file_content(self, store_dir: pathlib.Path) -> None:
        _store(store_dir).put(_MailConf(name="mail", server="smtp"))
        text = (store_dir / "mail.xml").read_text(encoding="utf-8")
        assert text.startswith('<?xml version="1.0" encoding="UTF-8"?>\n<mail-conf ')
        assert 'type="test.Mail"' in text
        assert "<server>smtp</server>" in text

    def test_put_overwrites(self, store_dir: pathlib.Path) -> None:
        store = _store(store_dir)
        store.put(_MailConf(name="mail", port=1))
        store.put(_MailConf(name="mail", port=2))
        assert store.get("mail").port == 2
        assert store.list() == {"mail"}

    def test_get_with_class(self, store_dir: pathlib.Path) -> None:
        store = _store(store_dir)
        store.put(_MailConf(name="mail", server="smtp"))
        loaded = store.get("mail", _MailCopy)
        assert type(loaded) is _MailCopy
        assert loaded.server == "smtp"

    def test_get_missing(self, store_dir: pathlib.Path) -> None:
        with pytest.raises(confstore.errors.ConfigNotFoundError, match="does not exist") as info:
            _store(store_dir).get("nope")
        assert info.value.name == "nope"

    def test_get_env_replacement(self, store_dir: pathlib.Path) -> None:
        (store_dir / "mail.xml").write_text(
            '<mail-conf type="test.Mail"><server>${SMTP}</server></mail-conf>'
        )
        store = confstore.store.FileConfigurationStore(
            store_dir, registry=REG, env={"SMTP": "relay"}
        )
        assert store.get("mail").server == "relay"

    def test_get_malformed(self, store_dir: pathlib.Path) -> None:
        (store_dir / "bad.xml").write_text("<mail-conf")
        with pytest.raises(confstore.errors.DeserializationError):
            _store(store_dir).get("bad")

    def test_put_without_name(self, store_dir: pathlib.Path) -> None:
        with pytest.raises(confstore.errors.StoreError, match="without a name"):
            _store(store_dir).put(_MailConf())

    def test_put_read_only(self, store_dir: pathlib.Path) -> None:
        store = _store(store_dir, read_only=True)
        assert store.read_only is True
        with pytest.raises(confstore.errors.StoreError, match="read-only"):
            store.put(_MailConf(name="mail"))
        assert not (store_dir / "mail.xml").exists()


class TestListing:
    def test_list_only_xml_files(self, store_dir: pathlib.Path) -> None:
        store = _store(store_dir)
        store.put(_MailConf(name="one"))
        store.put(_MailConf(name="two"))
        (store_dir / "notes.txt").write_text("x")
        (store_dir / "sub.xml").mkdir()
        assert store.list() == {"one", "two"}

    def test_list_empty(self, store_dir: pathlib.Path) -> None:
        assert _store(store_dir).list() == set()

    def test_child_stores(self, store_dir: pathlib.Path) -> None:
        (store_dir / "a").mkdir()
        (store_dir / "b").mkdir()
        (store_dir / "c.xml").write_text("<x/>")
        assert _store(store_dir).child_stores() == {"a", "b"}


class TestChildStore:
    def test_created_on_demand(self, store_dir: pathlib.Path) -> None:
        child = _store(store_dir).child_store("nested")
        assert (store_dir / "nested").is_dir()
        assert child.dir_path == store_dir / "nested"

    def test_child_is_independent(self, store_dir: pathlib.Path) -> None:
        parent = _store(store_dir)
        child = parent.child_store("nested")
        child.put(_MailConf(name="inner"))
        assert child.list() == {"inner"}
        assert parent.list() == set()
        assert child.get("inner").name == "inner"

    def test_existing_child_reused(self, store_dir: pathlib.Path) -> None:
        parent = _store(store_dir)
        parent.child_store("nested").put(_MailConf(name="inner"))
        assert parent.child_store("nested").list() == {"inner"}

    def test_read_only_does_not_create(self, store_dir: pathlib.Path) -> None:
        with pytest.raises(confstore.errors.StoreError):
            _store(store_dir, read_only=True).child_store("nested")
        assert not (store_dir / "nested").exists()

    def test_read_only_inherited(self, store_dir: pathlib.Path) -> None:
        (store_dir / "nested").mkdir()
        child = _store(store_dir, read_only=True).child_store("nested")
        assert child.read_only is True

    def test_child_name_is_file(self, store_dir: pathlib.Path) -> None:
        (store_dir / "plain").write_text("x")
        with pytest.raises(confstore.errors.StoreError, match="is not a directory"):
            _store(store_dir).child_store("plain")


@confstore.registry.configtype("test.Ratio", "ratio-conf", registry=REG)
@dataclasses.dataclass
class _RatioConf(confstore.base.ConfigBase):
    ratio: float = 0.5


class TestWriteFailures:
    def test_unsupported_field_type_not_written(self, store_dir: pathlib.Path) -> None:
        with pytest.raises(confstore.errors.SerializationError, match="ratio"):
            _store(store_dir).put(_RatioConf(name="c", ratio=1.5))
        assert not (store_dir / "c.xml").exists()

    def test_failed_put_keeps_previous_file(self, store_dir: pathlib.Path) -> None:
        store = _store(store_dir)
        store.put(_MailConf(name="mail", port=25))
        with pytest.raises(confstore.errors.SerializationError, match="32-bit"):
            store.put(_MailConf(name="mail", port=2**40))
        assert store.get("mail").port == 25

    def test_put_then_get_keeps_carriage_returns(self, store_dir: pathlib.Path) -> None:
        store = _store(store_dir)
        store.put(_MailConf(name="mail", server="a\r\nb", recipients=["x\ry"]))
        loaded = store.get("mail")
        assert loaded.server == "a\r\nb"
        assert loaded.recipients == ["x\ry"]
