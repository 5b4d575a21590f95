"""Tests for the SQLModel key-value storage."""

from __future__ import annotations

from plannerfin.domain.repositories import Namespace
from plannerfin.infra.database import create_session_factory
from plannerfin.infra.repositories import SQLModelKeyValueStorage


def test_durable_set_get_remove(storage):
    storage.set_item("plannerfinSettings", '{"theme": "dark"}')
    assert storage.get_item("plannerfinSettings") == '{"theme": "dark"}'

    storage.set_item("plannerfinSettings", '{"theme": "light"}')
    assert storage.get_item("plannerfinSettings") == '{"theme": "light"}'

    storage.remove_item("plannerfinSettings")
    assert storage.get_item("plannerfinSettings") is None


def test_namespaces_are_separate(storage):
    storage.set_item("plannerfinUser", "durable")
    storage.set_item("plannerfinUser", "transient", namespace=Namespace.TRANSIENT)

    assert storage.get_item("plannerfinUser") == "durable"
    assert storage.get_item("plannerfinUser", namespace=Namespace.TRANSIENT) == "transient"
    assert storage.keys() == ["plannerfinUser"]
    assert storage.keys(namespace=Namespace.TRANSIENT) == ["plannerfinUser"]


def test_durable_values_survive_a_new_storage_instance(storage, local_engine):
    storage.set_item("plannerfinUserData_abc", "{}")
    storage.set_item("plannerfinUser", "{}", namespace=Namespace.TRANSIENT)

    reopened = SQLModelKeyValueStorage(create_session_factory(local_engine))
    assert reopened.get_item("plannerfinUserData_abc") == "{}"
    assert reopened.get_item("plannerfinUser", namespace=Namespace.TRANSIENT) is None


def test_clear_by_prefix_keeps_foreign_keys(storage, config):
    storage.set_item("plannerfinUserData_u1", "{}")
    storage.set_item("plannerfinSettings", "{}")
    storage.set_item("otherApp_token", "keep")
    storage.set_item("plannerfinUser", "{}", namespace=Namespace.TRANSIENT)
    storage.set_item("sidebar", "open", namespace=Namespace.TRANSIENT)

    removed = storage.clear(prefixes=config.storage_namespace)

    assert removed == 3
    assert storage.keys() == ["otherApp_token"]
    assert storage.keys(namespace=Namespace.TRANSIENT) == ["sidebar"]


def test_clear_single_namespace(storage):
    storage.set_item("a", "1")
    storage.set_item("b", "2", namespace=Namespace.TRANSIENT)

    assert storage.clear(namespace=Namespace.TRANSIENT) == 1
    assert storage.keys() == ["a"]
    assert storage.keys(namespace=Namespace.TRANSIENT) == []


def test_clear_with_empty_prefix_list_removes_nothing(storage):
    storage.set_item("a", "1")
    assert storage.clear(prefixes=[]) == 0
    assert storage.get_item("a") == "1"


def test_clear_prefix_underscore_matches_literally(storage):
    storage.set_item("app_1", "x")
    storage.set_item("appX1", "keep")

    assert storage.clear(prefixes=["app_"]) == 1
    assert storage.keys() == ["appX1"]
