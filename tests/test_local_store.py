"""Tests for the local fallback profile store."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

from plannerfin.domain.repositories import Namespace
from plannerfin.services.local_store import LocalFallbackStore


def test_save_stamps_document_and_load_strips_stamps(local_store, storage, profile_factory):
    profile = profile_factory()

    assert local_store.save(profile.id, profile) is True

    raw = json.loads(storage.get_item(f"plannerfinUserData_{profile.id}"))
    assert raw["_schemaVersion"] == 1
    assert "_lastSaved" in raw
    assert raw["activeBudgetId"] == profile.active_budget_id

    assert local_store.load(profile.id) == profile


def test_load_missing_profile_returns_none(local_store):
    assert local_store.load("nobody") is None


def test_corrupt_document_is_ignored(local_store, storage):
    storage.set_item("plannerfinUserData_u1", "{not json")
    assert local_store.load("u1") is None

    storage.set_item("plannerfinUserData_u1", json.dumps({"id": "u1"}))
    assert local_store.load("u1") is None


def test_save_failure_is_reported_not_raised(config, profile_factory):
    storage = MagicMock()
    storage.set_item.side_effect = OSError("quota exceeded")
    store = LocalFallbackStore(storage, config)

    assert store.save("u1", profile_factory()) is False


def test_remove_deletes_only_that_user(local_store, profile_factory):
    alice = profile_factory(user_id="alice")
    bob = profile_factory(user_id="bob", email="bob@example.com")
    local_store.save(alice.id, alice)
    local_store.save(bob.id, bob)

    local_store.remove("alice")

    assert local_store.load("alice") is None
    assert local_store.load("bob") == bob


def test_remembered_user_lives_in_transient_storage(local_store, storage):
    local_store.remember_user("alice@example.com", "Alice")

    assert local_store.remembered_user() == {"email": "alice@example.com", "name": "Alice"}
    assert storage.get_item("plannerfinUser") is None


def test_remembered_user_requires_authenticated_flag(local_store, storage):
    storage.set_item(
        "plannerfinUser",
        json.dumps({"email": "alice@example.com", "authenticated": False}),
        namespace=Namespace.TRANSIENT,
    )
    assert local_store.remembered_user() is None


def test_backup_timestamp(local_store):
    assert local_store.last_backup() is None
    when = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    assert local_store.record_backup(when) is True
    assert local_store.last_backup() == when


def test_clear_namespace_wipes_both_namespaces(local_store, storage, profile_factory):
    profile = profile_factory()
    local_store.save(profile.id, profile)
    local_store.record_backup()
    local_store.remember_user(profile.email, profile.name)
    storage.set_item("plannerfinSettings", "{}")
    storage.set_item("unrelated", "keep")

    removed = local_store.clear_namespace()

    assert removed == 4
    assert storage.keys() == ["unrelated"]
    assert storage.keys(namespace=Namespace.TRANSIENT) == []
    assert local_store.load(profile.id) is None


def test_clear_namespace_never_raises(config):
    storage = MagicMock()
    storage.clear.side_effect = RuntimeError("disk gone")
    store = LocalFallbackStore(storage, config)

    assert store.clear_namespace() == 0
    assert storage.clear.call_count == 2
