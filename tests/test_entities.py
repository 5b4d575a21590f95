"""Tests for domain entities and identifier helpers."""

from __future__ import annotations

import re
from dataclasses import replace

import pytest

from plannerfin.domain.entities import (
    Budget,
    CollaborationResult,
    CollaborationStatus,
    UserProfile,
    derive_user_id,
    generate_budget_code,
    normalize_amount,
    validate_entry_type,
)
from plannerfin.domain.errors import PlannerFinError


def test_derive_user_id_is_deterministic_and_case_insensitive():
    assert derive_user_id("Alice@Example.com ") == derive_user_id("alice@example.com")
    assert derive_user_id("alice@example.com") != derive_user_id("bob@example.com")


def test_derive_user_id_requires_email():
    with pytest.raises(ValueError):
        derive_user_id("   ")


def test_budget_code_format():
    code = generate_budget_code()
    assert re.fullmatch(r"PF[A-Z0-9]{6}", code)


def test_budget_code_skips_existing(monkeypatch):
    choices = iter("AAAAAABBBBBB")
    monkeypatch.setattr("plannerfin.domain.entities.secrets.choice", lambda _alphabet: next(choices))
    assert generate_budget_code(["PFAAAAAA"]) == "PFBBBBBB"


def test_normalize_amount_sign_convention():
    assert normalize_amount(50, "expense") == -50.0
    assert normalize_amount(-50, "expense") == -50.0
    assert normalize_amount(-3000, "income") == 3000.0


@pytest.mark.parametrize("amount", [0, -0.0, float("nan"), float("inf"), float("-inf")])
def test_normalize_amount_rejects_zero_and_non_finite(amount):
    with pytest.raises(PlannerFinError):
        normalize_amount(amount, "expense")


def test_invalid_entry_type_rejected():
    with pytest.raises(ValueError):
        validate_entry_type("transfer")
    with pytest.raises(ValueError):
        normalize_amount(10, "refund")


def test_budget_access_rules():
    budget = Budget(id="b1", name="Casa", code="PF123456", owner_id="a", collaborators=("b",))
    assert budget.has_access("a")
    assert budget.has_access("b")
    assert not budget.has_access("c")


def test_profile_document_uses_camel_case(profile_factory, entry_factory):
    profile = profile_factory()
    budget = profile.budgets[0]
    profile = profile.replace_budget(budget.with_entries([entry_factory(budget.id)]))

    document = profile.to_dict()

    assert document["activeBudgetId"] == budget.id
    assert document["budgets"][0]["ownerId"] == profile.id
    assert document["budgets"][0]["entries"][0]["budgetId"] == budget.id
    assert UserProfile.from_dict(document) == profile


def test_profile_details_are_optional_in_document(profile_factory):
    profile = profile_factory()
    assert "bio" not in profile.to_dict()

    detailed = replace(profile, bio="Economista", avatar="https://img.example/a.png")
    document = detailed.to_dict()

    assert document["bio"] == "Economista"
    assert "phone" not in document
    assert UserProfile.from_dict(document) == detailed


def test_active_budget_lookup(profile_factory):
    profile = profile_factory()
    assert profile.active_budget is profile.budgets[0]
    assert profile.find_budget("missing") is None


def test_collaboration_stub_result():
    result = CollaborationResult.not_implemented()
    assert result.status is CollaborationStatus.NOT_IMPLEMENTED
