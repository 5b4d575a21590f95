"""Tests for the password identity provider and auth events."""

from __future__ import annotations

import pytest
from sqlmodel import select

from plannerfin.domain.entities import AuthEvent
from plannerfin.domain.errors import AuthError
from plannerfin.models import AuthUserRecord


@pytest.mark.asyncio
async def test_sign_up_opens_session_and_hashes_password(identity, remote_factory):
    events = []
    identity.on_auth_state_change(lambda event, session: events.append(event))

    session = await identity.sign_up(email=" Alice@Example.com", password="s3cret", name="Alice")

    assert session.user.email == "alice@example.com"
    assert await identity.get_session() == session
    assert events == [AuthEvent.SIGNED_IN]
    with remote_factory() as db:
        row = db.exec(select(AuthUserRecord)).one()
    assert row.password_hash != "s3cret"
    assert row.password_hash.startswith("$argon2")


@pytest.mark.asyncio
async def test_duplicate_sign_up_rejected(identity):
    await identity.sign_up(email="alice@example.com", password="one")
    with pytest.raises(AuthError):
        await identity.sign_up(email="ALICE@example.com", password="two")


@pytest.mark.asyncio
async def test_sign_in_checks_password(identity):
    created = await identity.sign_up(email="alice@example.com", password="right")
    await identity.sign_out()

    assert await identity.sign_in_with_password(email="alice@example.com", password="wrong") is None
    assert await identity.sign_in_with_password(email="nobody@example.com", password="right") is None

    session = await identity.sign_in_with_password(email="alice@example.com", password="right")
    assert session is not None
    assert session.user.id == created.user.id
    assert session.access_token != created.access_token


@pytest.mark.asyncio
async def test_sign_out_emits_once(identity):
    events = []
    identity.on_auth_state_change(lambda event, session: events.append((event, session)))
    await identity.sign_up(email="alice@example.com", password="pw")

    await identity.sign_out()
    await identity.sign_out()

    assert [event for event, _ in events] == [AuthEvent.SIGNED_IN, AuthEvent.SIGNED_OUT]
    assert events[-1][1] is None
    assert await identity.get_session() is None


@pytest.mark.asyncio
async def test_refresh_rotates_token(identity):
    assert await identity.refresh_session() is None
    first = await identity.sign_up(email="alice@example.com", password="pw")
    events = []
    identity.on_auth_state_change(lambda event, session: events.append(event))

    refreshed = await identity.refresh_session()

    assert refreshed.user == first.user
    assert refreshed.access_token != first.access_token
    assert events == [AuthEvent.TOKEN_REFRESHED]


@pytest.mark.asyncio
async def test_failing_listener_does_not_block_others(identity):
    seen = []

    def broken(event, session):
        raise RuntimeError("listener bug")

    identity.on_auth_state_change(broken)
    identity.on_auth_state_change(lambda event, session: seen.append(event))

    await identity.sign_up(email="alice@example.com", password="pw")

    assert seen == [AuthEvent.SIGNED_IN]


@pytest.mark.asyncio
async def test_unsubscribe_stops_events(identity):
    seen = []
    unsubscribe = identity.on_auth_state_change(lambda event, session: seen.append(event))
    unsubscribe()
    unsubscribe()

    await identity.sign_up(email="alice@example.com", password="pw")

    assert seen == []
