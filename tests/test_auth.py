"""
Unit tests for auth utilities and dependencies (no real DB or HTTP).
"""

from __future__ import annotations

from typing import Any

import pytest
from fastapi import HTTPException

from src.auth.dependencies import get_current_active_user, get_current_user
from src.auth.service import create_access_token, decode_token
from src.db.models import User


def test_create_and_decode_token():
    token = create_access_token(123)
    payload = decode_token(token)

    assert payload["sub"] == "123"
    assert payload["type"] == "access"
    assert payload["exp"] > payload["iat"]


class _FakeResult:
    def __init__(self, obj: Any | None):
        self._obj = obj

    def scalar_one_or_none(self) -> Any | None:
        return self._obj


class _FakeSession:
    def __init__(self, user: User | None):
        self._user = user

    async def execute(self, _query: Any) -> _FakeResult:
        return _FakeResult(self._user)


@pytest.mark.anyio
async def test_get_current_user_with_valid_token():
    user = User(id=1, email="test@example.com", username="testuser", is_active=True)
    db = _FakeSession(user)

    current = await get_current_user(token=create_access_token(user.id), db=db)  # type: ignore[arg-type]

    assert current.id == user.id
    assert current.username == user.username


@pytest.mark.anyio
async def test_get_current_user_with_invalid_token():
    with pytest.raises(HTTPException) as exc_info:
        await get_current_user(token="not-a-jwt", db=_FakeSession(None))  # type: ignore[arg-type]
    assert exc_info.value.status_code == 401


@pytest.mark.anyio
async def test_get_current_user_unknown_user():
    with pytest.raises(HTTPException) as exc_info:
        await get_current_user(token=create_access_token(99), db=_FakeSession(None))  # type: ignore[arg-type]
    assert exc_info.value.status_code == 401


@pytest.mark.anyio
async def test_inactive_user_is_rejected():
    user = User(id=2, email="off@example.com", username="off", is_active=False)
    with pytest.raises(HTTPException) as exc_info:
        await get_current_active_user(current_user=user)
    assert exc_info.value.status_code == 403
