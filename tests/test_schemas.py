"""Unit tests for auth/schemas.py -- boundary validation and serialization.

Covers:
- UserOut never exposes a password field and serializes aware timestamps
- LoginResponse carries the token
- Request validation: stripping, empty values, bcrypt's 72-byte limit, role text
"""

import json
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from auth.models import LoginResult, Role, User
from auth.schemas import CreateUserRequest, LoginResponse, ResetPasswordRequest, UpdateUserRequest, UserOut

_NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _user(**overrides) -> User:
    fields = dict(
        id="u-1",
        username="alice",
        name="Alice",
        role=Role.CASHIER,
        is_active=True,
        created_at=_NOW,
        updated_at=_NOW,
    )
    fields.update(overrides)
    return User(**fields)


class TestUserOut:
    def test_no_password_field(self):
        data = UserOut.from_user(_user()).model_dump()
        assert not any("password" in key for key in data)

    def test_timestamps_round_trip_with_offset(self):
        login = _NOW + timedelta(hours=1)
        payload = json.loads(UserOut.from_user(_user(last_login=login)).model_dump_json())
        assert payload["role"] == "CASHIER"
        assert payload["last_login"].endswith("Z") or payload["last_login"].endswith("+00:00")
        restored = UserOut.model_validate(payload)
        assert restored.last_login == login
        assert restored.created_at == _NOW

    def test_never_logged_in_is_null(self):
        payload = json.loads(UserOut.from_user(_user()).model_dump_json())
        assert payload["last_login"] is None


class TestLoginResponse:
    def test_from_result(self):
        resp = LoginResponse.from_result(LoginResult(user=_user(role=Role.ADMIN), token="tok"))
        assert resp.token == "tok"
        assert resp.user.role is Role.ADMIN


class TestRequests:
    def test_create_strips_username_and_name_but_not_password(self):
        req = CreateUserRequest(username="  alice ", password=" pw ", name=" Alice ", role="ADMIN")
        assert req.username == "alice"
        assert req.name == "Alice"
        assert req.password == " pw "
        assert req.role is Role.ADMIN

    def test_create_defaults_to_cashier(self):
        assert CreateUserRequest(username="bob", password="pw", name="Bob").role is Role.CASHIER

    @pytest.mark.parametrize("username", ["", "   "])
    def test_create_rejects_blank_username(self, username):
        with pytest.raises(ValidationError):
            CreateUserRequest(username=username, password="pw", name="X")

    def test_create_rejects_empty_password(self):
        with pytest.raises(ValidationError):
            CreateUserRequest(username="bob", password="", name="Bob")

    def test_password_over_72_bytes_rejected(self):
        with pytest.raises(ValidationError):
            ResetPasswordRequest(id="u-1", new_password="é" * 37)

    def test_password_at_72_bytes_accepted(self):
        assert ResetPasswordRequest(id="u-1", new_password="a" * 72).new_password == "a" * 72

    def test_unknown_role_rejected(self):
        with pytest.raises(ValidationError):
            UpdateUserRequest(id="u-1", name="X", role="MANAGER", is_active=True)
