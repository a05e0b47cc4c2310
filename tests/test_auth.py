import pytest

from syntaxmap.auth import (
    ADMIN, GUEST, STAFF, STUDENT, TEACHER, Principal, bearer_token, create_access_token, current_user,
    decode_token, get_password_hash, require_roles, require_user, role_from_claims, user_id_from_claims,
    verify_password,
)
from syntaxmap.errors import ForbiddenError, UnauthorizedError


def test_role_claim_precedence():
    assert role_from_claims({"user_role": 2, "authorization": 1}) == TEACHER
    assert role_from_claims({"authorization": "1"}) == ADMIN
    assert role_from_claims({"role": 3}) == STUDENT


def test_role_defaults():
    assert role_from_claims(None) == GUEST
    assert role_from_claims({"sub": "u1"}) == STUDENT
    assert role_from_claims({"user_role": 99}) == GUEST


def test_user_id_claims():
    assert user_id_from_claims({"sub": "u1", "id": "u2"}) == "u1"
    assert user_id_from_claims({"id": 5}) == "5"
    assert user_id_from_claims({}) is None


@pytest.mark.parametrize("header,token", [
    ("Bearer abc", "abc"),
    ("bearer abc", "abc"),
    ("Token abc", None),
    ("Bearer", None),
    (None, None),
])
def test_bearer_token(header, token):
    assert bearer_token(header) == token


def test_token_round_trip_through_current_user():
    principal = current_user(f"Bearer {create_access_token('u1', TEACHER)}")
    assert principal == Principal("u1", TEACHER)
    assert principal.is_staff


def test_garbage_token_is_a_guest():
    assert decode_token("not-a-jwt") is None
    principal = current_user("Bearer not-a-jwt")
    assert principal.is_guest
    assert principal.user_id is None


def test_password_hashing():
    hashed = get_password_hash("s3cret")
    assert verify_password("s3cret", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("s3cret", "not-a-hash")


def test_require_user():
    assert require_user(Principal("u1", STUDENT)).user_id == "u1"
    with pytest.raises(UnauthorizedError):
        require_user(Principal(None, GUEST))


def test_role_gate_rejects_disallowed_roles_with_403():
    gate = require_roles(*STAFF, message="Only teachers")
    with pytest.raises(ForbiddenError) as info:
        gate(Principal("u1", STUDENT))
    assert info.value.message == "Only teachers"
    with pytest.raises(ForbiddenError):
        gate(Principal(None, GUEST))
    assert gate(Principal("t1", TEACHER)).role == TEACHER


def test_role_gate_without_subject_is_401():
    gate = require_roles(*STAFF)
    with pytest.raises(UnauthorizedError):
        gate(Principal(None, ADMIN))


def test_role_gate_open_to_guests():
    gate = require_roles(STUDENT, GUEST)
    assert gate(Principal(None, GUEST)).is_guest
