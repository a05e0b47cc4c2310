import pytest

from conftest import rows
from syntaxmap.auth import ADMIN, TEACHER, decode_token, get_password_hash
from syntaxmap.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError, UnauthorizedError
from syntaxmap.users import UserService


def user_row(**values):
    row = {"user_id": "u1", "user_name": "Sam", "user_email_address": "sam@x.io", "user_role": 3,
           "is_account_active": True}
    row.update(values)
    return row


def test_admin_role_cannot_be_self_assigned(conn):
    with pytest.raises(ForbiddenError):
        UserService(conn).register("Sam", "sam@x.io", "password1", ADMIN)
    assert conn.executed == []


def test_duplicate_email(conn):
    conn.script(rows(user_row()))
    with pytest.raises(ConflictError):
        UserService(conn).register("Sam", "SAM@x.io", "password1")


def test_register_hashes_the_password(conn):
    conn.script(rows(), rows(user_row(user_password="hash", user_role=TEACHER)))
    user = UserService(conn).register("Sam", "sam@x.io", "password1", TEACHER)
    assert "user_password" not in user
    params = conn.executed[1][1]
    assert params[3] != "password1"
    assert params[3].startswith("$2")
    assert params[4] == TEACHER


def test_login_returns_token_and_previous_session(conn):
    stored = user_row(user_password=get_password_hash("password1"), user_role=TEACHER,
                      last_session="2026-03-01T10:00:00")
    conn.script(rows(stored), rows(rowcount=1))
    result = UserService(conn).login("sam@x.io", "password1")
    assert result["last_session"] == "2026-03-01T10:00:00"
    assert result["user_role"] == TEACHER
    assert decode_token(result["jwt"])["sub"] == "u1"
    assert conn.statements[1] == "UPDATE user_table SET last_session = %s WHERE user_id = %s"


def test_login_with_wrong_password(conn):
    conn.script(rows(user_row(user_password=get_password_hash("password1"))))
    with pytest.raises(UnauthorizedError):
        UserService(conn).login("sam@x.io", "password2")


def test_disabled_account_cannot_log_in(conn):
    conn.script(rows(user_row(user_password=get_password_hash("password1"), is_account_active=False)))
    with pytest.raises(ForbiddenError):
        UserService(conn).login("sam@x.io", "password1")


def test_last_session_for_unknown_user(conn):
    with pytest.raises(NotFoundError):
        UserService(conn).record_session("ghost", "2026-03-01")


def test_empty_session(conn):
    with pytest.raises(BadRequestError):
        UserService(conn).record_session("u1", "")


def test_students_list_shape(conn):
    conn.script(rows(user_row(user_password="hash")))
    assert UserService(conn).students() == [
        {"user_id": "u1", "user_name": "Sam", "user_email_address": "sam@x.io"}
    ]
