import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from syntaxmap.auth import ADMIN, ROLES, STUDENT, create_access_token, get_password_hash, verify_password
from syntaxmap.database import transaction
from syntaxmap.errors import (
    BadRequestError, ConflictError, ForbiddenError, NotFoundError, UnauthorizedError, not_found,
)
from syntaxmap.records import User, user_from_row, user_to_wire

logger = logging.getLogger(__name__)

INVALID_LOGIN = "Invalid email or password"


class UserDao:

    def __init__(self, conn):
        self.conn = conn

    def insert(self, user: User) -> User:
        with transaction(self.conn) as cursor:
            cursor.execute(
                "INSERT INTO user_table (user_id, user_name, user_email_address, user_password, "
                "user_role, is_account_active) VALUES (%s, %s, %s, %s, %s, %s) RETURNING *",
                (user.user_id, user.user_name, user.user_email_address, user.user_password,
                 user.user_role, user.is_account_active),
            )
            return user_from_row(cursor.fetchone())

    def find_by_email(self, email: str) -> Optional[User]:
        with transaction(self.conn) as cursor:
            cursor.execute(
                "SELECT * FROM user_table WHERE LOWER(user_email_address) = LOWER(%s)",
                (email,),
            )
            row = cursor.fetchone()
        return user_from_row(row) if row else None

    def get(self, user_id: str) -> User:
        with transaction(self.conn) as cursor:
            cursor.execute("SELECT * FROM user_table WHERE user_id = %s", (user_id,))
            row = cursor.fetchone()
        if row is None:
            raise NotFoundError("User not found")
        return user_from_row(row)

    def update_role(self, user_id: str, role: int) -> User:
        with transaction(self.conn) as cursor:
            cursor.execute(
                "UPDATE user_table SET user_role = %s WHERE user_id = %s RETURNING *",
                (role, user_id),
            )
            row = cursor.fetchone()
        if row is None:
            raise not_found(user_id)
        return user_from_row(row)

    def update_last_session(self, user_id: str, session: str) -> None:
        with transaction(self.conn) as cursor:
            cursor.execute(
                "UPDATE user_table SET last_session = %s WHERE user_id = %s",
                (session, user_id),
            )
            updated = cursor.rowcount
        if updated == 0:
            raise not_found(user_id)

    def students(self) -> List[User]:
        with transaction(self.conn) as cursor:
            cursor.execute(
                "SELECT * FROM user_table WHERE user_role = %s AND is_account_active = true "
                "ORDER BY user_name ASC",
                (STUDENT,),
            )
            return [user_from_row(r) for r in cursor.fetchall()]


class UserService:

    def __init__(self, conn):
        self.dao = UserDao(conn)

    def register(self, user_name: str, email: str, password: str, role: int = STUDENT) -> Dict[str, Any]:
        if role == ADMIN:
            raise ForbiddenError("The admin role cannot be self-assigned")
        if role not in ROLES:
            raise BadRequestError("Invalid role")
        if self.dao.find_by_email(email):
            raise ConflictError("A user with this email address already exists")
        user = User(
            user_id=str(uuid.uuid4()),
            user_name=user_name,
            user_email_address=email,
            user_password=get_password_hash(password),
            user_role=role,
        )
        created = self.dao.insert(user)
        logger.info(f"Registered user {created.user_id} with role {created.user_role}")
        return user_to_wire(created)

    def login(self, email: str, password: str) -> Dict[str, Any]:
        user = self.dao.find_by_email(email)
        if user is None or not user.user_password or not verify_password(password, user.user_password):
            logger.info("Rejected login attempt")
            raise UnauthorizedError(INVALID_LOGIN)
        if not user.is_account_active:
            raise ForbiddenError("This account is disabled")
        previous_session = user.last_session
        self.dao.update_last_session(user.user_id, datetime.utcnow().isoformat())
        return {
            "jwt": create_access_token(user.user_id, user.user_role),
            "user_role": user.user_role,
            "last_session": previous_session,
        }

    def me(self, user_id: str) -> Dict[str, Any]:
        return user_to_wire(self.dao.get(user_id))

    def record_session(self, user_id: str, session: str) -> None:
        if not session:
            raise BadRequestError("session is required")
        self.dao.update_last_session(user_id, session)

    def update_role(self, user_id: str, role: int) -> Dict[str, Any]:
        if role not in ROLES:
            raise BadRequestError("Invalid role")
        updated = self.dao.update_role(user_id, role)
        logger.info(f"Role of user {user_id} set to {role}")
        return user_to_wire(updated)

    def students(self) -> List[Dict[str, Any]]:
        return [
            {"user_id": u.user_id, "user_name": u.user_name, "user_email_address": u.user_email_address}
            for u in self.dao.students()
        ]
