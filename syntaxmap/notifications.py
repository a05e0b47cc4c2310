import logging
import uuid
from typing import Any, Dict, List, Optional

from psycopg2 import sql

from syntaxmap.database import transaction
from syntaxmap.errors import bad_request, not_found
from syntaxmap.querybuilder import QueryBuilder
from syntaxmap.records import Notification, notification_from_row

logger = logging.getLogger(__name__)

CRITERIA = {
    "user_id": ("user_id", None),
    "notification_id": ("notification_id", None),
    "type": ("type", None),
    "is_read": ("is_read", "b"),
}


class NotificationDao:

    def __init__(self, conn):
        self.conn = conn

    def insert(self, user_id: str, message: str, type: str) -> Notification:
        if not user_id or not message or not type:
            raise bad_request("user_id, message and type are required")
        with transaction(self.conn) as cursor:
            cursor.execute(
                "INSERT INTO notification_table (notification_id, user_id, message, type, is_read) "
                "VALUES (%s, %s, %s, %s, false) RETURNING *",
                (str(uuid.uuid4()), user_id, message, type),
            )
            return notification_from_row(cursor.fetchone())

    def select(self, criteria: Dict[str, Any], limit: Optional[int] = None,
               offset: Optional[int] = None) -> List[Notification]:
        builder = QueryBuilder(sql.SQL("SELECT * FROM notification_table"))
        builder.add_criteria(criteria, CRITERIA)
        builder.order_by([("created_at", "DESC")]).limit(limit).offset(offset)
        query, params = builder.build()
        with transaction(self.conn) as cursor:
            cursor.execute(query, params)
            return [notification_from_row(r) for r in cursor.fetchall()]

    def mark_as_read(self, notification_id: str, user_id: str) -> Notification:
        with transaction(self.conn) as cursor:
            cursor.execute(
                "UPDATE notification_table SET is_read = true "
                "WHERE notification_id = %s AND user_id = %s RETURNING *",
                (notification_id, user_id),
            )
            row = cursor.fetchone()
        if row is None:
            raise not_found(notification_id)
        return notification_from_row(row)

    def mark_all_as_read(self, user_id: str) -> int:
        with transaction(self.conn) as cursor:
            cursor.execute(
                "UPDATE notification_table SET is_read = true "
                "WHERE user_id = %s AND is_read = false",
                (user_id,),
            )
            return cursor.rowcount

    def delete(self, notification_id: str, user_id: str) -> bool:
        with transaction(self.conn) as cursor:
            cursor.execute(
                "DELETE FROM notification_table WHERE notification_id = %s AND user_id = %s",
                (notification_id, user_id),
            )
            return cursor.rowcount > 0


class NotificationService:

    def __init__(self, conn):
        self.dao = NotificationDao(conn)

    def notify(self, user_id: str, message: str, type: str) -> Notification:
        notification = self.dao.insert(user_id, message, type)
        logger.info(f"Notification '{type}' sent to user {user_id}")
        return notification

    def list_for_user(self, user_id: str, is_read: Optional[bool] = None,
                      type: Optional[str] = None, limit: int = 50, offset: int = 0) -> List[Dict[str, Any]]:
        criteria: Dict[str, Any] = {"user_id": user_id}
        if is_read is not None:
            criteria["is_read"] = is_read
        if type:
            criteria["type"] = type
        return [n.model_dump() for n in self.dao.select(criteria, limit=limit, offset=offset)]

    def mark_as_read(self, notification_id: str, user_id: str) -> Dict[str, Any]:
        return self.dao.mark_as_read(notification_id, user_id).model_dump()

    def mark_all_as_read(self, user_id: str) -> Dict[str, Any]:
        return {"success": True, "count": self.dao.mark_all_as_read(user_id)}

    def delete(self, notification_id: str, user_id: str) -> Dict[str, Any]:
        return {"success": True, "deleted": self.dao.delete(notification_id, user_id)}
