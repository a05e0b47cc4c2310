"""Per-user learning goals: a target, how far along the user is, and an optional deadline."""
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from psycopg2 import sql

from syntaxmap.database import transaction
from syntaxmap.errors import BadRequestError, NotFoundError, not_found
from syntaxmap.querybuilder import QueryBuilder, insert_statement, update_statement
from syntaxmap.records import Goal, goal_from_row, goal_to_wire

logger = logging.getLogger(__name__)

CRITERIA = {
    "id": ("id", None),
    "user_id": ("user_id", None),
    "type": ("type", None),
    "completed": ("completed", "b"),
}

EDITABLE = ("description", "type", "target", "deadline", "progress", "completed")


def reached(progress: int, target: int) -> bool:
    return progress >= target


class GoalDao:

    def __init__(self, conn):
        self.conn = conn

    def insert(self, goal: Goal) -> Goal:
        row = goal.model_dump(exclude={"created_at", "updated_at"}, exclude_none=True)
        row["id"] = row.get("id") or str(uuid.uuid4())
        with transaction(self.conn) as cursor:
            cursor.execute(*insert_statement("learning_goal", row))
            return goal_from_row(cursor.fetchone())

    def select(self, criteria: Dict[str, Any]) -> List[Goal]:
        builder = QueryBuilder(sql.SQL("SELECT * FROM learning_goal"))
        builder.add_criteria(criteria, CRITERIA)
        builder.order_by([("deadline", "ASC"), ("created_at", "DESC")])
        query, params = builder.build()
        with transaction(self.conn) as cursor:
            cursor.execute(query, params)
            return [goal_from_row(r) for r in cursor.fetchall()]

    def update(self, goal_id: str, values: Dict[str, Any]) -> Goal:
        values = dict(values, updated_at=datetime.utcnow())
        with transaction(self.conn) as cursor:
            cursor.execute(update_statement("learning_goal", values, "id"),
                           list(values.values()) + [goal_id])
            row = cursor.fetchone()
        if row is None:
            raise not_found(goal_id)
        return goal_from_row(row)

    def delete(self, goal_id: str) -> None:
        with transaction(self.conn) as cursor:
            cursor.execute("DELETE FROM learning_goal WHERE id = %s", (goal_id,))
            deleted = cursor.rowcount
        if deleted == 0:
            raise not_found(goal_id)


class GoalService:

    def __init__(self, conn):
        self.dao = GoalDao(conn)

    def user_goals(self, user_id: str, goal_type: Optional[str] = None,
                   completed: Optional[bool] = None) -> List[Dict[str, Any]]:
        criteria: Dict[str, Any] = {"user_id": user_id}
        if goal_type:
            criteria["type"] = goal_type
        if completed is not None:
            criteria["completed"] = completed
        return [goal_to_wire(g) for g in self.dao.select(criteria)]

    def _owned(self, goal_id: str, user_id: str) -> Goal:
        # another user's goal reads as missing
        found = self.dao.select({"id": goal_id, "user_id": user_id})
        if not found:
            raise NotFoundError("Goal not found")
        return found[0]

    def goal(self, goal_id: str, user_id: str) -> Dict[str, Any]:
        return goal_to_wire(self._owned(goal_id, user_id))

    def create(self, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        if not data.get("description") or not data.get("type"):
            raise BadRequestError("Description and type are required")
        fields = {k: v for k, v in data.items() if k in EDITABLE and v is not None}
        goal = Goal(user_id=user_id, **fields)
        if "completed" not in fields:
            goal = goal.model_copy(update={"completed": reached(goal.progress, goal.target)})
        created = self.dao.insert(goal)
        logger.info(f"Goal {created.id} created for {user_id}")
        return goal_to_wire(created)

    def update(self, goal_id: str, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        current = self._owned(goal_id, user_id)
        values = {k: v for k, v in data.items() if k in EDITABLE and v is not None}
        if not values:
            raise BadRequestError("Nothing to update")
        if "completed" not in values and ("progress" in values or "target" in values):
            values["completed"] = reached(values.get("progress", current.progress),
                                          values.get("target", current.target))
        return goal_to_wire(self.dao.update(goal_id, values))

    def delete(self, goal_id: str, user_id: str) -> None:
        self._owned(goal_id, user_id)
        self.dao.delete(goal_id)
        logger.info(f"Goal {goal_id} deleted by {user_id}")
