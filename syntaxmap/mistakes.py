"""Per-user log of quiz questions answered wrongly, kept for later revision."""
import logging
import uuid
from typing import Any, Dict, List, Optional

from psycopg2 import sql

from syntaxmap.database import transaction
from syntaxmap.errors import BadRequestError, ForbiddenError, NotFoundError, not_found
from syntaxmap.querybuilder import QueryBuilder, insert_statement
from syntaxmap.records import MistakeQuestion, mistake_from_row

logger = logging.getLogger(__name__)

CRITERIA = {
    "mistake_id": ("mistake_id", None),
    "user_id": ("user_id", None),
    "tense_id": ("tense_id", None),
    "question_id": ("question_id", "n"),
}

FIELDS = ("question_id", "question_title", "user_answer", "right_answer", "tense_id")


class MistakeDao:

    def __init__(self, conn):
        self.conn = conn

    def insert(self, mistake: MistakeQuestion) -> MistakeQuestion:
        row = mistake.model_dump(exclude={"created_at"}, exclude_none=True)
        row["mistake_id"] = row.get("mistake_id") or str(uuid.uuid4())
        with transaction(self.conn) as cursor:
            cursor.execute(*insert_statement("mistake_question", row))
            return mistake_from_row(cursor.fetchone())

    def select(self, criteria: Dict[str, Any]) -> List[MistakeQuestion]:
        builder = QueryBuilder(sql.SQL("SELECT * FROM mistake_question"))
        builder.add_criteria(criteria, CRITERIA)
        builder.order_by([("created_at", "DESC")])
        query, params = builder.build()
        with transaction(self.conn) as cursor:
            cursor.execute(query, params)
            return [mistake_from_row(r) for r in cursor.fetchall()]

    def delete(self, mistake_id: str) -> None:
        with transaction(self.conn) as cursor:
            cursor.execute("DELETE FROM mistake_question WHERE mistake_id = %s", (mistake_id,))
            deleted = cursor.rowcount
        if deleted == 0:
            raise not_found(mistake_id)


class MistakeService:

    def __init__(self, conn):
        self.dao = MistakeDao(conn)

    def all_mistakes(self) -> List[Dict[str, Any]]:
        return [m.model_dump() for m in self.dao.select({})]

    def user_mistakes(self, user_id: str, tense_id: Optional[str] = None) -> List[Dict[str, Any]]:
        criteria = {"user_id": user_id}
        if tense_id:
            criteria["tense_id"] = tense_id
        return [m.model_dump() for m in self.dao.select(criteria)]

    def add(self, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        if not data.get("question_id") and not data.get("question_title"):
            raise BadRequestError("question_id or question_title is required")
        fields = {k: v for k, v in data.items() if v is not None and k in FIELDS}
        mistake = MistakeQuestion(user_id=user_id, **fields)
        return self.dao.insert(mistake).model_dump()

    def delete(self, mistake_id: str, user_id: str) -> None:
        found = self.dao.select({"mistake_id": mistake_id})
        if not found:
            raise NotFoundError("Mistake not found")
        if found[0].user_id != user_id:
            raise ForbiddenError("Permission denied. You can only delete your own mistakes")
        self.dao.delete(mistake_id)
