import logging
import uuid
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from psycopg2 import sql

from syntaxmap.auth import STUDENT, Principal
from syntaxmap.database import transaction, use_cursor
from syntaxmap.errors import BadRequestError, ForbiddenError, NotFoundError, not_found
from syntaxmap.querybuilder import QueryBuilder, insert_statement, update_statement
from syntaxmap.records import (
    Example, example_from_row, example_to_row, example_to_wire, group_by_sentence_type,
)

logger = logging.getLogger(__name__)

CRITERIA = {
    "id": ("id", None),
    "tense_id": ("tense_id", None),
    "difficulty_level": ("difficulty_level", "n"),
    "student_submission": ("student_submission", "b"),
    "teacher_reviewed": ("teacher_reviewed", "b"),
    "submitter_id": ("submitter_id", None),
    "user_id": ("user_id", None),
    "shared_with_teacher": ("shared_with_teacher", "b"),
    "sentence_type": ("sentence_type", None),
}

ORDER_COLUMNS = {"created_at", "difficulty_level", "sentence_type", "submitted_date", "review_date"}

MODIFIED_FEEDBACK = "Example has been modified since last review"


class ExampleDao:

    def __init__(self, conn):
        self.conn = conn

    def insert(self, example: Example, cursor=None) -> Example:
        row = example_to_row(example)
        row["id"] = row["id"] or str(uuid.uuid4())
        row = {k: v for k, v in row.items() if v is not None}
        with use_cursor(self.conn, cursor) as cur:
            cur.execute(*insert_statement("example_table", row))
            return example_from_row(cur.fetchone())

    def update(self, example: Example, cursor=None) -> Example:
        if not example.example_id:
            raise BadRequestError("Bad request : Missing example id.")
        values = example_to_row(example)
        values.pop("id")
        query = update_statement("example_table", values, "id")
        with use_cursor(self.conn, cursor) as cur:
            cur.execute(query, list(values.values()) + [example.example_id])
            row = cur.fetchone()
        if row is None:
            raise not_found(example.example_id)
        return example_from_row(row)

    def select(self, criteria: Dict[str, Any], order=None) -> List[Example]:
        builder = QueryBuilder(sql.SQL("SELECT * FROM example_table"))
        builder.add_criteria(criteria, CRITERIA)
        if criteria.get("difficulty_levels"):
            levels = criteria["difficulty_levels"]
            if isinstance(levels, str):
                levels = levels.split(",")
            builder.in_list("difficulty_level", [int(level) for level in levels])
        builder.order_by(order or [("created_at", "DESC")], allowed=ORDER_COLUMNS)
        query, params = builder.build()
        with transaction(self.conn) as cursor:
            cursor.execute(query, params)
            return [example_from_row(r) for r in cursor.fetchall()]

    def get(self, example_id: str) -> Example:
        found = self.select({"id": example_id})
        if not found:
            raise NotFoundError("Example not found")
        return found[0]

    def delete(self, criteria: Dict[str, Any]) -> int:
        if criteria.get("id"):
            where, params = sql.SQL("id = %s"), (criteria["id"],)
        elif criteria.get("user_id") and criteria.get("tense_id"):
            where, params = sql.SQL("user_id = %s AND tense_id = %s"), (criteria["user_id"], criteria["tense_id"])
        else:
            raise BadRequestError("Bad request : Delete needs an id, or a user_id with a tense_id.")
        with transaction(self.conn) as cursor:
            cursor.execute(sql.SQL("DELETE FROM example_table WHERE {}").format(where), params)
            deleted = cursor.rowcount
        if criteria.get("id") and deleted == 0:
            raise not_found(criteria["id"])
        return deleted

    def delete_by_tense(self, tense_id: str, cursor) -> int:
        cursor.execute("DELETE FROM example_table WHERE tense_id = %s", (tense_id,))
        return cursor.rowcount

    def pending_reviews(self) -> List[Example]:
        with transaction(self.conn) as cursor:
            cursor.execute(
                "SELECT e.*, u.user_name AS submitter_name FROM example_table e "
                "LEFT JOIN user_table u ON u.user_id = COALESCE(e.submitter_id, e.user_id) "
                "WHERE e.student_submission = true AND e.teacher_reviewed = false "
                "ORDER BY e.submitted_date DESC"
            )
            return [example_from_row(r) for r in cursor.fetchall()]

    def review(self, example_id: str, reviewer_id: str, feedback: str, approved: bool = True) -> Example:
        with transaction(self.conn) as cursor:
            cursor.execute(
                "UPDATE example_table SET teacher_reviewed = %s, reviewer_id = %s, "
                "review_date = %s, teacher_feedback = %s WHERE id = %s RETURNING *",
                (approved, reviewer_id, datetime.utcnow(), feedback, example_id),
            )
            row = cursor.fetchone()
        if row is None:
            raise not_found(example_id)
        return example_from_row(row)

    def toggle_share(self, example_id: str) -> Example:
        with transaction(self.conn) as cursor:
            cursor.execute(
                "UPDATE example_table SET shared_with_teacher = NOT COALESCE(shared_with_teacher, false) "
                "WHERE id = %s RETURNING *",
                (example_id,),
            )
            row = cursor.fetchone()
        if row is None:
            raise not_found(example_id)
        return example_from_row(row)

    def statistics(self) -> Dict[str, Any]:
        with transaction(self.conn) as cursor:
            cursor.execute(
                """
                SELECT
                    COUNT(*) AS total,
                    COUNT(*) FILTER (WHERE student_submission) AS student_submissions,
                    COUNT(*) FILTER (WHERE teacher_reviewed) AS approved,
                    COUNT(*) FILTER (WHERE student_submission AND NOT teacher_reviewed) AS pending,
                    COUNT(*) FILTER (WHERE shared_with_teacher) AS shared,
                    COUNT(DISTINCT tense_id) AS tenses_covered,
                    COUNT(DISTINCT COALESCE(user_id, submitter_id)) AS contributors,
                    ROUND(AVG(difficulty_level)::numeric, 2) AS average_difficulty
                FROM example_table
                """
            )
            row = cursor.fetchone() or {}
        stats = {k: int(row.get(k) or 0) for k in (
            "total", "student_submissions", "approved", "pending", "shared",
            "tenses_covered", "contributors")}
        stats["average_difficulty"] = float(row.get("average_difficulty") or 0)
        return stats

    def tense_exists(self, tense_id: str) -> bool:
        with transaction(self.conn) as cursor:
            cursor.execute("SELECT 1 FROM tense_table WHERE id = %s", (tense_id,))
            return cursor.fetchone() is not None


class ExampleService:

    def __init__(self, conn):
        self.dao = ExampleDao(conn)

    # ---------- per tense ----------
    def examples_for_tense(self, tense_id: str, principal: Principal,
                           sentence_type: Optional[str] = None) -> Dict[str, List[Dict[str, Any]]]:
        criteria: Dict[str, Any] = {"tense_id": tense_id}
        if sentence_type:
            criteria["sentence_type"] = sentence_type
        order = None
        if principal.is_guest:
            criteria["teacher_reviewed"] = True
            order = [("difficulty_level", "ASC")]
        examples = self.dao.select(criteria, order=order)
        if principal.role == STUDENT:
            examples = [e for e in examples if e.teacher_reviewed or e.user_id == principal.user_id]
        items = []
        for example in examples:
            wire = example_to_wire(example)
            if principal.role == STUDENT and principal.user_id:
                wire["isOwner"] = example.user_id == principal.user_id
            items.append(wire)
        return group_by_sentence_type(items)

    def submit(self, tense_id: str, principal: Principal, example_text: str,
               sentence_type: str = "affirmative", difficulty_level: int = 2) -> Dict[str, Any]:
        if not example_text:
            raise BadRequestError("example_text is required")
        if not self.dao.tense_exists(tense_id):
            raise NotFoundError("Tense not found")
        is_student = principal.role == STUDENT
        example = Example(
            example_text=example_text,
            tense_id=tense_id,
            difficulty_level=difficulty_level,
            sentence_type=sentence_type,
            student_submission=is_student,
            teacher_reviewed=not is_student,
            user_id=principal.user_id,
            submitter_id=principal.user_id,
            submitted_date=datetime.utcnow(),
        )
        created = self.dao.insert(example)
        logger.info(f"Example {created.example_id} submitted for tense {tense_id} by role {principal.role}")
        return example_to_wire(created)

    # ---------- staff ----------
    def filtered(self, criteria: Dict[str, Any]) -> List[Dict[str, Any]]:
        return [example_to_wire(e) for e in self.dao.select(criteria)]

    def pending_reviews(self) -> List[Dict[str, Any]]:
        return [example_to_wire(e) for e in self.dao.pending_reviews()]

    def review(self, example_id: str, reviewer: Principal, feedback: str = "",
               approved: bool = True) -> Dict[str, Any]:
        self.dao.get(example_id)
        return example_to_wire(self.dao.review(example_id, reviewer.user_id, feedback, approved))

    def shared_examples(self) -> Dict[str, Any]:
        items = [example_to_wire(e) for e in self.dao.select({"shared_with_teacher": True})]
        by_tense = defaultdict(list)
        by_user = defaultdict(list)
        for item in items:
            by_tense[item["tense_id"]].append(item)
            by_user[item["user_id"]].append(item)
        return {"examples": items, "examplesByTense": dict(by_tense), "examplesByUser": dict(by_user)}

    def statistics(self) -> Dict[str, Any]:
        return self.dao.statistics()

    # ---------- a user's own examples ----------
    def user_examples(self, user_id: str, tense_id: Optional[str] = None) -> Dict[str, Any]:
        criteria = {"user_id": user_id}
        if tense_id:
            criteria["tense_id"] = tense_id
        items = [example_to_wire(e) for e in self.dao.select(criteria)]
        by_tense = defaultdict(list)
        for item in items:
            by_tense[item["tense_id"]].append(item)
        return {"examples": items, "examplesByTense": dict(by_tense)}

    def create_user_example(self, user_id: str, tense_id: str, sentence: str,
                            sentence_type: str = "affirmative", difficulty_level: int = 3) -> Dict[str, Any]:
        if not self.dao.tense_exists(tense_id):
            raise NotFoundError("Tense not found")
        example = Example(
            example_text=sentence,
            tense_id=tense_id,
            user_id=user_id,
            submitter_id=user_id,
            sentence_type=sentence_type,
            difficulty_level=difficulty_level,
            student_submission=True,
            teacher_reviewed=False,
            shared_with_teacher=False,
            submitted_date=datetime.utcnow(),
        )
        return example_to_wire(self.dao.insert(example))

    def _owned(self, example_id: str, user_id: str, action: str) -> Example:
        example = self.dao.get(example_id)
        if example.user_id != user_id:
            raise ForbiddenError(f"Permission denied. You can only {action} your own examples")
        return example

    def update_user_example(self, example_id: str, user_id: str, sentence: Optional[str] = None,
                            sentence_type: Optional[str] = None,
                            difficulty_level: Optional[int] = None) -> Dict[str, Any]:
        example = self._owned(example_id, user_id, "edit")
        changes: Dict[str, Any] = {}
        if sentence:
            changes["example_text"] = sentence
        if sentence_type:
            changes["sentence_type"] = sentence_type
        if difficulty_level:
            changes["difficulty_level"] = difficulty_level
        if example.teacher_reviewed:
            changes["teacher_reviewed"] = False
            changes["teacher_feedback"] = MODIFIED_FEEDBACK
        return example_to_wire(self.dao.update(example.model_copy(update=changes)))

    def delete_user_example(self, example_id: str, user_id: str) -> None:
        self._owned(example_id, user_id, "delete")
        self.dao.delete({"id": example_id})

    def share_user_example(self, example_id: str, user_id: str) -> Dict[str, Any]:
        example = self._owned(example_id, user_id, "share")
        if example.shared_with_teacher:
            return example_to_wire(example)
        return example_to_wire(self.dao.toggle_share(example_id))
