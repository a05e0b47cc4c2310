import logging
import uuid
from typing import Any, Dict, List, Optional

from psycopg2 import sql

from syntaxmap import scoring
from syntaxmap.auth import STUDENT, Principal
from syntaxmap.database import transaction, use_cursor
from syntaxmap.errors import AppError, ConflictError, NotFoundError, bad_request, not_found
from syntaxmap.examples import ExampleDao
from syntaxmap.querybuilder import QueryBuilder, insert_statement, update_statement
from syntaxmap.quizzes import QuizDetailsDao, QuizItemDao
from syntaxmap.records import (
    Example, QuizItem, Tense, example_to_wire, group_by_sentence_type,
    quiz_item_to_wire, tense_from_row, tense_to_row, tense_to_wire,
)

logger = logging.getLogger(__name__)

CRITERIA = {
    "tense_name": ("tense_name", None),
    "tense_id": ("id", None),
    "time_group": ("time_group", None),
    "subcategory": ("subcategory", None),
    "active": ("active", "b"),
}

ORDER_COLUMNS = {"tense_name", "time_group", "subcategory", "difficulty_level", "active"}

GUEST_EXAMPLES_PER_TYPE = 2

TENSE_FIELDS = ("tense_name", "description", "time_group", "subcategory", "grammar_rules",
                "example_structure", "usage_notes", "difficulty_level", "active")

EMPTY_STATS = {
    "completion_percentage": 0,
    "average_score": 0,
    "total_study_time_seconds": 0,
    "study_sessions": 0,
    "last_study_date": None,
    "total_examples": 0,
    "user_examples": 0,
    "approved_examples": 0,
    "examples_submitted": 0,
    "examples_correct": 0,
    "is_completed": False,
    "last_activity": None,
}


class TenseDao:

    def __init__(self, conn):
        self.conn = conn
        self.examples = ExampleDao(conn)
        self.quiz_items = QuizItemDao(conn)
        self.quiz_details = QuizDetailsDao(conn)

    def insert(self, tense: Tense, cursor=None) -> Tense:
        row = tense_to_row(tense)
        row["id"] = row["id"] or str(uuid.uuid4())
        with use_cursor(self.conn, cursor) as cur:
            cur.execute(*insert_statement("tense_table", row))
            return tense_from_row(cur.fetchone())

    def update(self, tense: Tense, cursor=None) -> Tense:
        if not tense.tense_id:
            raise bad_request("Missing tense_id")
        values = tense_to_row(tense)
        values.pop("id")
        query = update_statement("tense_table", values, "id")
        with use_cursor(self.conn, cursor) as cur:
            cur.execute(query, list(values.values()) + [tense.tense_id])
            row = cur.fetchone()
        if row is None:
            raise not_found(tense.tense_id)
        return tense_from_row(row)

    def select(self, criteria: Dict[str, Any]) -> List[Tense]:
        builder = QueryBuilder(sql.SQL("SELECT * FROM tense_table"))
        builder.add_criteria(criteria, CRITERIA)
        low, high = criteria.get("min_difficulty"), criteria.get("max_difficulty")
        if low and high:
            builder.between("difficulty_level", int(low), int(high))
        elif low:
            builder.compare("difficulty_level", ">=", int(low))
        elif high:
            builder.compare("difficulty_level", "<=", int(high))
        if criteria.get("order_by"):
            builder.order_by([(criteria["order_by"], criteria.get("order_direction") or "ASC")],
                             allowed=ORDER_COLUMNS)
        else:
            builder.order_by([("time_group", "ASC"), ("subcategory", "ASC")])
        query, params = builder.build()
        with transaction(self.conn) as cursor:
            cursor.execute(query, params)
            return [tense_from_row(r) for r in cursor.fetchall()]

    def get(self, tense_id: str) -> Tense:
        found = self.select({"tense_id": tense_id})
        if not found:
            raise NotFoundError("Tense not found")
        return found[0]

    def find_by_name(self, tense_name: str) -> Optional[Tense]:
        with transaction(self.conn) as cursor:
            cursor.execute("SELECT * FROM tense_table WHERE tense_name = %s", (tense_name,))
            row = cursor.fetchone()
        return tense_from_row(row) if row else None

    def delete(self, tense_id: str) -> Dict[str, Any]:
        """Remove a tense with its quizzes and examples; nothing is removed on failure"""
        with transaction(self.conn) as cursor:
            self.quiz_details.delete_by_tense(tense_id, cursor)
            self.quiz_items.delete_by_tense(tense_id, cursor)
            self.examples.delete_by_tense(tense_id, cursor)
            cursor.execute("DELETE FROM tense_table WHERE id = %s", (tense_id,))
            if cursor.rowcount == 0:
                raise not_found(tense_id)
        logger.info(f"Tense {tense_id} deleted with its examples and quizzes")
        return {"success": True, "message": "Tense and associated data deleted successfully."}

    def fetch_examples(self, tense_id: str) -> List[Example]:
        return self.examples.select({"tense_id": tense_id})

    def fetch_quizzes(self, tense_id: str) -> List[QuizItem]:
        return self.quiz_items.select(tense_id)

    def tense_map(self) -> List[Dict[str, Any]]:
        with transaction(self.conn) as cursor:
            cursor.execute(
                """
                SELECT
                    time_group,
                    json_agg(
                        json_build_object(
                            'id', id,
                            'tense_name', tense_name,
                            'description', tense_description,
                            'subcategory', subcategory,
                            'difficulty_level', difficulty_level
                        ) ORDER BY subcategory
                    ) AS tenses
                FROM tense_table
                WHERE active = true
                GROUP BY time_group
                ORDER BY
                    CASE
                        WHEN time_group = 'Present' THEN 1
                        WHEN time_group = 'Past' THEN 2
                        WHEN time_group = 'Future' THEN 3
                        ELSE 4
                    END
                """
            )
            return [dict(r) for r in cursor.fetchall()]

    def tense_with_examples(self, tense_id: str) -> Dict[str, Any]:
        tense = self.get(tense_id)
        examples = self.examples.select(
            {"tense_id": tense_id, "teacher_reviewed": True},
            order=[("sentence_type", "ASC"), ("difficulty_level", "ASC")],
        )
        result = tense_to_wire(tense)
        result["examples"] = group_by_sentence_type(
            [example_to_wire(e, include_user=False, include_review=False, include_extended=False)
             for e in examples]
        )
        return result

    def example_counts(self) -> Dict[str, Dict[str, int]]:
        """Per tense: number of examples and of legacy quiz items"""
        with transaction(self.conn) as cursor:
            cursor.execute("SELECT tense_id, COUNT(*) AS count FROM example_table GROUP BY tense_id")
            examples = {r["tense_id"]: int(r["count"]) for r in cursor.fetchall()}
            cursor.execute("SELECT tense_id, COUNT(*) AS count FROM quiz_table GROUP BY tense_id")
            quizzes = {r["tense_id"]: int(r["count"]) for r in cursor.fetchall()}
        return {"examples": examples, "quizzes": quizzes}

    # ---------- per-user statistics ----------
    def _progress_figures(self, user_id: str, tense_id: str) -> Dict[str, Any]:
        with transaction(self.conn) as cursor:
            cursor.execute(
                "SELECT completion_percentage, quiz_avg_score, examples_submitted, examples_correct, "
                "is_completed, updated_at AS last_activity FROM user_progress "
                "WHERE user_id = %s AND tense_id = %s",
                (user_id, tense_id),
            )
            row = cursor.fetchone()
        if row:
            return dict(row)
        logger.warning(f"No progress row for {user_id}/{tense_id}, deriving from quiz_performance")
        with transaction(self.conn) as cursor:
            cursor.execute(
                """
                SELECT
                    ROUND(AVG(correct_answers * 100.0 / NULLIF(total_questions, 0)), 2) AS quiz_avg_score,
                    SUM(correct_answers) AS examples_correct,
                    SUM(total_questions) AS examples_submitted,
                    MAX(created_at) AS last_activity,
                    COUNT(DISTINCT id) AS quiz_count
                FROM quiz_performance
                WHERE user_id = %s AND tense_id = %s
                """,
                (user_id, tense_id),
            )
            row = cursor.fetchone() or {}
        completion = scoring.fallback_completion(row.get("quiz_avg_score"), row.get("quiz_count"))
        return {
            "completion_percentage": completion,
            "quiz_avg_score": float(row.get("quiz_avg_score") or 0),
            "examples_submitted": int(row.get("examples_submitted") or 0),
            "examples_correct": int(row.get("examples_correct") or 0),
            "is_completed": scoring.is_completed(completion),
            "last_activity": row.get("last_activity"),
        }

    def tense_stats(self, user_id: str, tense_id: str) -> Dict[str, Any]:
        try:
            progress = self._progress_figures(user_id, tense_id)
            with transaction(self.conn) as cursor:
                cursor.execute(
                    """
                    SELECT
                        COALESCE(SUM(la.total_time_spent), 0) AS total_study_time_seconds,
                        COUNT(DISTINCT la.session_date) AS study_sessions,
                        MAX(la.session_date) AS last_study_date
                    FROM learning_activity la
                    WHERE la.user_id = %s
                    AND EXISTS (
                        SELECT 1 FROM jsonb_array_elements(COALESCE(la.tenses_practiced, '[]'::jsonb)) elem
                        WHERE elem->>'tense_id' = %s
                    )
                    """,
                    (user_id, tense_id),
                )
                study = cursor.fetchone() or {}
                cursor.execute(
                    """
                    SELECT
                        COUNT(*) AS total_examples,
                        COUNT(CASE WHEN user_id = %s THEN 1 END) AS user_examples,
                        COUNT(CASE WHEN teacher_reviewed = true THEN 1 END) AS approved_examples
                    FROM example_table
                    WHERE tense_id = %s
                    """,
                    (user_id, tense_id),
                )
                examples = cursor.fetchone() or {}
        except AppError as e:
            logger.error(f"Tense statistics for {user_id}/{tense_id} unavailable: {e.message}")
            stats = dict(EMPTY_STATS)
            stats["formatted_study_time"] = scoring.format_study_time(0)
            return stats
        stats = {
            "completion_percentage": int(progress.get("completion_percentage") or 0),
            "average_score": float(progress.get("quiz_avg_score") or 0),
            "total_study_time_seconds": int(study.get("total_study_time_seconds") or 0),
            "study_sessions": int(study.get("study_sessions") or 0),
            "last_study_date": study.get("last_study_date"),
            "total_examples": int(examples.get("total_examples") or 0),
            "user_examples": int(examples.get("user_examples") or 0),
            "approved_examples": int(examples.get("approved_examples") or 0),
            "examples_submitted": int(progress.get("examples_submitted") or 0),
            "examples_correct": int(progress.get("examples_correct") or 0),
            "is_completed": bool(progress.get("is_completed")),
            "last_activity": progress.get("last_activity"),
        }
        stats["formatted_study_time"] = scoring.format_study_time(stats["total_study_time_seconds"])
        return stats


def _example_text(item: Any) -> Optional[str]:
    if isinstance(item, str):
        return item
    return item.get("example_text") or item.get("text")


def _guest_tense(tense: Dict[str, Any], examples: Dict[str, List[Dict[str, Any]]]) -> Dict[str, Any]:
    return {
        "tense_id": tense["tense_id"],
        "tense_name": tense["tense_name"],
        "time_group": tense.get("time_group"),
        "subcategory": tense.get("subcategory"),
        "description": tense.get("description"),
        "examples": {kind: items[:GUEST_EXAMPLES_PER_TYPE] for kind, items in examples.items()},
    }


class TenseService:
    """Role-aware tense operations; guests always receive the trimmed shapes."""

    def __init__(self, conn):
        self.dao = TenseDao(conn)

    # ---------- reads ----------
    def list_tenses(self, principal: Principal, criteria: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        results = []
        for tense in self.dao.select(criteria or {}):
            wire = tense_to_wire(tense)
            if principal.is_guest:
                examples = [e for e in self.dao.fetch_examples(tense.tense_id) if e.teacher_reviewed]
                basic = [example_to_wire(e, include_user=False, include_review=False, include_extended=False)
                         for e in examples]
                results.append(_guest_tense(wire, group_by_sentence_type(basic)))
                continue
            examples = self.dao.fetch_examples(tense.tense_id)
            if principal.role == STUDENT:
                examples = [e for e in examples if e.teacher_reviewed or e.user_id == principal.user_id]
            wire["examples"] = [example_to_wire(e) for e in examples]
            wire["quizzes"] = [quiz_item_to_wire(q) for q in self.dao.fetch_quizzes(tense.tense_id)]
            results.append(wire)
        return results

    def tense_map(self, principal: Principal) -> List[Dict[str, Any]]:
        groups = self.dao.tense_map()
        if not principal.is_guest:
            return groups
        return [
            {
                "time_group": group["time_group"],
                "tenses": [
                    {"id": t["id"], "tense_name": t["tense_name"], "subcategory": t.get("subcategory")}
                    for t in (group.get("tenses") or [])
                ],
            }
            for group in groups
        ]

    def get_tense(self, tense_id: str, principal: Principal) -> Dict[str, Any]:
        result = self.dao.tense_with_examples(tense_id)
        if principal.is_guest:
            return _guest_tense(result, result["examples"])
        result["quizzes"] = [quiz_item_to_wire(q) for q in self.dao.fetch_quizzes(tense_id)]
        return result

    def dashboard(self) -> List[Dict[str, Any]]:
        counts = self.dao.example_counts()
        results = []
        for tense in self.dao.select({}):
            wire = tense_to_wire(tense)
            wire["examples_count"] = counts["examples"].get(tense.tense_id, 0)
            wire["quizzes_count"] = counts["quizzes"].get(tense.tense_id, 0)
            results.append(wire)
        return results

    def tense_stats(self, user_id: str, tense_id: str) -> Dict[str, Any]:
        stats = self.dao.tense_stats(user_id, tense_id)
        accuracy = scoring.examples_accuracy(stats["examples_submitted"], stats["examples_correct"])
        return {
            "completion_percentage": stats["completion_percentage"],
            "average_score": stats["average_score"],
            "total_study_time": stats["formatted_study_time"],
            "total_study_time_seconds": stats["total_study_time_seconds"],
            "examples": {
                "total": stats["total_examples"],
                "user_created": stats["user_examples"],
                "user_submitted": stats["examples_submitted"],
                "user_correct": stats["examples_correct"],
                "accuracy_percentage": accuracy,
                "approved": stats["approved_examples"],
            },
            "is_completed": stats["is_completed"],
            "proficiency_level": scoring.proficiency_level(stats["completion_percentage"],
                                                           stats["average_score"]),
            "study_sessions": stats["study_sessions"],
            "last_activity": stats["last_activity"],
            "last_study_date": stats["last_study_date"],
        }

    # ---------- writes ----------
    def _insert_children(self, tense_id: str, examples, quizzes, cursor) -> Dict[str, List[Dict[str, Any]]]:
        created_examples = []
        for item in examples or []:
            text = _example_text(item)
            if not text:
                continue
            extra = item if isinstance(item, dict) else {}
            example = Example(
                example_text=text,
                tense_id=tense_id,
                sentence_type=extra.get("sentence_type") or "affirmative",
                difficulty_level=extra.get("difficulty_level") or 3,
                teacher_reviewed=True,
                student_submission=False,
            )
            created_examples.append(example_to_wire(self.dao.examples.insert(example, cursor=cursor)))
        created_quizzes = []
        for item in quizzes or []:
            quiz = QuizItem(
                tense_id=tense_id,
                question=item["question"],
                options=item.get("options") or [],
                correct_answer=item.get("correct_answer"),
            )
            created_quizzes.append(quiz_item_to_wire(self.dao.quiz_items.insert(quiz, cursor=cursor)))
        return {"examples": created_examples, "quizzes": created_quizzes}

    def create_tense(self, body: Dict[str, Any]) -> Dict[str, Any]:
        existing = self.dao.find_by_name(body["tense_name"])
        if existing is not None:
            raise ConflictError("A tense with this name already exists",
                                extra={"existingTenseId": existing.tense_id})
        tense = Tense(
            tense_name=body["tense_name"],
            description=body.get("description") or body.get("tense_description"),
            time_group=body.get("time_group"),
            subcategory=body.get("subcategory"),
            grammar_rules=body.get("grammar_rules"),
            example_structure=body.get("example_structure"),
            usage_notes=body.get("usage_notes"),
            difficulty_level=body.get("difficulty_level") or 3,
        )
        with transaction(self.dao.conn) as cursor:
            created = self.dao.insert(tense, cursor=cursor)
            children = self._insert_children(created.tense_id, body.get("examples"),
                                             body.get("quizzes"), cursor)
        logger.info(f"Tense '{created.tense_name}' created as {created.tense_id}")
        result = tense_to_wire(created)
        result.update(children)
        return result

    def update_tense(self, tense_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        current = self.dao.get(tense_id)
        changes = {k: body[k] for k in TENSE_FIELDS if body.get(k) is not None}
        if body.get("tense_description") is not None and "description" not in changes:
            changes["description"] = body["tense_description"]
        updated = current.model_copy(update=changes)
        examples, quizzes = body.get("examples"), body.get("quizzes")
        with transaction(self.dao.conn) as cursor:
            saved = self.dao.update(updated, cursor=cursor)
            if examples is not None:
                self.dao.examples.delete_by_tense(tense_id, cursor)
            if quizzes is not None:
                self.dao.quiz_items.delete_by_tense(tense_id, cursor)
            children = self._insert_children(tense_id, examples, quizzes, cursor)
        result = tense_to_wire(saved)
        if examples is not None:
            result["examples"] = children["examples"]
        if quizzes is not None:
            result["quizzes"] = children["quizzes"]
        return result

    def delete_tense(self, tense_id: str) -> Dict[str, Any]:
        return self.dao.delete(tense_id)

    def toggle_active(self, tense_id: str, active: bool) -> Dict[str, Any]:
        current = self.dao.get(tense_id)
        return tense_to_wire(self.dao.update(current.model_copy(update={"active": active})))
