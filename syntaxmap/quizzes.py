import json
import logging
import math
import random
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from psycopg2 import sql

from syntaxmap.database import transaction, use_cursor
from syntaxmap.errors import BadRequestError, ForbiddenError, NotFoundError, bad_request
from syntaxmap.querybuilder import QueryBuilder, insert_statement
from syntaxmap.records import (
    ANSWER_LETTERS, QuizDetails, QuizItem, performance_from_row, question_from_row,
    question_to_wire, quiz_details_to_wire, quiz_item_from_row, quiz_item_to_wire,
)

logger = logging.getLogger(__name__)

QUESTION_COUNT_RANGE = (1, 20)
TIME_PER_QUESTION_RANGE = (5, 300)
QUIZ_STATUSES = ("active", "inactive")

DETAILS_CRITERIA = {
    "quiz_details_id": ("id", None),
    "tense_id": ("tense_id", None),
    "difficulty_level": ("difficulty_level", "n"),
    "status": ("status", None),
}

PERFORMANCE_CRITERIA = {
    "id": ("id", None),
    "quiz_details_id": ("quiz_details_id", None),
    "tense_id": ("tense_id", None),
    "user_id": ("user_id", None),
}


def _json(value: Any) -> Optional[str]:
    # JSONB columns receive their text form
    return None if value is None else json.dumps(value)


# ========== LEGACY QUIZ TABLE ==========
class QuizItemDao:

    def __init__(self, conn):
        self.conn = conn

    def insert(self, item: QuizItem, cursor=None) -> QuizItem:
        if not item.tense_id:
            raise bad_request("Missing tense_id for quiz")
        row = {
            "id": item.quiz_id or str(uuid.uuid4()),
            "tense_id": item.tense_id,
            "question": item.question,
            "options": _json(list(item.options)),
            "correct_answer": item.correct_answer or "",
        }
        with use_cursor(self.conn, cursor) as cur:
            cur.execute(*insert_statement("quiz_table", row))
            return quiz_item_from_row(cur.fetchone())

    def select(self, tense_id: Optional[str] = None) -> List[QuizItem]:
        builder = QueryBuilder(sql.SQL("SELECT * FROM quiz_table"))
        builder.where("tense_id", tense_id)
        builder.order_by([("id", "ASC")])
        query, params = builder.build()
        with transaction(self.conn) as cursor:
            cursor.execute(query, params)
            return [quiz_item_from_row(r) for r in cursor.fetchall()]

    def delete_by_tense(self, tense_id: str, cursor) -> int:
        cursor.execute("DELETE FROM quiz_table WHERE tense_id = %s", (tense_id,))
        return cursor.rowcount


# ========== QUIZ DETAILS + QUESTIONS ==========
class QuizDetailsDao:

    def __init__(self, conn):
        self.conn = conn

    def create(self, details: Dict[str, Any], questions: List[Dict[str, Any]]) -> Dict[str, Any]:
        quiz_id = str(uuid.uuid4())
        online_exam_id = random.randint(1, 1000000)
        with transaction(self.conn) as cursor:
            cursor.execute(
                "INSERT INTO quiz_details (id, title, description, tense_id, difficulty_level, "
                "time_per_question, number_of_questions, status) "
                "VALUES (%s, %s, %s, %s, %s, %s, %s, %s) RETURNING *",
                (quiz_id, details["title"], details.get("description"), details["tense_id"],
                 details["difficulty_level"], details["time_per_question"],
                 details["number_of_questions"], details.get("status") or "inactive"),
            )
            quiz_row = cursor.fetchone()
            inserted = []
            for question in questions:
                cursor.execute(
                    "INSERT INTO question_table (question_title, answer_title_a, answer_title_b, "
                    "answer_title_c, answer_title_d, right_answer, explanation, online_exam_ids, "
                    "verified, quiz_details_id) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, true, %s) "
                    "RETURNING *",
                    (question["question_text"], *question["options"], question["right_answer"],
                     question.get("explanation"), [online_exam_id], quiz_id),
                )
                inserted.append(question_from_row(cursor.fetchone()))
        return {
            "quiz_id": quiz_id,
            "online_exam_id": online_exam_id,
            "quiz_details": QuizDetails(**quiz_row).model_dump(),
            "questions_count": len(inserted),
            "questions": [question_to_wire(q) for q in inserted],
        }

    def questions(self, quiz_id: str, limit: Optional[int] = None, cursor=None):
        with use_cursor(self.conn, cursor) as cur:
            cur.execute(
                "SELECT * FROM question_table WHERE quiz_details_id = %s ORDER BY question_id LIMIT %s",
                (quiz_id, limit or 10),
            )
            return [question_from_row(r) for r in cur.fetchall()]

    def select(self, criteria: Dict[str, Any], page: int = 1, limit: int = 10):
        """One page of quiz_details with their questions, plus the total count"""
        builder = QueryBuilder(sql.SQL("SELECT * FROM quiz_details"))
        builder.add_criteria(criteria, DETAILS_CRITERIA)
        count_builder = QueryBuilder(sql.SQL("SELECT COUNT(*) AS count FROM quiz_details"))
        count_builder.add_criteria(criteria, DETAILS_CRITERIA)
        builder.order_by([("created_at", "DESC")]).limit(limit).offset((page - 1) * limit)
        query, params = builder.build()
        count_query, count_params = count_builder.build()
        with transaction(self.conn) as cursor:
            cursor.execute(query, params)
            rows = cursor.fetchall()
            cursor.execute(count_query, count_params)
            total = int((cursor.fetchone() or {}).get("count") or 0)
            quizzes = []
            for row in rows:
                details = QuizDetails(**row)
                questions = self.questions(details.id, details.number_of_questions, cursor=cursor)
                quizzes.append(quiz_details_to_wire(details, questions))
        return quizzes, total

    def get(self, quiz_id: str) -> Dict[str, Any]:
        with transaction(self.conn) as cursor:
            cursor.execute("SELECT * FROM quiz_details WHERE id = %s", (quiz_id,))
            row = cursor.fetchone()
            if row is None:
                raise NotFoundError("Quiz not found")
            details = QuizDetails(**row)
            questions = self.questions(details.id, details.number_of_questions, cursor=cursor)
        return quiz_details_to_wire(details, questions)

    def update(self, quiz_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        with transaction(self.conn) as cursor:
            cursor.execute(
                """
                UPDATE quiz_details SET
                    title = COALESCE(%s, title),
                    description = COALESCE(%s, description),
                    tense_id = COALESCE(%s, tense_id),
                    difficulty_level = COALESCE(%s, difficulty_level),
                    time_per_question = COALESCE(%s, time_per_question),
                    number_of_questions = COALESCE(%s, number_of_questions),
                    status = COALESCE(%s, status),
                    updated_at = NOW()
                WHERE id = %s
                RETURNING *
                """,
                (fields.get("title"), fields.get("description"), fields.get("tense_id"),
                 fields.get("difficulty_level"), fields.get("time_per_question"),
                 fields.get("number_of_questions"), fields.get("status"), quiz_id),
            )
            row = cursor.fetchone()
        if row is None:
            raise NotFoundError("Quiz not found")
        return QuizDetails(**row).model_dump()

    def set_status(self, quiz_id: str, status: str) -> Dict[str, Any]:
        with transaction(self.conn) as cursor:
            cursor.execute(
                "UPDATE quiz_details SET status = %s, updated_at = NOW() WHERE id = %s RETURNING *",
                (status, quiz_id),
            )
            row = cursor.fetchone()
        if row is None:
            raise NotFoundError("Quiz not found")
        return QuizDetails(**row).model_dump()

    def exists(self, quiz_id: str) -> bool:
        with transaction(self.conn) as cursor:
            cursor.execute("SELECT id FROM quiz_details WHERE id = %s", (quiz_id,))
            return cursor.fetchone() is not None

    def delete_by_tense(self, tense_id: str, cursor) -> int:
        cursor.execute(
            "DELETE FROM question_table WHERE quiz_details_id IN "
            "(SELECT id FROM quiz_details WHERE tense_id = %s)",
            (tense_id,),
        )
        cursor.execute("DELETE FROM quiz_details WHERE tense_id = %s", (tense_id,))
        return cursor.rowcount


class QuizService:

    def __init__(self, conn):
        self.items = QuizItemDao(conn)
        self.details = QuizDetailsDao(conn)

    def practice_session(self, tense_id: str, user_id: str, question_count: int = 5,
                         time_per_question: int = 30) -> Dict[str, Any]:
        low, high = QUESTION_COUNT_RANGE
        if not low <= question_count <= high:
            raise BadRequestError("Question count must be between 1 and 20")
        low, high = TIME_PER_QUESTION_RANGE
        if not low <= time_per_question <= high:
            raise BadRequestError("Time per question must be between 5 and 300 seconds")
        items = self.items.select(tense_id)
        if not items:
            raise NotFoundError("No quizzes found for this tense")
        if len(items) > question_count:
            items = random.sample(items, question_count)
        return {
            "tense_id": tense_id,
            "quiz_id": str(uuid.uuid4()),
            "user_id": user_id,
            "time_per_question": time_per_question,
            "total_time": time_per_question * len(items),
            "questions": [quiz_item_to_wire(i) for i in items],
            "created_at": datetime.utcnow(),
        }

    def list_quizzes(self, criteria: Dict[str, Any], page: int = 1, limit: int = 10) -> Dict[str, Any]:
        page = max(int(page or 1), 1)
        limit = max(int(limit or 10), 1)
        quizzes, total = self.details.select(criteria, page=page, limit=limit)
        return {
            "data": quizzes,
            "pagination": {"page": page, "limit": limit, "total": total,
                           "pages": math.ceil(total / limit)},
        }

    def get_quiz(self, quiz_id: str) -> Dict[str, Any]:
        return self.details.get(quiz_id)

    def create_quiz(self, details: Dict[str, Any], questions: List[Dict[str, Any]]) -> Dict[str, Any]:
        required = ("title", "tense_id", "difficulty_level", "time_per_question", "number_of_questions")
        if any(not details.get(field) for field in required):
            raise BadRequestError("Missing required fields for quiz_details table")
        if not questions:
            raise BadRequestError("Questions array is required for question_table")
        prepared = []
        for question in questions:
            options = list(question.get("options") or [])
            if len(options) != 4:
                raise BadRequestError("Each question must have exactly 4 options for question_table")
            if question.get("correct_answer") not in options:
                raise BadRequestError("Correct answer must match one of the options")
            prepared.append({
                "question_text": question.get("question_text"),
                "options": options,
                "right_answer": ANSWER_LETTERS[options.index(question["correct_answer"])],
                "explanation": question.get("explanation"),
            })
        created = self.details.create(details, prepared)
        logger.info(f"Quiz {created['quiz_id']} created with {created['questions_count']} questions")
        return created

    def update_quiz(self, quiz_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return self.details.update(quiz_id, fields)

    def set_status(self, quiz_id: str, status: Optional[str]) -> Dict[str, Any]:
        if status not in QUIZ_STATUSES:
            raise BadRequestError("Status must be either 'active' or 'inactive'")
        return self.details.set_status(quiz_id, status)


# ========== QUIZ PERFORMANCE ==========
class QuizPerformanceDao:

    def __init__(self, conn):
        self.conn = conn

    def insert(self, data: Dict[str, Any]):
        row = dict(data)
        row["id"] = row.get("id") or str(uuid.uuid4())
        row["incorrect_question_data"] = _json(row.get("incorrect_question_data") or [])
        row["missed_questions"] = _json(row.get("missed_questions") or [])
        with transaction(self.conn) as cursor:
            cursor.execute(*insert_statement("quiz_performance", row))
            return performance_from_row(cursor.fetchone())

    def select(self, criteria: Dict[str, Any], limit: Optional[int] = None):
        builder = QueryBuilder(sql.SQL("SELECT * FROM quiz_performance"))
        builder.add_criteria(criteria, PERFORMANCE_CRITERIA)
        builder.order_by([("created_at", "DESC")]).limit(limit)
        query, params = builder.build()
        with transaction(self.conn) as cursor:
            cursor.execute(query, params)
            return [performance_from_row(r) for r in cursor.fetchall()]

    def update_incorrect_data(self, performance_id: str, data: List[Dict[str, Any]]):
        with transaction(self.conn) as cursor:
            cursor.execute(
                "UPDATE quiz_performance SET incorrect_question_data = %s WHERE id = %s RETURNING *",
                (_json(data), performance_id),
            )
            row = cursor.fetchone()
        if row is None:
            raise NotFoundError("Quiz performance not found")
        return performance_from_row(row)

    def user_stats(self, user_id: str) -> Dict[str, Any]:
        with transaction(self.conn) as cursor:
            cursor.execute(
                """
                SELECT
                    user_id,
                    COUNT(*)::integer AS total_quizzes,
                    SUM(total_questions)::integer AS total_questions,
                    SUM(correct_answers)::integer AS total_correct,
                    SUM(incorrect_answers)::integer AS total_incorrect,
                    ROUND(AVG(correct_answers * 100.0 / NULLIF(total_questions, 0))::numeric, 2)
                        AS avg_score_percentage,
                    ROUND(AVG(avg_time_per_question)::numeric, 2) AS avg_time_per_question,
                    ROUND(AVG(total_time_taken)::numeric, 2) AS avg_time_per_quiz
                FROM quiz_performance
                WHERE user_id = %s
                GROUP BY user_id
                """,
                (user_id,),
            )
            row = cursor.fetchone()
        if row is None:
            row = {"user_id": user_id}
        return {
            "user_id": row.get("user_id"),
            "total_quizzes": int(row.get("total_quizzes") or 0),
            "total_questions": int(row.get("total_questions") or 0),
            "total_correct": int(row.get("total_correct") or 0),
            "total_incorrect": int(row.get("total_incorrect") or 0),
            "avg_score_percentage": float(row.get("avg_score_percentage") or 0),
            "avg_time_per_question": float(row.get("avg_time_per_question") or 0),
            "avg_time_per_quiz": float(row.get("avg_time_per_quiz") or 0),
        }

    def user_tense_stats(self, user_id: str, tense_id: Optional[str] = None) -> List[Dict[str, Any]]:
        query = sql.SQL("""
            SELECT
                qp.user_id,
                qp.tense_id,
                t.tense_name,
                COUNT(*)::integer AS quizzes_taken,
                SUM(qp.total_questions)::integer AS total_questions,
                SUM(qp.correct_answers)::integer AS total_correct,
                SUM(qp.incorrect_answers)::integer AS total_incorrect,
                ROUND(AVG(qp.correct_answers * 100.0 / NULLIF(qp.total_questions, 0))::numeric, 2)
                    AS avg_score_percentage,
                ROUND(AVG(qp.avg_time_per_question)::numeric, 2) AS avg_time_per_question
            FROM quiz_performance qp
            JOIN tense_table t ON qp.tense_id = t.id
            WHERE qp.user_id = %s {tense_filter}
            GROUP BY qp.user_id, qp.tense_id, t.tense_name
            ORDER BY avg_score_percentage DESC
        """)
        params: List[Any] = [user_id]
        tense_filter = sql.SQL("")
        if tense_id:
            tense_filter = sql.SQL("AND qp.tense_id = %s")
            params.append(tense_id)
        query = query.format(tense_filter=tense_filter)
        with transaction(self.conn) as cursor:
            cursor.execute(query, params)
            rows = cursor.fetchall()
        return [
            {
                **row,
                "quizzes_taken": int(row.get("quizzes_taken") or 0),
                "total_questions": int(row.get("total_questions") or 0),
                "total_correct": int(row.get("total_correct") or 0),
                "total_incorrect": int(row.get("total_incorrect") or 0),
                "avg_score_percentage": float(row.get("avg_score_percentage") or 0),
                "avg_time_per_question": float(row.get("avg_time_per_question") or 0),
            }
            for row in rows
        ]


class QuizPerformanceService:

    def __init__(self, conn):
        self.dao = QuizPerformanceDao(conn)
        self.quizzes = QuizDetailsDao(conn)
        self.conn = conn

    def _tense_exists(self, tense_id: str) -> bool:
        with transaction(self.conn) as cursor:
            cursor.execute("SELECT id FROM tense_table WHERE id = %s", (tense_id,))
            return cursor.fetchone() is not None

    def record(self, user_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        if not body.get("quiz_details_id") or not body.get("tense_id") or not body.get("total_questions"):
            raise BadRequestError("Quiz details ID, tense ID, and total questions are required")
        if not self.quizzes.exists(body["quiz_details_id"]):
            raise BadRequestError(f"Quiz with ID '{body['quiz_details_id']}' does not exist in the database")
        if not self._tense_exists(body["tense_id"]):
            raise BadRequestError(f"Tense with ID '{body['tense_id']}' does not exist in the database")
        total = int(body["total_questions"])
        correct = int(body.get("correct_answers") or 0)
        incorrect = body.get("incorrect_answers")
        incorrect = int(incorrect) if incorrect is not None else max(total - correct, 0)
        time_taken = float(body.get("total_time_taken") or 0)
        performance = self.dao.insert({
            "quiz_details_id": body["quiz_details_id"],
            "tense_id": body["tense_id"],
            "user_id": user_id,
            "total_questions": total,
            "correct_answers": correct,
            "incorrect_answers": incorrect,
            "total_time_taken": time_taken,
            "avg_time_per_question": time_taken / total if total > 0 else 0,
            "incorrect_question_data": body.get("incorrect_question_data"),
            "missed_questions": body.get("missed_questions"),
        })
        logger.info(f"Quiz performance {performance.id} saved for user {user_id}")
        return {
            "performance": performance.model_dump(),
            "overall": self.dao.user_stats(user_id),
            "byTense": self.dao.user_tense_stats(user_id),
        }

    def history(self, user_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return [p.model_dump() for p in self.dao.select({"user_id": user_id}, limit=limit)]

    def for_quiz(self, quiz_id: str, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        criteria = {"quiz_details_id": quiz_id}
        if user_id:
            criteria["user_id"] = user_id
        return [p.model_dump() for p in self.dao.select(criteria)]

    def stats(self, user_id: str) -> Dict[str, Any]:
        return self.dao.user_stats(user_id)

    def tense_stats(self, user_id: str, tense_id: Optional[str] = None) -> List[Dict[str, Any]]:
        return self.dao.user_tense_stats(user_id, tense_id)

    def mark_for_review(self, performance_id: str, question_id: int, user_id: str,
                        mark_for_review: Optional[bool]) -> Dict[str, Any]:
        if mark_for_review is None:
            raise BadRequestError("mark_for_review field is required")
        found = self.dao.select({"id": performance_id})
        if not found:
            raise NotFoundError("Quiz performance not found")
        performance = found[0]
        if performance.user_id != user_id:
            raise ForbiddenError("Unauthorized access to this quiz performance data")
        entries = [dict(q) for q in (performance.incorrect_question_data or [])]
        matched = False
        for entry in entries:
            if str(entry.get("question_id")) == str(question_id):
                entry["mark_for_review"] = mark_for_review
                matched = True
        if not matched:
            raise NotFoundError(f"Question with ID {question_id} not found in this quiz performance record")
        self.dao.update_incorrect_data(performance_id, entries)
        return {"performance_id": performance_id, "question_id": question_id,
                "mark_for_review": mark_for_review}
