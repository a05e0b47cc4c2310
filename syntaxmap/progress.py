import csv
import io
import json
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from psycopg2 import sql

from syntaxmap import scoring
from syntaxmap.database import table_exists, transaction
from syntaxmap.errors import AppError, BadRequestError, NotFoundError
from syntaxmap.notifications import NotificationService
from syntaxmap.records import (
    Activity, Progress, achievement_from_row, activity_from_row, assessment_from_row,
    progress_from_row, progress_to_wire,
)

logger = logging.getLogger(__name__)

GENERATED_PREFIX = "generated-"

_PERFORMANCE_AGGREGATE = sql.SQL("""
    SELECT
        qp.tense_id,
        t.tense_name,
        COUNT(DISTINCT qp.id) AS quiz_count,
        ROUND(AVG(qp.correct_answers * 100.0 / NULLIF(qp.total_questions, 0)), 2) AS quiz_avg_score,
        SUM(qp.correct_answers) AS examples_correct,
        SUM(qp.total_questions) AS examples_submitted,
        MAX(qp.created_at) AS updated_at
    FROM quiz_performance qp
    JOIN tense_table t ON qp.tense_id = t.id
    WHERE qp.user_id = %s {tense_filter}
    GROUP BY qp.tense_id, t.tense_name
    ORDER BY updated_at DESC
""")


def _utc_today():
    return datetime.utcnow().date()


def is_stored(progress: Optional[Progress]) -> bool:
    """False for progress derived from quiz_performance, which has no row to update"""
    return progress is not None and bool(progress.id) and not progress.id.startswith(GENERATED_PREFIX)


def progress_from_performance(user_id: str, row: Dict[str, Any]) -> Progress:
    completion = scoring.fallback_completion(row.get("quiz_avg_score"), row.get("quiz_count"))
    return Progress(
        id=f"{GENERATED_PREFIX}{user_id}-{row['tense_id']}",
        user_id=user_id,
        tense_id=row["tense_id"],
        tense_name=row.get("tense_name"),
        completion_percentage=completion,
        quiz_avg_score=float(row.get("quiz_avg_score") or 0),
        quiz_count=int(row.get("quiz_count") or 0),
        examples_submitted=int(row.get("examples_submitted") or 0),
        examples_correct=int(row.get("examples_correct") or 0),
        is_completed=scoring.is_completed(completion),
        created_at=row.get("updated_at"),
        updated_at=row.get("updated_at"),
    )


def progress_stats(progress: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Summary figures shown next to a student's progress list"""
    stats = {
        "overall_completion": 0,
        "tenses_started": 0,
        "tenses_completed": 0,
        "quiz_avg_score": 0,
        "examples_submitted": 0,
        "examples_correct": 0,
        "accuracy_percentage": 0,
        "last_activity": None,
        "recent_tenses": [],
    }
    if not progress:
        return stats
    stats["tenses_started"] = len(progress)
    stats["tenses_completed"] = sum(1 for p in progress if p.get("is_completed"))
    total = sum(p.get("completion_percentage") or 0 for p in progress)
    stats["overall_completion"] = scoring.round_half_up(total / len(progress))
    scores = [p["quiz_avg_score"] for p in progress if p.get("quiz_avg_score") is not None]
    if scores:
        stats["quiz_avg_score"] = round(sum(scores) / len(scores), 1)
    stats["examples_submitted"] = sum(p.get("examples_submitted") or 0 for p in progress)
    stats["examples_correct"] = sum(p.get("examples_correct") or 0 for p in progress)
    stats["accuracy_percentage"] = scoring.examples_accuracy(stats["examples_submitted"],
                                                             stats["examples_correct"])
    dated = sorted((p for p in progress if p.get("updated_at")), key=lambda p: p["updated_at"], reverse=True)
    if dated:
        stats["last_activity"] = dated[0]["updated_at"]
    stats["recent_tenses"] = [p["tense_id"] for p in dated if p.get("tense_id")][:3]
    return stats


class ProgressDao:

    def __init__(self, conn):
        self.conn = conn

    # ---------- progress ----------
    def _from_performance(self, user_id: str, tense_id: Optional[str] = None) -> List[Progress]:
        params: List[Any] = [user_id]
        tense_filter = sql.SQL("")
        if tense_id:
            tense_filter = sql.SQL("AND qp.tense_id = %s")
            params.append(tense_id)
        with transaction(self.conn) as cursor:
            cursor.execute(_PERFORMANCE_AGGREGATE.format(tense_filter=tense_filter), params)
            return [progress_from_performance(user_id, r) for r in cursor.fetchall()]

    def user_progress(self, user_id: str) -> List[Progress]:
        if table_exists(self.conn, "user_progress"):
            try:
                with transaction(self.conn) as cursor:
                    cursor.execute(
                        "SELECT up.*, t.tense_name FROM user_progress up "
                        "LEFT JOIN tense_table t ON t.id = up.tense_id "
                        "WHERE up.user_id = %s ORDER BY up.updated_at DESC",
                        (user_id,),
                    )
                    rows = cursor.fetchall()
            except AppError as e:
                logger.warning(f"user_progress unreadable for {user_id}: {e.message}")
                rows = []
            if rows:
                return [progress_from_row(r) for r in rows]
        logger.warning(f"Deriving progress of user {user_id} from quiz_performance")
        return self._from_performance(user_id)

    def tense_progress(self, user_id: str, tense_id: str) -> Optional[Progress]:
        if table_exists(self.conn, "user_progress"):
            with transaction(self.conn) as cursor:
                cursor.execute(
                    "SELECT * FROM user_progress WHERE user_id = %s AND tense_id = %s",
                    (user_id, tense_id),
                )
                row = cursor.fetchone()
            if row:
                return progress_from_row(row)
        derived = self._from_performance(user_id, tense_id)
        return derived[0] if derived else None

    def insert(self, progress: Progress) -> Progress:
        with transaction(self.conn) as cursor:
            cursor.execute(
                """
                INSERT INTO user_progress (id, user_id, tense_id, completion_percentage, quiz_avg_score,
                    quiz_count, examples_submitted, examples_correct, is_completed, created_at, updated_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)
                RETURNING *
                """,
                (progress.id or str(uuid.uuid4()), progress.user_id, progress.tense_id,
                 progress.completion_percentage, progress.quiz_avg_score, progress.quiz_count,
                 progress.examples_submitted, progress.examples_correct, progress.is_completed),
            )
            return progress_from_row(cursor.fetchone())

    def update(self, progress: Progress) -> Progress:
        with transaction(self.conn) as cursor:
            cursor.execute(
                """
                UPDATE user_progress SET
                    completion_percentage = %s,
                    quiz_avg_score = %s,
                    quiz_count = %s,
                    examples_submitted = %s,
                    examples_correct = %s,
                    is_completed = %s,
                    updated_at = CURRENT_TIMESTAMP
                WHERE id = %s
                RETURNING *
                """,
                (progress.completion_percentage, progress.quiz_avg_score, progress.quiz_count,
                 progress.examples_submitted, progress.examples_correct, progress.is_completed,
                 progress.id),
            )
            row = cursor.fetchone()
        if row is None:
            raise NotFoundError("No progress found for this tense")
        return progress_from_row(row)

    # ---------- achievements ----------
    def achievements(self, user_id: str):
        with transaction(self.conn) as cursor:
            cursor.execute(
                "SELECT * FROM user_achievements WHERE user_id = %s ORDER BY achieved_at DESC",
                (user_id,),
            )
            return [achievement_from_row(r) for r in cursor.fetchall()]

    def insert_achievement(self, user_id: str, award: scoring.Award):
        achievement_type, level, _, name, description = award
        with transaction(self.conn) as cursor:
            cursor.execute(
                "INSERT INTO user_achievements (id, user_id, achievement_type, achievement_name, "
                "achievement_description, achievement_level, achieved_at) "
                "VALUES (%s, %s, %s, %s, %s, %s, CURRENT_TIMESTAMP) RETURNING *",
                (str(uuid.uuid4()), user_id, achievement_type, name, description, level),
            )
            return achievement_from_row(cursor.fetchone())

    # ---------- learning activity ----------
    def activity(self, user_id: str, limit: int = 7) -> List[Activity]:
        with transaction(self.conn) as cursor:
            cursor.execute(
                "SELECT * FROM learning_activity WHERE user_id = %s ORDER BY session_date DESC LIMIT %s",
                (user_id, limit),
            )
            return [activity_from_row(r) for r in cursor.fetchall()]

    def activity_for_date(self, user_id: str, day) -> Optional[Activity]:
        with transaction(self.conn) as cursor:
            cursor.execute(
                "SELECT * FROM learning_activity WHERE user_id = %s AND session_date = %s",
                (user_id, day),
            )
            row = cursor.fetchone()
        return activity_from_row(row) if row else None

    def insert_activity(self, activity: Activity) -> Activity:
        with transaction(self.conn) as cursor:
            cursor.execute(
                "INSERT INTO learning_activity (id, user_id, session_date, total_time_spent, "
                "tenses_practiced, activities_completed, streak_days) "
                "VALUES (%s, %s, %s, %s, %s, %s, %s) RETURNING *",
                (activity.id or str(uuid.uuid4()), activity.user_id, activity.session_date,
                 activity.total_time_spent, json.dumps(activity.tenses_practiced),
                 json.dumps(activity.activities_completed), activity.streak_days),
            )
            return activity_from_row(cursor.fetchone())

    def update_activity(self, activity: Activity) -> Activity:
        with transaction(self.conn) as cursor:
            cursor.execute(
                "UPDATE learning_activity SET total_time_spent = %s, tenses_practiced = %s, "
                "activities_completed = %s, streak_days = %s WHERE id = %s RETURNING *",
                (activity.total_time_spent, json.dumps(activity.tenses_practiced),
                 json.dumps(activity.activities_completed), activity.streak_days, activity.id),
            )
            return activity_from_row(cursor.fetchone())

    # ---------- assessments ----------
    def insert_assessment(self, teacher_id: str, student_id: str, tense_id: Optional[str],
                          score: Optional[float], feedback: str):
        with transaction(self.conn) as cursor:
            cursor.execute(
                "INSERT INTO assessments (id, teacher_id, student_id, tense_id, score, feedback) "
                "VALUES (%s, %s, %s, %s, %s, %s) RETURNING *",
                (str(uuid.uuid4()), teacher_id, student_id, tense_id, score, feedback),
            )
            return assessment_from_row(cursor.fetchone())

    def assessments_for(self, student_id: str) -> List[Dict[str, Any]]:
        with transaction(self.conn) as cursor:
            cursor.execute(
                """
                SELECT a.id, a.teacher_id, a.student_id, a.tense_id, a.score, a.feedback, a.created_at,
                       u.user_name AS teacher_name, t.tense_name
                FROM assessments a
                LEFT JOIN user_table u ON a.teacher_id = u.user_id
                LEFT JOIN tense_table t ON a.tense_id = t.id
                WHERE a.student_id = %s
                ORDER BY a.created_at DESC
                """,
                (student_id,),
            )
            return [dict(r) for r in cursor.fetchall()]

    # ---------- teacher views ----------
    def student(self, student_id: str) -> Dict[str, Any]:
        with transaction(self.conn) as cursor:
            cursor.execute(
                "SELECT user_id, user_name, user_email_address FROM user_table WHERE user_id = %s",
                (student_id,),
            )
            row = cursor.fetchone()
        if row is None:
            raise NotFoundError(f"Student with ID {student_id} not found")
        return dict(row)

    def report_quizzes(self, student_id: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        clauses, params = [sql.SQL("qp.user_id = %s")], [student_id]
        if filters.get("tense_id"):
            clauses.append(sql.SQL("qp.tense_id = %s"))
            params.append(filters["tense_id"])
        if filters.get("start_date") and filters.get("end_date"):
            clauses.append(sql.SQL("qp.created_at BETWEEN %s AND %s"))
            params.extend([filters["start_date"], filters["end_date"]])
        with transaction(self.conn) as cursor:
            cursor.execute(
                sql.SQL("""
                SELECT qp.id, qp.quiz_details_id AS quiz_id, qd.title AS quiz_title,
                       qp.correct_answers::float / NULLIF(qp.total_questions, 0) * 100 AS score,
                       qp.total_time_taken AS time_spent, qp.correct_answers AS questions_correct,
                       qp.total_questions AS questions_total, qp.tense_id, t.tense_name,
                       qp.created_at
                FROM quiz_performance qp
                LEFT JOIN quiz_details qd ON qp.quiz_details_id = qd.id
                LEFT JOIN tense_table t ON qp.tense_id = t.id
                WHERE {where}
                ORDER BY qp.created_at DESC
                """).format(where=sql.SQL(" AND ").join(clauses)),
                params,
            )
            return [dict(r) for r in cursor.fetchall()]

    def report_dictionary(self, student_id: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        clauses, params = [sql.SQL("user_id = %s")], [student_id]
        if filters.get("start_date") and filters.get("end_date"):
            clauses.append(sql.SQL("created_at BETWEEN %s AND %s"))
            params.extend([filters["start_date"], filters["end_date"]])
        with transaction(self.conn) as cursor:
            cursor.execute(
                sql.SQL("""
                SELECT word, COUNT(*) AS lookup_count, MAX(created_at) AS last_lookup_date
                FROM user_dictionnary
                WHERE {where}
                GROUP BY word
                ORDER BY lookup_count DESC
                """).format(where=sql.SQL(" AND ").join(clauses)),
                params,
            )
            return [dict(r) for r in cursor.fetchall()]


class ProgressService:

    def __init__(self, conn):
        self.dao = ProgressDao(conn)
        self.notifications = NotificationService(conn)

    # ---------- reads ----------
    def user_progress(self, user_id: str) -> List[Dict[str, Any]]:
        return [progress_to_wire(p) for p in self.dao.user_progress(user_id)]

    def tense_progress(self, user_id: str, tense_id: str) -> Dict[str, Any]:
        progress = self.dao.tense_progress(user_id, tense_id)
        if progress is None:
            raise NotFoundError("No progress found for this tense")
        return progress_to_wire(progress)

    # ---------- writes ----------
    def save_tense_progress(self, user_id: str, tense_id: str,
                            values: Dict[str, Any]) -> Tuple[bool, Dict[str, Any]]:
        """Create or update explicit progress values; True when a row was created"""
        values = {k: v for k, v in values.items() if v is not None}
        if "completion_percentage" in values:
            values["completion_percentage"] = scoring.clamp_percentage(values["completion_percentage"])
        current = self.dao.tense_progress(user_id, tense_id)
        if is_stored(current):
            saved = self.dao.update(current.model_copy(update=values))
            created = False
        else:
            saved = self.dao.insert(Progress(user_id=user_id, tense_id=tense_id, **values))
            created = True
        self._check_achievements(user_id)
        return created, progress_to_wire(saved)

    def update_quiz_progress(self, user_id: str, tense_id: str, score: float) -> Dict[str, Any]:
        current = self.dao.tense_progress(user_id, tense_id)
        if is_stored(current):
            figures = scoring.quiz_progress(current.quiz_avg_score, current.quiz_count,
                                            current.examples_submitted, current.examples_correct, score)
            saved = self.dao.update(current.model_copy(update=figures))
        else:
            saved = self.dao.insert(Progress(
                user_id=user_id,
                tense_id=tense_id,
                completion_percentage=scoring.QUIZ_SEED_COMPLETION,
                quiz_avg_score=score,
                quiz_count=1,
            ))
        self._record_activity(user_id, tense_id, scoring.QUIZ_ACTIVITY_SECONDS, "quiz")
        self._check_achievements(user_id)
        return progress_to_wire(saved)

    def update_example_progress(self, user_id: str, tense_id: str, is_correct: bool) -> Dict[str, Any]:
        current = self.dao.tense_progress(user_id, tense_id)
        if is_stored(current):
            figures = scoring.example_progress(current.quiz_avg_score, current.examples_submitted,
                                               current.examples_correct, is_correct)
            saved = self.dao.update(current.model_copy(update=figures))
        else:
            saved = self.dao.insert(Progress(
                user_id=user_id,
                tense_id=tense_id,
                completion_percentage=scoring.EXAMPLE_SEED_COMPLETION,
                examples_submitted=1,
                examples_correct=1 if is_correct else 0,
            ))
        self._record_activity(user_id, tense_id, scoring.EXAMPLE_ACTIVITY_SECONDS, "example")
        self._check_achievements(user_id)
        return progress_to_wire(saved)

    # ---------- activity ----------
    def activity(self, user_id: str, limit: int = 7) -> List[Dict[str, Any]]:
        return [a.model_dump() for a in self.dao.activity(user_id, limit)]

    def streak(self, user_id: str, today=None) -> int:
        today = today or _utc_today()
        recent = self.dao.activity(user_id, 7)
        if not recent:
            return 1
        return scoring.next_streak(recent[0].session_date, recent[0].streak_days, today)

    def log_activity(self, user_id: str, time_spent: int = 0, tenses: Optional[List[Dict[str, Any]]] = None,
                     activities: Optional[List[Dict[str, Any]]] = None) -> Tuple[bool, Dict[str, Any]]:
        """Merge one batch of activity into today's record; True when the record was created"""
        today = _utc_today()
        streak = self.streak(user_id, today)
        existing = self.dao.activity_for_date(user_id, today)
        if existing is None:
            saved = self.dao.insert_activity(Activity(
                user_id=user_id,
                session_date=today,
                total_time_spent=time_spent,
                tenses_practiced=scoring.merge_tenses([], tenses or []),
                activities_completed=scoring.merge_activities([], activities or []),
                streak_days=streak,
            ))
            created = True
        else:
            saved = self.dao.update_activity(existing.model_copy(update={
                "total_time_spent": existing.total_time_spent + time_spent,
                "tenses_practiced": scoring.merge_tenses(existing.tenses_practiced, tenses or []),
                "activities_completed": scoring.merge_activities(existing.activities_completed,
                                                                 activities or []),
                "streak_days": streak,
            }))
            created = False
        self._check_streak(user_id, saved.streak_days)
        return created, saved.model_dump()

    def _record_activity(self, user_id: str, tense_id: str, seconds: int, kind: str) -> None:
        try:
            self.log_activity(user_id, seconds, [{"tense_id": tense_id}], [{"type": kind, "count": 1}])
        except AppError as e:
            logger.error(f"Could not record {kind} activity for {user_id}: {e.message}")

    # ---------- achievements ----------
    def achievements(self, user_id: str) -> List[Dict[str, Any]]:
        return [a.model_dump() for a in self.dao.achievements(user_id)]

    def _award(self, user_id: str, awards: List[scoring.Award]) -> List[Dict[str, Any]]:
        owned = {(a.achievement_type, a.achievement_level) for a in self.dao.achievements(user_id)}
        unlocked = []
        for award in awards:
            if (award[0], award[1]) in owned:
                continue
            achievement = self.dao.insert_achievement(user_id, award)
            owned.add((award[0], award[1]))
            self.notifications.notify(user_id, f"Achievement Unlocked: {award[3]}!", "achievement")
            logger.info(f"User {user_id} unlocked {award[0]} level {award[1]}")
            unlocked.append(achievement.model_dump())
        return unlocked

    def _check_achievements(self, user_id: str) -> None:
        try:
            rows = [p.model_dump() for p in self.dao.user_progress(user_id)]
            self._award(user_id, scoring.progress_awards(rows))
        except AppError as e:
            logger.error(f"Achievement check failed for {user_id}: {e.message}")

    def _check_streak(self, user_id: str, streak_days: int) -> None:
        awards = scoring.streak_awards(streak_days)
        if not awards:
            return
        try:
            self._award(user_id, awards)
        except AppError as e:
            logger.error(f"Streak achievement check failed for {user_id}: {e.message}")

    # ---------- assessments ----------
    def create_assessment(self, teacher_id: str, student_id: str, tense_id: Optional[str],
                          details: Dict[str, Any]) -> Dict[str, Any]:
        if not student_id or not details:
            raise BadRequestError("Teacher ID, Student ID, and assessment data are required")
        if not details.get("feedback"):
            raise BadRequestError("Assessment feedback is required")
        assessment = self.dao.insert_assessment(teacher_id, student_id, tense_id,
                                                details.get("score"), details["feedback"])
        suffix = " on a tense" if tense_id else ""
        self.notifications.notify(student_id, f"You have received new feedback{suffix}!", "assessment")
        return assessment.model_dump()

    def student_assessments(self, student_id: str) -> Dict[str, Any]:
        return {"assessments": self.dao.assessments_for(student_id)}

    # ---------- teacher views ----------
    def student_progress(self, student_id: str) -> Dict[str, Any]:
        progress = self.user_progress(student_id)
        return {"progress": progress, "stats": progress_stats(progress)}

    def student_report(self, student_id: str, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        filters = filters or {}
        student = self.dao.student(student_id)
        tense_progress = [progress_to_wire(p) for p in self.dao._from_performance(
            student_id, filters.get("tense_id"))]
        quizzes = self.dao.report_quizzes(student_id, filters)
        words = self.dao.report_dictionary(student_id, filters)
        completed = sum(1 for t in tense_progress if t.get("is_completed"))
        overall = {
            "average_completion": (sum(t.get("completion_percentage") or 0 for t in tense_progress)
                                   / len(tense_progress)) if tense_progress else 0,
            "average_quiz_score": (sum(float(q.get("score") or 0) for q in quizzes)
                                   / len(quizzes)) if quizzes else 0,
            "tenses_completed": completed,
            "tenses_in_progress": len(tense_progress) - completed,
            "total_quizzes_taken": len(quizzes),
        }
        return {
            "student": student,
            "tense_progress": tense_progress,
            "quiz_performance": quizzes,
            "dictionary_usage": {
                "most_looked_up": words[:10],
                "total_lookups": sum(int(w.get("lookup_count") or 0) for w in words),
            },
            "overall_stats": overall,
        }


def report_to_csv(report: Dict[str, Any]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    student = report["student"]
    writer.writerow(["Student Report"])
    writer.writerow(["Student Name", student.get("user_name")])
    writer.writerow(["Student Email", student.get("user_email_address")])
    writer.writerow([])
    writer.writerow(["Overall Statistics"])
    for key, value in report["overall_stats"].items():
        writer.writerow([key.replace("_", " "), value])
    writer.writerow([])
    writer.writerow(["Tense Progress"])
    writer.writerow(["Tense", "Completion %", "Quiz Avg Score", "Quiz Count", "Examples Submitted",
                     "Examples Correct", "Completed", "Last Updated"])
    for tense in report["tense_progress"]:
        writer.writerow([tense.get("tense_name"), tense.get("completion_percentage"),
                         tense.get("quiz_avg_score"), tense.get("quiz_count"),
                         tense.get("examples_submitted"), tense.get("examples_correct"),
                         tense.get("is_completed"), tense.get("updated_at")])
    writer.writerow([])
    writer.writerow(["Quiz Performance"])
    writer.writerow(["Quiz Title", "Tense", "Score", "Time Spent", "Questions Correct",
                     "Questions Total", "Date"])
    for quiz in report["quiz_performance"]:
        writer.writerow([quiz.get("quiz_title"), quiz.get("tense_name"), quiz.get("score"),
                         quiz.get("time_spent"), quiz.get("questions_correct"),
                         quiz.get("questions_total"), quiz.get("created_at")])
    writer.writerow([])
    writer.writerow(["Most Looked Up Words"])
    writer.writerow(["Word", "Lookup Count", "Last Lookup"])
    for word in report["dictionary_usage"]["most_looked_up"]:
        writer.writerow([word.get("word"), word.get("lookup_count"), word.get("last_lookup_date")])
    return buffer.getvalue()
