"""System-wide analytics for the admin dashboard.

Every figure is read live when the supporting tables exist; otherwise, or
when a query fails, a deterministic estimate scaled from the user count is
reported instead. ``data_source`` says which of the two the caller got:
``live`` (all queried figures live), ``partial`` (some queries fell back)
or ``mock`` (no live data). ``estimated_fields`` names the figures that are
estimates on the live path.

The admin dashboard reports (overview, user activity, quiz completion,
vocabulary trends, tense usage) follow the same rule per figure.
"""
import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import psycopg2
from psycopg2 import sql

from syntaxmap.database import table_exists, transaction
from syntaxmap.errors import AppError, BadRequestError

logger = logging.getLogger(__name__)

DEFAULT_USER_COUNT = 384
UNAVAILABLE = (AppError, psycopg2.Error)
REQUIRED_TABLES = ("learning_activity", "tense_table", "user_achievements")

ACTIVE_SHARE = 0.33
INACTIVE_SHARE = 0.21
NEW_USERS_SHARE = 0.11
ROLE_SHARES = {"admin": 0.01, "teacher": 0.04, "student": 0.78}
ROLE_NAMES = {1: "admin", 2: "teacher", 3: "student"}
ALWAYS_ESTIMATED = ("inactive_users", "new_users_last_30_days", "top_performers", "recent_activity")

MOCK_TENSES = [
    ("1", "Present Simple", 352),
    ("2", "Past Simple", 215),
    ("3", "Present Continuous", 189),
    ("4", "Present Perfect", 145),
    ("5", "Future Simple", 122),
]
MOCK_ACHIEVEMENTS = [
    ("daily_streak", 256),
    ("quiz_master", 178),
    ("vocab_builder", 143),
    ("perfect_score", 89),
    ("early_bird", 67),
]
MOCK_TOP_PERFORMERS = [
    ("8fc6ba6b-9a9a-4f4a-84b3-8d9ef3e2a033", "student1@example.com", 24, 95.5, 1),
    ("bb67103a-f5ba-4c2b-a09d-4cc69829a929", "student2@example.com", 18, 92.3, 2),
    ("f1929aa0-cf9c-4e22-8f8a-958f4517bb46", "student3@example.com", 15, 89.7, 3),
]


def _round(value: float) -> int:
    return int(value + 0.5)


# ========== ESTIMATES ==========
def mock_role_split(total_users: int) -> Dict[str, int]:
    split = {role: _round(total_users * share) for role, share in ROLE_SHARES.items()}
    split["guest"] = total_users - sum(split.values())
    return split


def mock_popular_tenses() -> List[Dict[str, Any]]:
    return [{"tense_id": tid, "tense_name": name, "practice_count": count}
            for tid, name, count in MOCK_TENSES]


def mock_achievement_stats() -> List[Dict[str, Any]]:
    return [{"achievement_type": kind, "count": count} for kind, count in MOCK_ACHIEVEMENTS]


def mock_top_performers(now: datetime) -> List[Dict[str, Any]]:
    return [
        {
            "user_id": user_id,
            "user_email_address": email,
            "quizzes_completed": quizzes,
            "average_score": score,
            "last_active": (now - timedelta(days=days)).isoformat(),
        }
        for user_id, email, quizzes, score, days in MOCK_TOP_PERFORMERS
    ]


def mock_recent_activity(now: datetime) -> List[Dict[str, Any]]:
    days = []
    for i in range(7):
        factor = 1 - 0.1 * i
        days.append({
            "date": (now - timedelta(days=i)).date().isoformat(),
            "unique_users": _round(78 * factor),
            "total_time_spent": _round(156420 * factor),
        })
    return days


def mock_analytics(total_users: Optional[int] = None) -> Dict[str, Any]:
    n = total_users if total_users is not None else DEFAULT_USER_COUNT
    now = datetime.utcnow()
    return {
        "total_users": n,
        "active_users": _round(n * ACTIVE_SHARE),
        "inactive_users": _round(n * INACTIVE_SHARE),
        "new_users_last_30_days": _round(n * NEW_USERS_SHARE),
        "users_by_role": mock_role_split(n),
        "popular_tenses": mock_popular_tenses(),
        "achievement_stats": mock_achievement_stats(),
        "top_performers": mock_top_performers(now),
        "recent_activity": mock_recent_activity(now),
        "data_source": "mock",
        "data_timestamp": now.isoformat(),
    }


# ========== LIVE QUERIES ==========
class AnalyticsDao:

    def __init__(self, conn):
        self.conn = conn

    def _all(self, query, params=None) -> List[Dict[str, Any]]:
        with transaction(self.conn) as cursor:
            cursor.execute(query, params)
            return [dict(r) for r in cursor.fetchall()]

    def total_users(self) -> int:
        return int(self._all("SELECT COUNT(*) AS count FROM user_table")[0]["count"])

    def active_users(self) -> int:
        rows = self._all(
            "SELECT COUNT(DISTINCT user_id) AS count FROM learning_activity "
            "WHERE session_date >= CURRENT_DATE - INTERVAL '7 days'"
        )
        return int(rows[0]["count"])

    def popular_tenses(self) -> List[Dict[str, Any]]:
        return self._all(
            """
            SELECT t.id AS tense_id, t.tense_name, COUNT(*) AS practice_count
            FROM learning_activity la
            CROSS JOIN LATERAL jsonb_array_elements(COALESCE(la.tenses_practiced, '[]'::jsonb)) AS tp(item)
            JOIN tense_table t ON t.id = tp.item ->> 'tense_id'
            WHERE la.session_date >= CURRENT_DATE - INTERVAL '30 days'
            GROUP BY t.id, t.tense_name
            ORDER BY practice_count DESC
            LIMIT 5
            """
        )

    def achievement_stats(self) -> List[Dict[str, Any]]:
        return self._all(
            "SELECT achievement_type, COUNT(*) AS count FROM user_achievements "
            "GROUP BY achievement_type ORDER BY count DESC"
        )

    def users_by_role(self) -> Dict[str, int]:
        split = {"admin": 0, "teacher": 0, "student": 0, "guest": 0}
        for row in self._all("SELECT user_role, COUNT(*) AS count FROM user_table GROUP BY user_role"):
            split[ROLE_NAMES.get(row["user_role"], "guest")] += int(row["count"])
        return split


def system_analytics(conn) -> Dict[str, Any]:
    dao = AnalyticsDao(conn)
    try:
        total_users = dao.total_users()
    except UNAVAILABLE as e:
        logger.warning(f"User count unavailable, reporting mock analytics: {e}")
        return mock_analytics()

    missing = [name for name in REQUIRED_TABLES if not table_exists(conn, name)]
    if missing:
        logger.warning(f"Analytics tables missing ({', '.join(missing)}), reporting estimates")
        return mock_analytics(total_users)

    estimated: List[str] = []
    now = datetime.utcnow()
    result: Dict[str, Any] = {"total_users": total_users}

    try:
        result["active_users"] = dao.active_users()
    except UNAVAILABLE as e:
        logger.warning(f"Active users estimated: {e}")
        result["active_users"] = _round(total_users * ACTIVE_SHARE)
        estimated.append("active_users")

    try:
        result["popular_tenses"] = dao.popular_tenses()
    except UNAVAILABLE as e:
        logger.warning(f"Popular tenses estimated: {e}")
        result["popular_tenses"] = mock_popular_tenses()
        estimated.append("popular_tenses")

    try:
        result["achievement_stats"] = dao.achievement_stats()
    except UNAVAILABLE as e:
        logger.warning(f"Achievement stats estimated: {e}")
        result["achievement_stats"] = mock_achievement_stats()
        estimated.append("achievement_stats")

    try:
        result["users_by_role"] = dao.users_by_role()
    except UNAVAILABLE as e:
        logger.warning(f"Role split estimated: {e}")
        result["users_by_role"] = mock_role_split(total_users)
        estimated.append("users_by_role")

    # no signup dates or per-user scores are stored for these
    result["inactive_users"] = _round(total_users * INACTIVE_SHARE)
    result["new_users_last_30_days"] = _round(total_users * NEW_USERS_SHARE)
    result["top_performers"] = mock_top_performers(now)
    result["recent_activity"] = mock_recent_activity(now)
    result["estimated_fields"] = estimated + list(ALWAYS_ESTIMATED)
    result["data_source"] = "partial" if estimated else "live"
    result["data_timestamp"] = now.isoformat()
    return result


# ========== ADMIN DASHBOARD REPORTS ==========
REPORT_RANGES = ("week", "month", "year")

MOCK_OVERVIEW = {
    "active_users": 0.33,
    "new_users_last_30_days": 0.11,
    "total_quizzes": 42,
    "completed_quizzes": 1240,
    "vocabulary_words": 3560,
}
MOCK_SERIES = {
    "Active Users": [65, 75, 82, 78],
    "New Registrations": [15, 22, 18, 25],
    "Quizzes Completed": [48, 52, 58, 63],
    "Quizzes Passed": [32, 38, 45, 52],
    "New Words Added": [120, 145, 132, 155],
    "Words Learned": [85, 92, 103, 112],
}
MOCK_PASS_RATE = 78
MOCK_TOP_WORDS = [("eloquent", 52), ("serendipity", 48), ("ephemeral", 45), ("ubiquitous", 42),
                  ("mellifluous", 38)]
MOCK_TENSE_USAGE = [("Present Simple", 35), ("Present Perfect", 22), ("Past Simple", 18),
                    ("Future Simple", 15), ("Present Continuous", 10)]
MOCK_TENSE_DIFFICULTIES = [("Present Perfect", 65), ("Past Perfect", 58), ("Future Perfect Continuous", 52),
                           ("Past Perfect Continuous", 48), ("Future Perfect", 45)]
PASS_MARK = 50

Bucket = Tuple[str, date, date]


def _month_start(day: date, months_back: int) -> date:
    index = day.year * 12 + day.month - 1 - months_back
    return date(index // 12, index % 12 + 1, 1)


def report_buckets(range_: str, today: date) -> List[Bucket]:
    """Consecutive ``(label, start, end)`` periods, oldest first; ``end`` is exclusive"""
    if range_ == "week":
        days = [today - timedelta(days=i) for i in range(6, -1, -1)]
        return [(d.isoformat(), d, d + timedelta(days=1)) for d in days]
    if range_ == "month":
        first = today - timedelta(days=27)
        return [(f"Week {i + 1}", first + timedelta(days=7 * i), first + timedelta(days=7 * (i + 1)))
                for i in range(4)]
    if range_ == "year":
        months = [_month_start(today, i) for i in range(11, -2, -1)]
        return [(start.strftime("%Y-%m"), start, end) for start, end in zip(months, months[1:])]
    raise BadRequestError(f"range must be one of {', '.join(REPORT_RANGES)}")


def _day(value) -> date:
    return value.date() if isinstance(value, datetime) else value


def bucket_counts(rows: Iterable[Dict[str, Any]], buckets: Sequence[Bucket], field: str = "count") -> List[int]:
    totals = [0] * len(buckets)
    for row in rows:
        day = _day(row["day"])
        for i, (_, start, end) in enumerate(buckets):
            if start <= day < end:
                totals[i] += int(row.get(field) or 0)
                break
    return totals


def bucket_distinct(rows: Iterable[Dict[str, Any]], buckets: Sequence[Bucket]) -> List[int]:
    """Distinct user_id values per bucket from (day, user_id) rows"""
    seen = defaultdict(set)
    for row in rows:
        day = _day(row["day"])
        for i, (_, start, end) in enumerate(buckets):
            if start <= day < end:
                seen[i].add(row["user_id"])
                break
    return [len(seen[i]) for i in range(len(buckets))]


def mock_series(label: str, size: int) -> List[int]:
    values = MOCK_SERIES[label]
    return [values[i % len(values)] for i in range(size)]


def data_source(estimated: Sequence[str], total: int) -> str:
    if not estimated:
        return "live"
    return "mock" if len(estimated) >= total else "partial"


class ReportDao(AnalyticsDao):

    def count(self, table: str, condition: str = "TRUE") -> int:
        # condition comes from OVERVIEW_COUNTS, never from a request
        query = sql.SQL("SELECT COUNT(*) AS count FROM {} WHERE {}").format(
            sql.Identifier(table), sql.SQL(condition))
        return int(self._all(query)[0]["count"])

    def daily_counts(self, table: str, column: str, since: date) -> List[Dict[str, Any]]:
        query = sql.SQL("SELECT {col}::date AS day, COUNT(*) AS count FROM {table} WHERE {col} >= %s GROUP BY 1")
        return self._all(query.format(col=sql.Identifier(column), table=sql.Identifier(table)), (since,))

    def active_user_days(self, since: date) -> List[Dict[str, Any]]:
        return self._all(
            "SELECT DISTINCT session_date::date AS day, user_id FROM learning_activity "
            "WHERE session_date >= %s",
            (since,),
        )

    def quiz_days(self, since: date) -> List[Dict[str, Any]]:
        return self._all(
            "SELECT created_at::date AS day, COUNT(*) AS count, "
            "COUNT(*) FILTER (WHERE correct_answers * 100.0 / NULLIF(total_questions, 0) >= %s) AS passed "
            "FROM quiz_performance WHERE created_at >= %s GROUP BY 1",
            (PASS_MARK, since),
        )

    def word_days(self, since: date) -> List[Dict[str, Any]]:
        return self._all(
            "SELECT created_at::date AS day, COUNT(*) AS count, COUNT(*) FILTER (WHERE learned) AS learned "
            "FROM user_dictionnary WHERE created_at >= %s GROUP BY 1",
            (since,),
        )

    def top_words(self, since: date, limit: int = 5) -> List[Dict[str, Any]]:
        return self._all(
            "SELECT LOWER(word) AS word, COUNT(*) AS count FROM user_dictionnary "
            "WHERE created_at >= %s GROUP BY LOWER(word) ORDER BY count DESC, word LIMIT %s",
            (since, limit),
        )

    def tense_scores(self, since: date) -> List[Dict[str, Any]]:
        return self._all(
            """
            SELECT t.tense_name AS name, COUNT(*) AS attempts,
                   AVG(qp.correct_answers * 100.0 / NULLIF(qp.total_questions, 0)) AS avg_score
            FROM quiz_performance qp
            JOIN tense_table t ON qp.tense_id = t.id
            WHERE qp.created_at >= %s
            GROUP BY t.tense_name
            """,
            (since,),
        )


# the SQL fragments fed to ReportDao.count
OVERVIEW_COUNTS = {
    "active_users": ("user_table", "last_session IS NOT NULL"),
    "new_users_last_30_days": ("user_table", "created_at >= NOW() - INTERVAL '30 days'"),
    "total_quizzes": ("quiz_details", "TRUE"),
    "completed_quizzes": ("quiz_performance", "TRUE"),
    "vocabulary_words": ("user_dictionnary", "TRUE"),
}


def admin_overview(conn) -> Dict[str, Any]:
    dao = ReportDao(conn)
    now = datetime.utcnow()
    try:
        total_users = dao.count("user_table")
    except UNAVAILABLE as e:
        logger.warning(f"User count unavailable, reporting mock overview: {e}")
        total_users = None

    result: Dict[str, Any] = {"total_users": total_users if total_users is not None else DEFAULT_USER_COUNT}
    estimated: List[str] = [] if total_users is not None else ["total_users"]
    for field, (table, condition) in OVERVIEW_COUNTS.items():
        if total_users is not None:
            try:
                result[field] = dao.count(table, condition)
                continue
            except UNAVAILABLE as e:
                logger.warning(f"Overview figure {field} estimated: {e}")
        mock = MOCK_OVERVIEW[field]
        result[field] = _round(result["total_users"] * mock) if isinstance(mock, float) else mock
        estimated.append(field)

    result["estimated_fields"] = estimated
    result["data_source"] = data_source(estimated, len(OVERVIEW_COUNTS) + 1)
    result["data_timestamp"] = now.isoformat()
    return result


def _series_report(buckets: Sequence[Bucket], series: Sequence[Tuple[str, Optional[List[int]]]],
                   estimated: List[str], total: int, **extra) -> Dict[str, Any]:
    datasets = []
    for label, data in series:
        if data is None:
            data = mock_series(label, len(buckets))
        datasets.append({"label": label, "data": data})
    report = {"labels": [b[0] for b in buckets], "datasets": datasets}
    report.update(extra)
    report["estimated_fields"] = estimated
    report["data_source"] = data_source(estimated, total)
    return report


def _live(estimated: List[str], name: str, read):
    """Result of ``read()``, or None after noting ``name`` as estimated"""
    try:
        return read()
    except UNAVAILABLE as e:
        logger.warning(f"Report figure {name} estimated: {e}")
        estimated.append(name)
        return None


def user_activity_report(conn, range_: str = "month", today: Optional[date] = None) -> Dict[str, Any]:
    buckets = report_buckets(range_, today or datetime.utcnow().date())
    since = buckets[0][1]
    dao = ReportDao(conn)
    estimated: List[str] = []
    active = _live(estimated, "active_users",
                   lambda: bucket_distinct(dao.active_user_days(since), buckets))
    registrations = _live(estimated, "new_registrations",
                          lambda: bucket_counts(dao.daily_counts("user_table", "created_at", since), buckets))
    return _series_report(buckets, [("Active Users", active), ("New Registrations", registrations)],
                          estimated, 2, range=range_)


def quiz_completion_report(conn, range_: str = "month", today: Optional[date] = None) -> Dict[str, Any]:
    buckets = report_buckets(range_, today or datetime.utcnow().date())
    dao = ReportDao(conn)
    estimated: List[str] = []
    rows = _live(estimated, "quiz_attempts", lambda: dao.quiz_days(buckets[0][1]))
    if rows is None:
        return _series_report(buckets, [("Quizzes Completed", None), ("Quizzes Passed", None)],
                              estimated, 1, range=range_, pass_rate=MOCK_PASS_RATE)
    completed = bucket_counts(rows, buckets)
    passed = bucket_counts(rows, buckets, field="passed")
    total = sum(completed)
    pass_rate = _round(sum(passed) * 100 / total) if total else 0
    return _series_report(buckets, [("Quizzes Completed", completed), ("Quizzes Passed", passed)],
                          estimated, 1, range=range_, pass_rate=pass_rate)


def vocabulary_trends_report(conn, range_: str = "month", today: Optional[date] = None) -> Dict[str, Any]:
    buckets = report_buckets(range_, today or datetime.utcnow().date())
    since = buckets[0][1]
    dao = ReportDao(conn)
    estimated: List[str] = []
    rows = _live(estimated, "words", lambda: dao.word_days(since))
    top = _live(estimated, "top_words", lambda: dao.top_words(since))
    if top is None:
        top = [{"word": word, "count": count} for word, count in MOCK_TOP_WORDS]
    added = bucket_counts(rows, buckets) if rows is not None else None
    learned = bucket_counts(rows, buckets, field="learned") if rows is not None else None
    return _series_report(buckets, [("New Words Added", added), ("Words Learned", learned)],
                          estimated, 2, range=range_, top_words=[dict(w) for w in top])


def tense_usage(rows: Sequence[Dict[str, Any]], limit: int = 5) -> Dict[str, List[Dict[str, Any]]]:
    """Share of quiz attempts per tense, and the tenses with the highest error rate"""
    attempts = sum(int(r["attempts"] or 0) for r in rows)
    by_use = sorted(rows, key=lambda r: (-int(r["attempts"] or 0), r["name"]))
    scored = [r for r in rows if r.get("avg_score") is not None]
    by_error = sorted(scored, key=lambda r: (float(r["avg_score"]), r["name"]))
    return {
        "usage": [{"name": r["name"], "value": _round(int(r["attempts"] or 0) * 100 / attempts)}
                  for r in by_use[:limit]] if attempts else [],
        "difficulties": [{"name": r["name"], "value": _round(100 - float(r["avg_score"]))}
                         for r in by_error[:limit]],
    }


def tense_usage_report(conn, range_: str = "month", today: Optional[date] = None) -> Dict[str, Any]:
    buckets = report_buckets(range_, today or datetime.utcnow().date())
    estimated: List[str] = []
    rows = _live(estimated, "tense_usage", lambda: ReportDao(conn).tense_scores(buckets[0][1]))
    if rows is None:
        report = {
            "usage": [{"name": n, "value": v} for n, v in MOCK_TENSE_USAGE],
            "difficulties": [{"name": n, "value": v} for n, v in MOCK_TENSE_DIFFICULTIES],
        }
    else:
        report = tense_usage(rows)
    report["range"] = range_
    report["estimated_fields"] = estimated
    report["data_source"] = data_source(estimated, 1)
    return report
