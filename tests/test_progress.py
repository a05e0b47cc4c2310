from datetime import date, datetime

import pytest

from conftest import exists, rows
from syntaxmap.errors import BadRequestError, NotFoundError
from syntaxmap.progress import ProgressService, is_stored, progress_stats, report_to_csv
from syntaxmap.records import Progress

TODAY = date(2026, 3, 10)


def progress_row(**values):
    row = {"id": "p1", "user_id": "s1", "tense_id": "t1"}
    row.update(values)
    return row


def activity_row(**values):
    row = {"id": "a1", "user_id": "s1", "session_date": TODAY, "total_time_spent": 15, "streak_days": 1}
    row.update(values)
    return row


def test_generated_progress_is_not_stored():
    assert is_stored(Progress(id="p1", user_id="s1", tense_id="t1"))
    assert not is_stored(Progress(id="generated-s1-t1", user_id="s1", tense_id="t1"))
    assert not is_stored(None)


def test_progress_stats():
    stats = progress_stats([
        {"tense_id": "t1", "completion_percentage": 95, "is_completed": True, "quiz_avg_score": 9.2,
         "examples_submitted": 4, "examples_correct": 3, "updated_at": datetime(2026, 3, 2)},
        {"tense_id": "t2", "completion_percentage": 40, "quiz_avg_score": 5.0,
         "examples_submitted": 0, "examples_correct": 0, "updated_at": datetime(2026, 3, 5)},
    ])
    assert stats["overall_completion"] == 68
    assert stats["tenses_started"] == 2
    assert stats["tenses_completed"] == 1
    assert stats["quiz_avg_score"] == 7.1
    assert stats["accuracy_percentage"] == 75
    assert stats["last_activity"] == datetime(2026, 3, 5)
    assert stats["recent_tenses"] == ["t2", "t1"]


def test_empty_progress_stats():
    assert progress_stats([])["overall_completion"] == 0


def test_progress_is_derived_when_table_is_missing(conn):
    conn.script(exists(False), rows({"tense_id": "t1", "tense_name": "Past Simple", "quiz_count": 2,
                                     "quiz_avg_score": 80}))
    [progress] = ProgressService(conn).user_progress("s1")
    assert progress["id"] == "generated-s1-t1"
    assert progress["completion_percentage"] == 74
    assert progress["tense_name"] == "Past Simple"


def test_missing_tense_progress_is_404(conn):
    with pytest.raises(NotFoundError):
        ProgressService(conn).tense_progress("s1", "t1")


def test_saving_over_derived_progress_creates_a_row(conn):
    conn.script(
        exists(False),
        rows({"tense_id": "t1", "quiz_count": 1, "quiz_avg_score": 50}),
        rows(progress_row(completion_percentage=100)),
    )
    created, progress = ProgressService(conn).save_tense_progress("s1", "t1", {"completion_percentage": 140})
    assert created is True
    assert progress["id"] == "p1"
    insert_text, params = conn.executed[2]
    assert insert_text.strip().startswith("INSERT INTO user_progress")
    assert params[3] == 100


def test_first_quiz_seeds_progress_and_logs_activity(conn):
    conn.script(
        exists(), rows(), rows(),
        rows(progress_row(completion_percentage=10, quiz_avg_score=8, quiz_count=1)),
        rows(), rows(),
        rows(activity_row(activities_completed=[{"type": "quiz", "count": 1}])),
    )
    progress = ProgressService(conn).update_quiz_progress("s1", "t1", 8)
    assert progress["quiz_count"] == 1
    insert_params = conn.executed[3][1]
    assert insert_params[3:6] == (10, 8, 1)
    assert "INSERT INTO learning_activity" in conn.statements[6]
    activity_params = conn.executed[6][1]
    assert activity_params[3] == 15
    assert activity_params[5] == '[{"type": "quiz", "count": 1}]'


def test_next_quiz_updates_stored_progress(conn):
    stored = progress_row(quiz_avg_score=7.0, quiz_count=1, examples_submitted=10, examples_correct=8)
    conn.script(exists(), rows(stored), rows(progress_row(completion_percentage=80)), rows(), rows(),
                rows(activity_row()))
    ProgressService(conn).update_quiz_progress("s1", "t1", 9)
    update_text, params = conn.executed[2]
    assert "UPDATE user_progress" in update_text
    assert params[:3] == (80, 8.0, 2)
    assert params[-1] == "p1"


def test_existing_streak_award_is_not_repeated(conn):
    conn.script(rows({"id": "x", "user_id": "s1", "achievement_type": "streak", "achievement_level": 1}))
    ProgressService(conn)._check_streak("s1", 7)
    assert len(conn.statements) == 1


def test_new_award_notifies_the_student(conn):
    conn.script(
        rows(),
        rows({"id": "x", "user_id": "s1", "achievement_type": "streak", "achievement_level": 1}),
        rows({"notification_id": "n1", "user_id": "s1", "message": "m", "type": "achievement"}),
    )
    ProgressService(conn)._check_streak("s1", 7)
    notification_params = conn.executed[2][1]
    assert notification_params[2] == "Achievement Unlocked: Weekly Warrior!"
    assert notification_params[3] == "achievement"


def test_assessment_requires_feedback(conn):
    with pytest.raises(BadRequestError):
        ProgressService(conn).create_assessment("t9", "s1", None, {"score": 7})
    assert conn.executed == []


def test_assessment_notifies_the_student(conn):
    conn.script(
        rows({"id": "as1", "teacher_id": "t9", "student_id": "s1", "tense_id": "t1", "feedback": "Good"}),
        rows({"notification_id": "n1", "user_id": "s1", "message": "m", "type": "assessment"}),
    )
    assessment = ProgressService(conn).create_assessment("t9", "s1", "t1", {"feedback": "Good", "score": 8})
    assert assessment["feedback"] == "Good"
    assert conn.executed[1][1][2] == "You have received new feedback on a tense!"


def test_report_for_unknown_student(conn):
    with pytest.raises(NotFoundError):
        ProgressService(conn).student_report("nobody")


def test_report_filters_are_bound(conn):
    conn.script(
        rows({"user_id": "s1", "user_name": "Sam", "user_email_address": "sam@x.io"}),
        rows({"tense_id": "t1", "tense_name": "Past Simple", "quiz_count": 1, "quiz_avg_score": 90}),
        rows({"quiz_title": "Q", "score": 90.0}, {"quiz_title": "R", "score": 70.0}),
        rows({"word": "run", "lookup_count": 3}, {"word": "ran", "lookup_count": 1}),
    )
    filters = {"tense_id": "t1", "start_date": date(2026, 1, 1), "end_date": date(2026, 2, 1)}
    report = ProgressService(conn).student_report("s1", filters)
    assert conn.executed[2][1] == ["s1", "t1", date(2026, 1, 1), date(2026, 2, 1)]
    assert "WHERE qp.user_id = %s AND qp.tense_id = %s AND qp.created_at BETWEEN %s AND %s" in conn.statements[2]
    assert "WHERE user_id = %s AND created_at BETWEEN %s AND %s" in conn.statements[3]
    assert report["overall_stats"]["average_quiz_score"] == 80.0
    assert report["overall_stats"]["tenses_in_progress"] == 1
    assert report["dictionary_usage"]["total_lookups"] == 4


def test_report_csv_sections():
    report = {
        "student": {"user_name": "Sam", "user_email_address": "sam@x.io"},
        "overall_stats": {"total_quizzes_taken": 2},
        "tense_progress": [{"tense_name": "Past Simple", "completion_percentage": 82}],
        "quiz_performance": [],
        "dictionary_usage": {"most_looked_up": [{"word": "run", "lookup_count": 3}], "total_lookups": 3},
    }
    lines = report_to_csv(report).splitlines()
    assert lines[0] == "Student Report"
    assert lines[1] == "Student Name,Sam"
    assert "total quizzes taken,2" in lines
    assert "Tense Progress" in lines
    assert lines[-1] == "run,3,"
