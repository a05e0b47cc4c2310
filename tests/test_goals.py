from datetime import date

import pytest

from conftest import inserted, rows
from syntaxmap.errors import BadRequestError, NotFoundError
from syntaxmap.goals import GoalService

GOAL = {"id": "g1", "user_id": "s1", "description": "Master the past tenses", "type": "tense",
        "target": 100, "progress": 40, "completed": False}


def test_description_and_type_are_required(conn):
    with pytest.raises(BadRequestError) as info:
        GoalService(conn).create("s1", {"description": "Read more"})
    assert info.value.message == "Description and type are required"
    assert conn.executed == []


def test_create_applies_defaults_and_owner(conn):
    conn.script(rows(dict(GOAL, progress=0)))
    goal = GoalService(conn).create("s1", {"description": "Master the past tenses", "type": "tense",
                                           "user_id": "s2", "deadline": date(2026, 12, 1)})
    values = inserted(conn, 0)
    assert values["user_id"] == "s1"
    assert values["target"] == 100
    assert values["progress"] == 0
    assert values["completed"] is False
    assert values["deadline"] == date(2026, 12, 1)
    assert goal["id"] == "g1"
    assert "createdAt" in goal


def test_goal_created_at_target_is_completed(conn):
    conn.script(rows(dict(GOAL, progress=10, target=10, completed=True)))
    GoalService(conn).create("s1", {"description": "Ten quizzes", "type": "quiz", "target": 10, "progress": 10})
    assert inserted(conn, 0)["completed"] is True


def test_listing_filters_and_order(conn):
    conn.script(rows(GOAL))
    goals = GoalService(conn).user_goals("s1", goal_type="tense", completed=False)
    assert [g["id"] for g in goals] == ["g1"]
    query, params = conn.executed[0]
    assert query.endswith('ORDER BY "deadline" ASC, "created_at" DESC')
    assert params == ["s1", "tense", False]


def test_someone_elses_goal_reads_as_missing(conn):
    with pytest.raises(NotFoundError):
        GoalService(conn).goal("g1", "s2")
    assert conn.executed[0][1] == ["g1", "s2"]


def test_progress_reaching_target_completes_goal(conn):
    conn.script(rows(GOAL), rows(dict(GOAL, progress=100, completed=True)))
    goal = GoalService(conn).update("g1", "s1", {"progress": 100, "description": None})
    assert goal["completed"] is True
    values = conn.executed[1][1]
    assert values[:2] == [100, True]
    assert values[-1] == "g1"
    assert '"updated_at" = %s' in conn.statements[1]


def test_explicit_completed_flag_wins(conn):
    conn.script(rows(GOAL), rows(dict(GOAL, progress=100)))
    GoalService(conn).update("g1", "s1", {"progress": 100, "completed": False})
    assert conn.executed[1][1][:2] == [100, False]


def test_update_with_nothing_to_change(conn):
    conn.script(rows(GOAL))
    with pytest.raises(BadRequestError):
        GoalService(conn).update("g1", "s1", {"progress": None})


def test_delete_own_goal(conn):
    conn.script(rows(GOAL), rows(rowcount=1))
    GoalService(conn).delete("g1", "s1")
    assert conn.statements[1] == "DELETE FROM learning_goal WHERE id = %s"
