import pytest

from conftest import inserted, rows
from syntaxmap.auth import GUEST, STUDENT, TEACHER, Principal
from syntaxmap.errors import ConflictError, NotFoundError, ServerError
from syntaxmap.examples import ExampleService
from syntaxmap.records import Tense
from syntaxmap.tenses import TenseDao, TenseService


def example_row(example_id, reviewed=True, user_id=None, sentence_type="affirmative"):
    return {
        "id": example_id,
        "example_text": f"Sentence {example_id}",
        "tense_id": "t1",
        "teacher_reviewed": reviewed,
        "user_id": user_id,
        "sentence_type": sentence_type,
    }


def test_delete_removes_children_in_one_transaction(conn):
    conn.script(rows(), rows(), rows(), rows(), rows(rowcount=1))
    result = TenseDao(conn).delete("t1")
    assert result["success"] is True
    assert conn.statements == [
        "DELETE FROM question_table WHERE quiz_details_id IN (SELECT id FROM quiz_details WHERE tense_id = %s)",
        "DELETE FROM quiz_details WHERE tense_id = %s",
        "DELETE FROM quiz_table WHERE tense_id = %s",
        "DELETE FROM example_table WHERE tense_id = %s",
        "DELETE FROM tense_table WHERE id = %s",
    ]
    assert conn.commits == 1
    assert conn.rollbacks == 0


def test_delete_unknown_tense_rolls_back(conn):
    with pytest.raises(NotFoundError):
        TenseDao(conn).delete("missing")
    assert conn.rollbacks == 1
    assert conn.commits == 0


def test_insert_stores_keyword_text_verbatim(conn):
    conn.script(rows({"id": "t1", "tense_name": "X", "tense_description": "DEFAULT"}))
    tense = TenseDao(conn).insert(Tense(tense_name="X", description="DEFAULT"))
    values = inserted(conn, 0)
    assert values["tense_description"] == "DEFAULT"
    assert values["tense_name"] == "X"
    assert tense.description == "DEFAULT"


def test_create_rejects_duplicate_name(conn):
    conn.script(rows({"id": "t9", "tense_name": "Past Simple"}))
    with pytest.raises(ConflictError) as info:
        TenseService(conn).create_tense({"tense_name": "Past Simple"})
    assert info.value.to_dict()["existingTenseId"] == "t9"


def test_create_inserts_tense_and_examples_together(conn):
    conn.script(
        rows(),
        rows({"id": "t1", "tense_name": "Past Simple", "time_group": "Past"}),
        rows(example_row("e1")),
    )
    created = TenseService(conn).create_tense({
        "tense_name": "Past Simple",
        "time_group": "Past",
        "examples": ["I went home.", {"example_text": ""}],
    })
    assert created["tense_id"] == "t1"
    assert [e["example_id"] for e in created["examples"]] == ["e1"]
    assert created["quizzes"] == []
    assert conn.statements[1].startswith('INSERT INTO "tense_table"')
    assert conn.statements[2].startswith('INSERT INTO "example_table"')
    assert len(conn.statements) == 3


def test_create_failure_leaves_nothing_behind(conn):
    conn.script(
        rows(),
        rows({"id": "t1", "tense_name": "Past Simple"}),
        ServerError("Server error : intern server error."),
    )
    with pytest.raises(ServerError):
        TenseService(conn).create_tense({"tense_name": "Past Simple", "examples": ["I went."]})
    assert conn.rollbacks == 1


def test_guest_listing_is_trimmed(conn):
    conn.script(
        rows({"id": "t1", "tense_name": "Past Simple", "grammar_rules": "secret"}),
        rows(example_row("e1"), example_row("e2"), example_row("e3"), example_row("e4", reviewed=False),
             example_row("e5", sentence_type="negative")),
    )
    [tense] = TenseService(conn).list_tenses(Principal(None, GUEST))
    assert "grammar_rules" not in tense
    assert "quizzes" not in tense
    assert [e["example_id"] for e in tense["examples"]["affirmative"]] == ["e1", "e2"]
    assert [e["example_id"] for e in tense["examples"]["negative"]] == ["e5"]
    assert "teacher_reviewed" not in tense["examples"]["affirmative"][0]


def test_student_listing_shows_reviewed_and_own_examples(conn):
    conn.script(
        rows({"id": "t1", "tense_name": "Past Simple"}),
        rows(example_row("e1"), example_row("e2", reviewed=False, user_id="s1"),
             example_row("e3", reviewed=False, user_id="s2")),
        rows(),
    )
    [tense] = TenseService(conn).list_tenses(Principal("s1", STUDENT))
    assert [e["example_id"] for e in tense["examples"]] == ["e1", "e2"]
    assert tense["quizzes"] == []


def test_guest_tense_map_hides_details(conn):
    conn.script(rows({"time_group": "Past", "tenses": [
        {"id": "t1", "tense_name": "Past Simple", "description": "d", "subcategory": "Simple",
         "difficulty_level": 2},
    ]}))
    [group] = TenseService(conn).tense_map(Principal(None, GUEST))
    assert group["tenses"] == [{"id": "t1", "tense_name": "Past Simple", "subcategory": "Simple"}]


def test_tense_stats_fall_back_to_zeroes(conn):
    conn.script(ServerError("down"))
    stats = TenseService(conn).tense_stats("s1", "t1")
    assert stats["completion_percentage"] == 0
    assert stats["total_study_time"] == "0m"
    assert stats["proficiency_level"] == "Beginner"
    assert stats["examples"]["accuracy_percentage"] == 0


def test_student_examples_flag_ownership(conn):
    conn.script(rows(example_row("e1", user_id="t9"), example_row("e2", reviewed=False, user_id="s1"),
                     example_row("e3", reviewed=False, user_id="s2")))
    grouped = ExampleService(conn).examples_for_tense("t1", Principal("s1", STUDENT))
    assert [(e["example_id"], e["isOwner"]) for e in grouped["affirmative"]] == [("e1", False), ("e2", True)]


def test_staff_example_submission_is_pre_approved(conn):
    conn.script(rows({"?column?": 1}), rows(example_row("e1")))
    ExampleService(conn).submit("t1", Principal("t9", TEACHER), "She has left.")
    values = inserted(conn, 1)
    assert values["example_text"] == "She has left."
    assert values["teacher_reviewed"] is True
