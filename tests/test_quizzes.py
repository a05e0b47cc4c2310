import pytest

from conftest import rows
from syntaxmap.errors import BadRequestError, ForbiddenError, NotFoundError
from syntaxmap.quizzes import QuizPerformanceService, QuizService

QUESTION = {"question_text": "She ___ home.", "options": ["go", "went", "gone", "going"],
            "correct_answer": "went"}
DETAILS = {"title": "Past", "tense_id": "t1", "difficulty_level": 2, "time_per_question": 30,
           "number_of_questions": 1}


def quiz_items(count):
    return rows(*[{"id": f"q{i}", "tense_id": "t1", "question": f"Q{i}", "options": ["a", "b"],
                   "correct_answer": "a"} for i in range(count)])


@pytest.mark.parametrize("count,seconds", [(0, 30), (21, 30), (5, 4), (5, 301)])
def test_practice_session_bounds(conn, count, seconds):
    with pytest.raises(BadRequestError):
        QuizService(conn).practice_session("t1", "s1", count, seconds)


def test_practice_session_without_items(conn):
    with pytest.raises(NotFoundError):
        QuizService(conn).practice_session("t1", "s1")


def test_practice_session_samples_questions(conn):
    conn.script(quiz_items(8))
    session = QuizService(conn).practice_session("t1", "s1", question_count=3, time_per_question=20)
    assert len(session["questions"]) == 3
    assert len({q["quiz_id"] for q in session["questions"]}) == 3
    assert session["total_time"] == 60


def test_question_needs_four_options(conn):
    question = dict(QUESTION, options=["go", "went"])
    with pytest.raises(BadRequestError):
        QuizService(conn).create_quiz(DETAILS, [question])


def test_correct_answer_must_be_an_option(conn):
    with pytest.raises(BadRequestError):
        QuizService(conn).create_quiz(DETAILS, [dict(QUESTION, correct_answer="goed")])


def test_create_quiz_stores_answer_letter(conn):
    conn.script(
        rows(dict(DETAILS, id="qd1", status="inactive")),
        rows({"question_id": 1, "question_title": "She ___ home.", "answer_title_a": "go",
              "answer_title_b": "went", "answer_title_c": "gone", "answer_title_d": "going",
              "right_answer": "b", "quiz_details_id": "qd1"}),
    )
    created = QuizService(conn).create_quiz(DETAILS, [QUESTION])
    question_params = conn.executed[1][1]
    assert question_params[5] == "b"
    assert created["questions_count"] == 1
    assert created["questions"][0]["correct_answer"] == "went"
    assert conn.commits == 1


def test_status_must_be_known(conn):
    with pytest.raises(BadRequestError):
        QuizService(conn).set_status("qd1", "archived")


def test_performance_needs_quiz_and_tense(conn):
    with pytest.raises(BadRequestError):
        QuizPerformanceService(conn).record("s1", {"tense_id": "t1", "total_questions": 5})


def test_performance_for_unknown_quiz(conn):
    with pytest.raises(BadRequestError) as info:
        QuizPerformanceService(conn).record("s1", {"quiz_details_id": "qd9", "tense_id": "t1",
                                                   "total_questions": 5})
    assert "qd9" in info.value.message


def performance(user_id="s1"):
    return rows({"id": "p1", "user_id": user_id, "total_questions": 5,
                 "incorrect_question_data": [{"question_id": 3}, {"question_id": "4"}]})


def test_mark_for_review_matches_ids_as_text(conn):
    conn.script(performance(), rows({"id": "p1", "total_questions": 5}))
    result = QuizPerformanceService(conn).mark_for_review("p1", 4, "s1", True)
    assert result["mark_for_review"] is True
    stored = conn.executed[1][1][0]
    assert stored == '[{"question_id": 3}, {"question_id": "4", "mark_for_review": true}]'


def test_mark_for_review_on_someone_elses_attempt(conn):
    conn.script(performance(user_id="s2"))
    with pytest.raises(ForbiddenError):
        QuizPerformanceService(conn).mark_for_review("p1", 3, "s1", True)


def test_mark_for_review_unknown_question(conn):
    conn.script(performance())
    with pytest.raises(NotFoundError):
        QuizPerformanceService(conn).mark_for_review("p1", 99, "s1", False)


def test_mark_for_review_requires_flag(conn):
    with pytest.raises(BadRequestError):
        QuizPerformanceService(conn).mark_for_review("p1", 3, "s1", None)
