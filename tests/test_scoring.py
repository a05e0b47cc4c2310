from datetime import date, timedelta

import pytest

from syntaxmap import scoring


def test_round_half_up():
    assert scoring.round_half_up(2.5) == 3
    assert scoring.round_half_up(2.49) == 2


@pytest.mark.parametrize("avg,count,expected", [
    (80, 3, 79),
    (None, None, 0),
    (100, 10, 100),
])
def test_fallback_completion(avg, count, expected):
    assert scoring.fallback_completion(avg, count) == expected


def test_quiz_progress_without_examples_uses_quiz_average_only():
    result = scoring.quiz_progress(9.0, 1, 0, 0, 10)
    assert result["quiz_avg_score"] == 9.5
    assert result["quiz_count"] == 2
    assert result["completion_percentage"] == 95
    assert result["is_completed"] is True


def test_quiz_progress_blends_with_example_accuracy():
    result = scoring.quiz_progress(7.0, 1, 10, 8, 9)
    assert result["quiz_avg_score"] == 8.0
    assert result["completion_percentage"] == 80
    assert result["is_completed"] is False


def test_rolling_average():
    assert scoring.rolling_average(8.0, 2, 9.5) == 8.5
    assert scoring.rolling_average(None, None, 7) == 7


def test_first_quiz_on_example_seeded_row():
    result = scoring.quiz_progress(0, 0, 3, 3, 10)
    assert result["quiz_avg_score"] == 10
    assert result["quiz_count"] == 1
    assert result["completion_percentage"] == 100


def test_completion_stays_a_percentage_across_mixed_updates():
    state = {"quiz_avg_score": None, "quiz_count": 0, "examples_submitted": 0, "examples_correct": 0}
    steps = [("quiz", 10), ("example", False), ("example", True), ("quiz", 0), ("quiz", 10),
             ("example", True), ("quiz", 10), ("example", False), ("quiz", 3), ("example", True)]
    for kind, value in steps:
        if kind == "quiz":
            state.update(scoring.quiz_progress(state["quiz_avg_score"], state["quiz_count"],
                                               state["examples_submitted"], state["examples_correct"], value))
        else:
            state.update(scoring.example_progress(state["quiz_avg_score"], state["examples_submitted"],
                                                  state["examples_correct"], value))
        assert 0 <= state["completion_percentage"] <= 100
        assert state["is_completed"] == (state["completion_percentage"] >= 90)
    assert state["quiz_count"] == 5
    assert state["examples_submitted"] == 5


def test_example_progress_without_quizzes_is_capped_low():
    result = scoring.example_progress(None, 0, 0, True)
    assert result == {
        "examples_submitted": 1,
        "examples_correct": 1,
        "completion_percentage": 35,
        "is_completed": False,
    }


def test_example_progress_blends_with_quiz_average():
    result = scoring.example_progress(8.0, 4, 3, False)
    assert result["examples_submitted"] == 5
    assert result["examples_correct"] == 3
    assert result["completion_percentage"] == 74


def test_examples_accuracy():
    assert scoring.examples_accuracy(0, 0) == 0
    assert scoring.examples_accuracy(3, 2) == 67


@pytest.mark.parametrize("completion,score,level", [
    (95, 9, "Advanced"),
    (75, 6, "Intermediate"),
    (30, 4, "Developing"),
    (95, 3, "Beginner"),
])
def test_proficiency_level(completion, score, level):
    assert scoring.proficiency_level(completion, score) == level


def test_format_study_time():
    assert scoring.format_study_time(0) == "0m"
    assert scoring.format_study_time(600) == "10m"
    assert scoring.format_study_time(3720) == "1h 2m"


def test_next_streak():
    today = date(2026, 3, 10)
    yesterday = today - timedelta(days=1)
    assert scoring.next_streak(None, None, today) == 1
    assert scoring.next_streak(yesterday, 4, today) == 5
    assert scoring.next_streak(today, 4, today) == 4
    assert scoring.next_streak(today, 0, today) == 1
    assert scoring.next_streak(today - timedelta(days=3), 9, today) == 1


def test_merge_tenses_keeps_first_occurrence():
    merged = scoring.merge_tenses([{"tense_id": "a"}], [{"tense_id": "a"}, {"tense_id": "b", "extra": 1}])
    assert merged == [{"tense_id": "a"}, {"tense_id": "b"}]


def test_merge_activities_sums_counts_per_type():
    existing = [{"type": "quiz", "count": 2}]
    merged = scoring.merge_activities(existing, [{"type": "quiz", "count": 3}, {"type": "example", "count": 1}])
    assert merged == [{"type": "quiz", "count": 5}, {"type": "example", "count": 1}]
    assert existing == [{"type": "quiz", "count": 2}]


def test_progress_awards():
    progress = [{"completion_percentage": 90} for _ in range(5)]
    progress += [{"quiz_avg_score": 9.6} for _ in range(3)]
    progress += [{"examples_submitted": 5, "examples_correct": 4} for _ in range(2)]
    names = [award[3] for award in scoring.progress_awards(progress)]
    assert names == ["First Tense Mastered", "Tense Explorer", "Quiz Perfectionist", "Example Expert"]


def test_progress_awards_counts_completed_flag():
    awards = scoring.progress_awards([{"completion_percentage": 10, "is_completed": True}])
    assert [(a[0], a[1]) for a in awards] == [("tense_mastery", 1)]


def test_streak_awards():
    assert scoring.streak_awards(6) == []
    assert [a[3] for a in scoring.streak_awards(7)] == ["Weekly Warrior"]
    assert len(scoring.streak_awards(30)) == 2
