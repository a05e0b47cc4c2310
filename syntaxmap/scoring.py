"""Pure progress arithmetic: completion blends, streaks, achievement thresholds."""
import math
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

QUIZ_WEIGHT = 0.7
EXAMPLES_WEIGHT = 0.3
COMPLETED_AT = 90
MASTERED_AT = 85

QUIZ_SEED_COMPLETION = 10
EXAMPLE_SEED_COMPLETION = 5
EXAMPLE_ONLY_FACTOR = 35

QUIZ_ACTIVITY_SECONDS = 15
EXAMPLE_ACTIVITY_SECONDS = 5


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_percentage(value: float) -> int:
    return max(0, min(100, int(value)))


def is_completed(completion: float) -> bool:
    return completion >= COMPLETED_AT


def fallback_completion(avg_percentage: Optional[float], quiz_count: Optional[int]) -> int:
    """Completion derived from quiz_performance aggregates"""
    return min(round_half_up(float(avg_percentage or 0) * 0.8 + int(quiz_count or 0) * 5), 100)


def rolling_average(current: Optional[float], count: Optional[int], score: float) -> float:
    count = count or 0
    return ((current or 0) * count + score) / (count + 1)


def blended_completion(avg_score: float, accuracy: float) -> int:
    return round_half_up(avg_score * 10 * QUIZ_WEIGHT + accuracy * 100 * EXAMPLES_WEIGHT)


def quiz_progress(current_avg: Optional[float], quiz_count: Optional[int],
                  examples_submitted: Optional[int], examples_correct: Optional[int],
                  score: float) -> Dict[str, Any]:
    """New quiz_avg_score/quiz_count/completion after one more quiz"""
    new_avg = rolling_average(current_avg, quiz_count, score)
    if examples_submitted and examples_submitted > 0:
        accuracy = (examples_correct or 0) / examples_submitted
        completion = blended_completion(new_avg, accuracy)
    else:
        completion = round_half_up(new_avg * 10)
    completion = clamp_percentage(completion)
    return {
        "quiz_avg_score": round(new_avg, 2),
        "quiz_count": (quiz_count or 0) + 1,
        "completion_percentage": completion,
        "is_completed": is_completed(completion),
    }


def example_progress(quiz_avg_score: Optional[float], examples_submitted: Optional[int],
                     examples_correct: Optional[int], correct: bool) -> Dict[str, Any]:
    submitted = (examples_submitted or 0) + 1
    right = (examples_correct or 0) + (1 if correct else 0)
    accuracy = right / submitted
    if quiz_avg_score:
        completion = blended_completion(quiz_avg_score, accuracy)
    else:
        completion = round_half_up(accuracy * EXAMPLE_ONLY_FACTOR)
    completion = clamp_percentage(completion)
    return {
        "examples_submitted": submitted,
        "examples_correct": right,
        "completion_percentage": completion,
        "is_completed": is_completed(completion),
    }


def examples_accuracy(submitted: Optional[int], correct: Optional[int]) -> int:
    if not submitted:
        return 0
    return round_half_up((correct or 0) / submitted * 100)


def proficiency_level(completion: float, average_score: float) -> str:
    if completion >= 90 and average_score >= 8:
        return "Advanced"
    if completion >= 70 and average_score >= 6:
        return "Intermediate"
    if completion >= 30 and average_score >= 4:
        return "Developing"
    return "Beginner"


def format_study_time(seconds: int) -> str:
    if not seconds:
        return "0m"
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def next_streak(last_session: Optional[date], last_streak: Optional[int], today: date) -> int:
    if last_session is None:
        return 1
    if last_session == today - timedelta(days=1):
        return (last_streak or 0) + 1
    if last_session == today:
        return last_streak or 1
    return 1


def merge_tenses(existing: List[Dict[str, Any]], incoming: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    merged = list(existing or [])
    seen = {t.get("tense_id") for t in merged}
    for tense in incoming:
        if tense.get("tense_id") not in seen:
            merged.append({"tense_id": tense.get("tense_id")})
            seen.add(tense.get("tense_id"))
    return merged


def merge_activities(existing: List[Dict[str, Any]], incoming: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    merged = [dict(a) for a in (existing or [])]
    by_type = {a.get("type"): a for a in merged}
    for activity in incoming:
        current = by_type.get(activity.get("type"))
        if current is not None:
            current["count"] = (current.get("count") or 0) + (activity.get("count") or 0)
        else:
            entry = {"type": activity.get("type"), "count": activity.get("count") or 0}
            merged.append(entry)
            by_type[entry["type"]] = entry
    return merged


# ========== ACHIEVEMENTS ==========
# (type, level, threshold, name, description)
TENSE_MASTERY = [
    ("tense_mastery", 1, 1, "First Tense Mastered", "Completed all exercises for your first tense!"),
    ("tense_mastery", 2, 5, "Tense Explorer", "Mastered 5 different tenses!"),
    ("tense_mastery", 3, 10, "Tense Master",
     "You have mastered 10 tenses! Your grammar knowledge is impressive!"),
]
QUIZ_PERFECT = ("quiz_perfect", 1, 3, "Quiz Perfectionist",
                "Achieved near-perfect scores on at least 3 tense quizzes!")
EXAMPLE_EXPERT = ("example_expert", 1, 2, "Example Expert",
                  "Created many excellent examples showing your mastery!")
STREAKS = [
    ("streak", 1, 7, "Weekly Warrior", "Practiced for 7 days in a row!"),
    ("streak", 2, 30, "Dedicated Scholar", "Practiced for 30 days in a row! Your dedication is impressive!"),
]

Award = Tuple[str, int, int, str, str]


def progress_awards(progress: Iterable[Dict[str, Any]]) -> List[Award]:
    """Every progress-based achievement the rows currently qualify for"""
    rows = list(progress)
    mastered = sum(
        1 for p in rows
        if (p.get("completion_percentage") or 0) >= MASTERED_AT or p.get("is_completed")
    )
    awards = [a for a in TENSE_MASTERY if mastered >= a[2]]
    perfect = sum(1 for p in rows if float(p.get("quiz_avg_score") or 0) >= 9.5)
    if perfect >= QUIZ_PERFECT[2]:
        awards.append(QUIZ_PERFECT)
    experts = sum(
        1 for p in rows
        if (p.get("examples_submitted") or 0) >= 5
        and (p.get("examples_correct") or 0) / p["examples_submitted"] >= 0.8
    )
    if experts >= EXAMPLE_EXPERT[2]:
        awards.append(EXAMPLE_EXPERT)
    return awards


def streak_awards(streak_days: int) -> List[Award]:
    return [a for a in STREAKS if streak_days >= a[2]]
