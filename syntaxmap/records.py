"""Immutable records for every persisted entity.

Three shapes exist for each entity: the database row (column names of
``syntaxmap.models``), the record itself, and the wire dict sent to clients.
The ``*_from_row`` / ``*_to_row`` / ``*_to_wire`` functions are the only
places where names are translated between them.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

SENTENCE_TYPES = ("affirmative", "negative", "interrogative")
ANSWER_LETTERS = ("a", "b", "c", "d")


class Record(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


# ========== TENSE ==========
class Tense(Record):
    tense_id: Optional[str] = None
    tense_name: str
    description: Optional[str] = None
    time_group: Optional[str] = None
    subcategory: Optional[str] = None
    grammar_rules: Optional[str] = None
    example_structure: Optional[str] = None
    usage_notes: Optional[str] = None
    difficulty_level: int = 3
    active: bool = True


def tense_from_row(row) -> Tense:
    return Tense(
        tense_id=row["id"],
        tense_name=row["tense_name"],
        description=row.get("tense_description"),
        time_group=row.get("time_group"),
        subcategory=row.get("subcategory"),
        grammar_rules=row.get("grammar_rules"),
        example_structure=row.get("example_structure"),
        usage_notes=row.get("usage_notes"),
        difficulty_level=row.get("difficulty_level") if row.get("difficulty_level") is not None else 3,
        active=row.get("active") if row.get("active") is not None else True,
    )


def tense_to_row(tense: Tense) -> Dict[str, Any]:
    return {
        "id": tense.tense_id,
        "tense_name": tense.tense_name,
        "tense_description": tense.description,
        "time_group": tense.time_group,
        "subcategory": tense.subcategory,
        "grammar_rules": tense.grammar_rules,
        "example_structure": tense.example_structure,
        "usage_notes": tense.usage_notes,
        "difficulty_level": tense.difficulty_level,
        "active": tense.active,
    }


def tense_to_wire(tense: Tense) -> Dict[str, Any]:
    return tense.model_dump()


# ========== EXAMPLE ==========
class Example(Record):
    example_id: Optional[str] = None
    example_text: str
    tense_id: str
    difficulty_level: int = 2
    student_submission: bool = False
    teacher_reviewed: bool = False
    reviewer_id: Optional[str] = None
    review_date: Optional[datetime] = None
    submitter_id: Optional[str] = None
    submitted_date: Optional[datetime] = None
    user_id: Optional[str] = None
    shared_with_teacher: bool = False
    sentence_type: str = "affirmative"
    teacher_feedback: Optional[str] = None
    created_at: Optional[datetime] = None
    submitter_name: Optional[str] = None


def example_from_row(row) -> Example:
    data = dict(row)
    data["example_id"] = data.pop("id", None)
    for flag in ("student_submission", "teacher_reviewed", "shared_with_teacher"):
        data[flag] = bool(data.get(flag))
    if data.get("difficulty_level") is None:
        data["difficulty_level"] = 2
    if not data.get("sentence_type"):
        data["sentence_type"] = "affirmative"
    return Example(**data)


def example_to_row(example: Example) -> Dict[str, Any]:
    data = example.model_dump(exclude={"example_id", "submitter_name", "created_at", "submitted_date"})
    data["id"] = example.example_id
    return data


def example_to_wire(example: Example, include_user: bool = True, include_review: bool = True,
                    include_extended: bool = True) -> Dict[str, Any]:
    wire = {
        "example_id": example.example_id,
        "example_text": example.example_text,
        "tense_id": example.tense_id,
        "difficulty_level": example.difficulty_level,
        "sentence_type": example.sentence_type,
    }
    if include_user:
        wire["user_id"] = example.user_id or example.submitter_id
        wire["student_submission"] = example.student_submission
    if include_review:
        wire["teacher_reviewed"] = example.teacher_reviewed
        wire["reviewer_id"] = example.reviewer_id
        wire["review_date"] = example.review_date
        wire["teacher_feedback"] = example.teacher_feedback
    if include_extended:
        wire["shared_with_teacher"] = example.shared_with_teacher
        wire["created_at"] = example.created_at
        if example.submitter_name is not None:
            wire["submitter_name"] = example.submitter_name
    return wire


def group_by_sentence_type(items: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    groups = {kind: [] for kind in SENTENCE_TYPES}
    for item in items:
        kind = item.get("sentence_type")
        groups[kind if kind in groups else "affirmative"].append(item)
    return groups


# ========== QUIZ ==========
class QuizItem(Record):
    quiz_id: Optional[str] = None
    tense_id: str
    question: str
    options: List[Any] = []
    correct_answer: Optional[str] = None


def quiz_item_from_row(row) -> QuizItem:
    return QuizItem(
        quiz_id=row["id"],
        tense_id=row["tense_id"],
        question=row["question"],
        options=row.get("options") or [],
        correct_answer=row.get("correct_answer"),
    )


def quiz_item_to_wire(item: QuizItem) -> Dict[str, Any]:
    return item.model_dump()


class QuizDetails(Record):
    id: str
    title: str
    description: Optional[str] = None
    tense_id: Optional[str] = None
    difficulty_level: int
    time_per_question: int
    number_of_questions: int
    status: str = "inactive"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Question(Record):
    question_id: Optional[int] = None
    question_title: str
    answer_title_a: Optional[str] = None
    answer_title_b: Optional[str] = None
    answer_title_c: Optional[str] = None
    answer_title_d: Optional[str] = None
    right_answer: Optional[str] = None
    explanation: Optional[str] = None
    online_exam_ids: List[int] = []
    verified: bool = True
    quiz_details_id: Optional[str] = None

    @property
    def options(self) -> List[Optional[str]]:
        return [self.answer_title_a, self.answer_title_b, self.answer_title_c, self.answer_title_d]


def question_from_row(row) -> Question:
    data = dict(row)
    data["online_exam_ids"] = data.get("online_exam_ids") or []
    data["verified"] = True if data.get("verified") is None else data["verified"]
    return Question(**data)


def question_to_wire(question: Question) -> Dict[str, Any]:
    options = question.options
    correct = None
    if question.right_answer and question.right_answer.lower() in ANSWER_LETTERS:
        correct = options[ANSWER_LETTERS.index(question.right_answer.lower())]
    return {
        "question_id": question.question_id,
        "question_text": question.question_title,
        "options": options,
        "correct_answer": correct,
        "explanation": question.explanation,
        "question_type": "mcq",
    }


def quiz_details_to_wire(details: QuizDetails, questions: List[Question]) -> Dict[str, Any]:
    wire = details.model_dump()
    wire["questions"] = [question_to_wire(q) for q in questions[: details.number_of_questions]]
    return wire


class QuizPerformance(Record):
    id: Optional[str] = None
    quiz_details_id: Optional[str] = None
    tense_id: Optional[str] = None
    user_id: Optional[str] = None
    total_questions: int
    correct_answers: int = 0
    incorrect_answers: int = 0
    total_time_taken: float = 0
    avg_time_per_question: float = 0
    incorrect_question_data: Optional[Any] = None
    missed_questions: Optional[List[Any]] = None
    created_at: Optional[datetime] = None


def performance_from_row(row) -> QuizPerformance:
    data = {k: v for k, v in dict(row).items() if v is not None}
    return QuizPerformance(**data)


# ========== PROGRESS ==========
class Progress(Record):
    id: Optional[str] = None
    user_id: str
    tense_id: str
    tense_name: Optional[str] = None
    completion_percentage: int = 0
    quiz_avg_score: float = 0
    quiz_count: int = 0
    examples_submitted: int = 0
    examples_correct: int = 0
    is_completed: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def progress_from_row(row) -> Progress:
    return Progress(**_drop_none(dict(row)))


def progress_to_wire(progress: Progress) -> Dict[str, Any]:
    return progress.model_dump(exclude_none=True)


class Achievement(Record):
    id: Optional[str] = None
    user_id: str
    achievement_type: str
    achievement_name: Optional[str] = None
    achievement_description: Optional[str] = None
    achievement_level: int = 1
    achieved_at: Optional[datetime] = None


def achievement_from_row(row) -> Achievement:
    return Achievement(**_drop_none(dict(row)))


class Activity(Record):
    id: Optional[str] = None
    user_id: str
    session_date: date
    total_time_spent: int = 0
    tenses_practiced: List[Dict[str, Any]] = []
    activities_completed: List[Dict[str, Any]] = []
    streak_days: int = 1


def activity_from_row(row) -> Activity:
    data = dict(row)
    data.pop("created_at", None)
    data["tenses_practiced"] = data.get("tenses_practiced") or []
    data["activities_completed"] = data.get("activities_completed") or []
    return Activity(**_drop_none(data))


class Assessment(Record):
    id: Optional[str] = None
    teacher_id: str
    student_id: str
    tense_id: Optional[str] = None
    score: Optional[float] = None
    feedback: str
    created_at: Optional[datetime] = None


def assessment_from_row(row) -> Assessment:
    return Assessment(**_drop_none(dict(row)))


# ========== NOTIFICATION ==========
class Notification(Record):
    notification_id: Optional[str] = None
    user_id: str
    message: str
    type: str
    created_at: Optional[datetime] = None
    is_read: bool = False


def notification_from_row(row) -> Notification:
    return Notification(**_drop_none(dict(row)))


# ========== DICTIONARY ==========
class DictionaryEntry(Record):
    word_id: Optional[int] = None
    word: str
    definition: Optional[str] = None
    part_of_speech: Optional[str] = None
    pronunciation: Optional[str] = None
    user_id: Optional[str] = None
    session_name: Optional[str] = None
    learned: bool = False
    created_at: Optional[datetime] = None


def dictionary_from_row(row) -> DictionaryEntry:
    return DictionaryEntry(**_drop_none(dict(row)))


# ========== MISTAKES ==========
class MistakeQuestion(Record):
    mistake_id: Optional[str] = None
    user_id: str
    question_id: Optional[int] = None
    question_title: Optional[str] = None
    user_answer: Optional[str] = None
    right_answer: Optional[str] = None
    tense_id: Optional[str] = None
    created_at: Optional[datetime] = None


def mistake_from_row(row) -> MistakeQuestion:
    return MistakeQuestion(**_drop_none(dict(row)))


# ========== LEARNING GOALS ==========
class Goal(Record):
    id: Optional[str] = None
    user_id: str
    description: str
    type: str
    target: int = 100
    deadline: Optional[date] = None
    progress: int = 0
    completed: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def goal_from_row(row) -> Goal:
    return Goal(**_drop_none(dict(row)))


def goal_to_wire(goal: Goal) -> Dict[str, Any]:
    wire = goal.model_dump(exclude={"created_at", "updated_at"})
    wire["createdAt"] = goal.created_at
    wire["updatedAt"] = goal.updated_at
    return wire


# ========== USER ==========
class User(Record):
    user_id: str
    user_name: Optional[str] = None
    user_email_address: str
    user_password: Optional[str] = None
    user_role: int = 3
    is_account_active: bool = True
    last_session: Optional[str] = None
    created_at: Optional[datetime] = None


def user_from_row(row) -> User:
    return User(**_drop_none(dict(row)))


def user_to_wire(user: User) -> Dict[str, Any]:
    return user.model_dump(exclude={"user_password"})
