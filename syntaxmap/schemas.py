from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


class TimeGroup(str, Enum):
    PRESENT = "Present"
    PAST = "Past"
    FUTURE = "Future"


class SentenceType(str, Enum):
    AFFIRMATIVE = "affirmative"
    NEGATIVE = "negative"
    INTERROGATIVE = "interrogative"


class QuizStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


# ========== USERS ==========
class UserCreate(BaseModel):
    user_name: str = Field(..., min_length=2, max_length=100)
    user_email_address: str = Field(..., pattern=r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
    user_password: str = Field(..., min_length=8)
    user_role: int = Field(3, ge=2, le=4)


class UserLogin(BaseModel):
    user_email_address: str
    user_password: str


class RoleUpdate(BaseModel):
    user_id: str
    user_role: int = Field(..., ge=1, le=4)


# ========== TENSES ==========
class EmbeddedExample(BaseModel):
    example_text: Optional[str] = None
    text: Optional[str] = None
    sentence_type: SentenceType = SentenceType.AFFIRMATIVE
    difficulty_level: int = Field(3, ge=1, le=5)


class EmbeddedQuiz(BaseModel):
    question: str = Field(..., min_length=1)
    options: List[str] = []
    correct_answer: Optional[str] = None


class TenseCreate(BaseModel):
    tense_name: str = Field(..., min_length=1, max_length=100)
    tense_description: Optional[str] = None
    description: Optional[str] = None
    time_group: Optional[str] = None
    subcategory: Optional[str] = None
    grammar_rules: Optional[str] = None
    example_structure: Optional[str] = None
    usage_notes: Optional[str] = None
    difficulty_level: int = Field(3, ge=1, le=5)
    examples: List[Union[str, EmbeddedExample]] = []
    quizzes: List[EmbeddedQuiz] = []


class TenseUpdate(BaseModel):
    tense_name: Optional[str] = Field(None, min_length=1, max_length=100)
    tense_description: Optional[str] = None
    description: Optional[str] = None
    time_group: Optional[str] = None
    subcategory: Optional[str] = None
    grammar_rules: Optional[str] = None
    example_structure: Optional[str] = None
    usage_notes: Optional[str] = None
    difficulty_level: Optional[int] = Field(None, ge=1, le=5)
    active: Optional[bool] = None
    examples: Optional[List[Union[str, EmbeddedExample]]] = None
    quizzes: Optional[List[EmbeddedQuiz]] = None


class ActiveToggle(BaseModel):
    active: bool


# ========== EXAMPLES ==========
class ExampleSubmit(BaseModel):
    example_text: str = Field(..., min_length=1)
    sentence_type: SentenceType = SentenceType.AFFIRMATIVE
    difficulty_level: int = Field(2, ge=1, le=5)


class UserExampleCreate(BaseModel):
    sentence: str = Field(..., min_length=1)
    tense_id: str
    sentence_type: SentenceType = SentenceType.AFFIRMATIVE
    difficulty_level: int = Field(3, ge=1, le=5)


class UserExampleUpdate(BaseModel):
    sentence: Optional[str] = Field(None, min_length=1)
    sentence_type: Optional[SentenceType] = None
    difficulty_level: Optional[int] = Field(None, ge=1, le=5)


class ExampleReview(BaseModel):
    approved: bool = True
    feedback: str = ""


# ========== QUIZZES ==========
class PracticeSessionRequest(BaseModel):
    question_count: int = 5
    time_per_question: int = 30


class QuestionCreate(BaseModel):
    question_text: str = Field(..., min_length=1)
    options: List[str]
    correct_answer: str
    explanation: Optional[str] = None


class QuizCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    tense_id: Optional[str] = None
    difficulty_level: Optional[int] = None
    time_per_question: Optional[int] = None
    number_of_questions: Optional[int] = None
    status: QuizStatus = QuizStatus.INACTIVE
    questions: List[QuestionCreate] = []


class QuizUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    tense_id: Optional[str] = None
    difficulty_level: Optional[int] = None
    time_per_question: Optional[int] = None
    number_of_questions: Optional[int] = None
    status: Optional[QuizStatus] = None


class QuizStatusUpdate(BaseModel):
    status: Optional[str] = None


class QuizPerformanceCreate(BaseModel):
    quiz_details_id: Optional[str] = None
    tense_id: Optional[str] = None
    total_questions: Optional[int] = Field(None, ge=1)
    correct_answers: int = Field(0, ge=0)
    incorrect_answers: Optional[int] = Field(None, ge=0)
    total_time_taken: float = Field(0, ge=0)
    incorrect_question_data: Optional[List[Dict[str, Any]]] = None
    missed_questions: Optional[List[Any]] = None


# ========== PROGRESS ==========
class ProgressUpsert(BaseModel):
    completion_percentage: Optional[int] = None
    quiz_avg_score: Optional[float] = None
    examples_submitted: Optional[int] = None
    examples_correct: Optional[int] = None
    is_completed: Optional[bool] = None


class QuizProgress(BaseModel):
    tense_id: str
    score: float = Field(..., ge=0, le=10)


class ExampleProgress(BaseModel):
    tense_id: str
    is_correct: bool = False


class ActivityItem(BaseModel):
    type: str
    count: int = 1


class TensePracticed(BaseModel):
    tense_id: str


class ActivityUpdate(BaseModel):
    time_spent: int = Field(0, ge=0)
    tenses: List[TensePracticed] = []
    activities: List[ActivityItem] = []


class AssessmentDetails(BaseModel):
    score: Optional[float] = None
    feedback: Optional[str] = None


class AssessmentCreate(BaseModel):
    student_id: str
    tense_id: Optional[str] = None
    assessment: AssessmentDetails


# ========== NOTIFICATIONS / DICTIONARY / MISTAKES ==========
class DictionaryCreate(BaseModel):
    word: str = Field(..., min_length=1, max_length=100)
    definition: Optional[str] = None
    part_of_speech: Optional[str] = None
    pronunciation: Optional[str] = None
    session_name: Optional[str] = None


class DictionaryUpdate(BaseModel):
    word: Optional[str] = Field(None, min_length=1, max_length=100)
    definition: Optional[str] = None
    part_of_speech: Optional[str] = None
    pronunciation: Optional[str] = None
    session_name: Optional[str] = None
    learned: Optional[bool] = None


class MistakeCreate(BaseModel):
    question_id: Optional[int] = None
    question_title: Optional[str] = None
    user_answer: Optional[str] = None
    right_answer: Optional[str] = None
    tense_id: Optional[str] = None


# ========== LEARNING GOALS ==========
class GoalCreate(BaseModel):
    description: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1, max_length=50)
    target: int = Field(100, gt=0)
    deadline: Optional[date] = None
    progress: int = Field(0, ge=0)


class GoalUpdate(BaseModel):
    description: Optional[str] = Field(None, min_length=1)
    type: Optional[str] = Field(None, min_length=1, max_length=50)
    target: Optional[int] = Field(None, gt=0)
    deadline: Optional[date] = None
    progress: Optional[int] = Field(None, ge=0)
    completed: Optional[bool] = None
