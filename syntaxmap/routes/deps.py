"""Service factories injected into the routers; tests replace them through dependency_overrides."""
from fastapi import Depends

from syntaxmap.database import get_db
from syntaxmap.dictionary import DictionaryService
from syntaxmap.examples import ExampleService
from syntaxmap.goals import GoalService
from syntaxmap.mistakes import MistakeService
from syntaxmap.notifications import NotificationService
from syntaxmap.progress import ProgressService
from syntaxmap.quizzes import QuizPerformanceService, QuizService
from syntaxmap.tenses import TenseService
from syntaxmap.users import UserService


def get_tense_service(conn=Depends(get_db)) -> TenseService:
    return TenseService(conn)


def get_example_service(conn=Depends(get_db)) -> ExampleService:
    return ExampleService(conn)


def get_quiz_service(conn=Depends(get_db)) -> QuizService:
    return QuizService(conn)


def get_performance_service(conn=Depends(get_db)) -> QuizPerformanceService:
    return QuizPerformanceService(conn)


def get_progress_service(conn=Depends(get_db)) -> ProgressService:
    return ProgressService(conn)


def get_notification_service(conn=Depends(get_db)) -> NotificationService:
    return NotificationService(conn)


def get_dictionary_service(conn=Depends(get_db)) -> DictionaryService:
    return DictionaryService(conn)


def get_mistake_service(conn=Depends(get_db)) -> MistakeService:
    return MistakeService(conn)


def get_user_service(conn=Depends(get_db)) -> UserService:
    return UserService(conn)


def get_goal_service(conn=Depends(get_db)) -> GoalService:
    return GoalService(conn)
