from typing import Optional

from fastapi import APIRouter, Body, Depends, Query

from syntaxmap.auth import STAFF, Principal, current_user, require_roles, require_user
from syntaxmap.quizzes import QuizPerformanceService, QuizService
from syntaxmap.routes.deps import get_performance_service, get_quiz_service
from syntaxmap.schemas import QuizCreate, QuizPerformanceCreate, QuizStatusUpdate, QuizUpdate

router = APIRouter(tags=["Quizzes"])

staff_only = require_roles(*STAFF, message="Only teachers and admins can manage quizzes")


# ========== PRACTICE QUIZZES ==========
@router.get("/practice/quizzes")
def list_quizzes(
    tense_id: Optional[str] = None,
    difficulty_level: Optional[str] = None,
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    principal: Principal = Depends(current_user),
    service: QuizService = Depends(get_quiz_service),
):
    criteria = {"tense_id": tense_id, "difficulty_level": difficulty_level, "status": status}
    result = service.list_quizzes({k: v for k, v in criteria.items() if v is not None}, page, limit)
    return {"success": True, **result}


@router.get("/practice/quiz/{quiz_id}")
def get_quiz(quiz_id: str, principal: Principal = Depends(current_user),
             service: QuizService = Depends(get_quiz_service)):
    return {"success": True, "data": service.get_quiz(quiz_id)}


@router.post("/practice/quiz", status_code=201)
def create_quiz(body: QuizCreate, principal: Principal = Depends(staff_only),
                service: QuizService = Depends(get_quiz_service)):
    data = body.model_dump(mode="json")
    questions = data.pop("questions")
    created = service.create_quiz(data, questions)
    return {"success": True, "message": "Quiz created successfully", "data": created}


@router.put("/practice/quiz/{quiz_id}")
def update_quiz(quiz_id: str, body: QuizUpdate, principal: Principal = Depends(staff_only),
                service: QuizService = Depends(get_quiz_service)):
    fields = body.model_dump(mode="json", exclude_none=True)
    return {"success": True, "message": "Quiz updated successfully",
            "data": service.update_quiz(quiz_id, fields)}


@router.patch("/practice/quiz/{quiz_id}")
def set_quiz_status(quiz_id: str, body: QuizStatusUpdate, principal: Principal = Depends(staff_only),
                    service: QuizService = Depends(get_quiz_service)):
    return {"success": True, "message": f"Quiz status updated to {body.status}",
            "data": service.set_status(quiz_id, body.status)}


# ========== QUIZ PERFORMANCE ==========
@router.post("/quiz-performance", status_code=201)
def record_performance(body: QuizPerformanceCreate, principal: Principal = Depends(require_user),
                       service: QuizPerformanceService = Depends(get_performance_service)):
    result = service.record(principal.user_id, body.model_dump(mode="json"))
    return {"success": True, "message": "Quiz performance saved successfully", "data": result}


@router.get("/quiz-performance/user")
def performance_history(limit: Optional[int] = Query(None, ge=1), principal: Principal = Depends(require_user),
                        service: QuizPerformanceService = Depends(get_performance_service)):
    return {"success": True, "data": service.history(principal.user_id, limit)}


@router.get("/quiz-performance/stats")
def performance_stats(principal: Principal = Depends(require_user),
                      service: QuizPerformanceService = Depends(get_performance_service)):
    return {"success": True, "data": service.stats(principal.user_id)}


@router.get("/quiz-performance/stats/tenses")
def performance_tense_stats(tense_id: Optional[str] = None, principal: Principal = Depends(require_user),
                            service: QuizPerformanceService = Depends(get_performance_service)):
    return {"success": True, "data": service.tense_stats(principal.user_id, tense_id)}


@router.get("/quiz-performance/quiz/{quiz_id}")
def performance_for_quiz(quiz_id: str, principal: Principal = Depends(require_user),
                         service: QuizPerformanceService = Depends(get_performance_service)):
    # staff see every attempt, everyone else only their own
    user_id = None if principal.is_staff else principal.user_id
    return {"success": True, "data": service.for_quiz(quiz_id, user_id)}


@router.patch("/quiz-performance/{performance_id}/question/{question_id}")
def mark_question(performance_id: str, question_id: int,
                  mark_for_review: Optional[bool] = Body(None, embed=True),
                  principal: Principal = Depends(require_user),
                  service: QuizPerformanceService = Depends(get_performance_service)):
    result = service.mark_for_review(performance_id, question_id, principal.user_id, mark_for_review)
    return {"success": True, "message": "Question review status updated", "data": result}
