from typing import Optional

from fastapi import APIRouter, Depends, Query

from syntaxmap.auth import ADMIN, STAFF, STUDENT, Principal, current_user, require_roles, require_user
from syntaxmap.examples import ExampleService
from syntaxmap.quizzes import QuizService
from syntaxmap.routes.deps import get_example_service, get_quiz_service, get_tense_service
from syntaxmap.schemas import (
    ActiveToggle, ExampleReview, ExampleSubmit, PracticeSessionRequest, SentenceType, TenseCreate, TenseUpdate,
)
from syntaxmap.tenses import TenseService

router = APIRouter(prefix="/tense", tags=["Tenses"])

staff_only = require_roles(*STAFF, message="Only teachers and admins can manage tenses")
admin_only = require_roles(ADMIN, message="Only admins can change tense visibility")
contributors = require_roles(*STAFF, STUDENT, message="Guests cannot submit examples")


# ========== READ ==========
@router.get("")
def list_tenses(
    tense_name: Optional[str] = None,
    time_group: Optional[str] = None,
    subcategory: Optional[str] = None,
    active: Optional[bool] = None,
    min_difficulty: Optional[int] = Query(None, ge=1, le=5),
    max_difficulty: Optional[int] = Query(None, ge=1, le=5),
    order_by: Optional[str] = None,
    order_direction: Optional[str] = None,
    principal: Principal = Depends(current_user),
    service: TenseService = Depends(get_tense_service),
):
    criteria = {
        "tense_name": tense_name,
        "time_group": time_group,
        "subcategory": subcategory,
        "active": active,
        "min_difficulty": min_difficulty,
        "max_difficulty": max_difficulty,
        "order_by": order_by,
        "order_direction": order_direction,
    }
    tenses = service.list_tenses(principal, {k: v for k, v in criteria.items() if v is not None})
    return {"success": True, "count": len(tenses), "tenses": tenses}


@router.get("/map")
def tense_map(principal: Principal = Depends(current_user),
              service: TenseService = Depends(get_tense_service)):
    return {"success": True, "tenseMap": service.tense_map(principal)}


@router.get("/dashboard")
def dashboard(principal: Principal = Depends(staff_only),
              service: TenseService = Depends(get_tense_service)):
    return {"success": True, "tenses": service.dashboard()}


@router.get("/{tense_id}")
def get_tense(tense_id: str, principal: Principal = Depends(current_user),
              service: TenseService = Depends(get_tense_service)):
    return {"success": True, "tense": service.get_tense(tense_id, principal)}


# ========== WRITE ==========
@router.post("", status_code=201)
def create_tense(body: TenseCreate, principal: Principal = Depends(staff_only),
                 service: TenseService = Depends(get_tense_service)):
    tense = service.create_tense(body.model_dump(mode="json"))
    return {"success": True, "message": "Tense created successfully", "tense_id": tense["tense_id"],
            "tense": tense}


@router.put("/{tense_id}")
def update_tense(tense_id: str, body: TenseUpdate, principal: Principal = Depends(staff_only),
                 service: TenseService = Depends(get_tense_service)):
    data = body.model_dump(mode="json", exclude_unset=True)
    return {"success": True, "message": "Tense updated successfully",
            "tense": service.update_tense(tense_id, data)}


@router.delete("/{tense_id}")
def delete_tense(tense_id: str, principal: Principal = Depends(staff_only),
                 service: TenseService = Depends(get_tense_service)):
    return service.delete_tense(tense_id)


@router.patch("/{tense_id}/active")
def toggle_active(tense_id: str, body: ActiveToggle, principal: Principal = Depends(admin_only),
                  service: TenseService = Depends(get_tense_service)):
    return {"success": True, "tense": service.toggle_active(tense_id, body.active)}


# ========== EXAMPLES ==========
@router.get("/{tense_id}/examples")
def tense_examples(tense_id: str, sentence_type: Optional[SentenceType] = None,
                   principal: Principal = Depends(current_user),
                   service: ExampleService = Depends(get_example_service)):
    kind = sentence_type.value if sentence_type else None
    return {"success": True, "examples": service.examples_for_tense(tense_id, principal, kind)}


@router.post("/{tense_id}/example", status_code=201)
def submit_example(tense_id: str, body: ExampleSubmit, principal: Principal = Depends(contributors),
                   service: ExampleService = Depends(get_example_service)):
    example = service.submit(tense_id, principal, body.example_text, body.sentence_type.value,
                             body.difficulty_level)
    message = ("Example submitted for review" if principal.role == STUDENT
               else "Example added successfully")
    return {"success": True, "message": message, "example": example}


@router.put("/{tense_id}/example/{example_id}/review")
def review_example(tense_id: str, example_id: str, body: ExampleReview,
                   principal: Principal = Depends(require_roles(*STAFF)),
                   service: ExampleService = Depends(get_example_service)):
    example = service.review(example_id, principal, body.feedback, body.approved)
    return {"success": True, "message": "Example reviewed", "example": example}


@router.get("/{tense_id}/user-examples")
def user_examples_for_tense(tense_id: str, principal: Principal = Depends(require_user),
                            service: ExampleService = Depends(get_example_service)):
    result = service.user_examples(principal.user_id, tense_id)
    return {"success": True, "examples": result["examples"]}


# ========== PRACTICE ==========
@router.post("/{tense_id}/quiz")
def practice_quiz(tense_id: str, body: Optional[PracticeSessionRequest] = None,
                  principal: Principal = Depends(require_user),
                  service: QuizService = Depends(get_quiz_service)):
    body = body or PracticeSessionRequest()
    session = service.practice_session(tense_id, principal.user_id, body.question_count,
                                       body.time_per_question)
    return {"success": True, "quiz": session}


@router.get("/{tense_id}/stats")
def tense_stats(tense_id: str, principal: Principal = Depends(require_user),
                service: TenseService = Depends(get_tense_service)):
    return {"success": True, "stats": service.tense_stats(principal.user_id, tense_id)}
