from typing import Optional

from fastapi import APIRouter, Depends

from syntaxmap.auth import STAFF, Principal, require_roles, require_user
from syntaxmap.examples import ExampleService
from syntaxmap.routes.deps import get_example_service
from syntaxmap.schemas import UserExampleCreate, UserExampleUpdate

router = APIRouter(tags=["Examples"])

staff_only = require_roles(*STAFF, message="Only teachers and admins can view this")


# ========== OWN EXAMPLES ==========
@router.get("/user/examples")
def list_user_examples(tense_id: Optional[str] = None, principal: Principal = Depends(require_user),
                       service: ExampleService = Depends(get_example_service)):
    return {"success": True, **service.user_examples(principal.user_id, tense_id)}


@router.post("/user/examples", status_code=201)
def create_user_example(body: UserExampleCreate, principal: Principal = Depends(require_user),
                        service: ExampleService = Depends(get_example_service)):
    example = service.create_user_example(principal.user_id, body.tense_id, body.sentence,
                                          body.sentence_type.value, body.difficulty_level)
    return {"success": True, "message": "Example created successfully", "example": example}


@router.put("/user/examples/{example_id}")
def update_user_example(example_id: str, body: UserExampleUpdate, principal: Principal = Depends(require_user),
                        service: ExampleService = Depends(get_example_service)):
    example = service.update_user_example(
        example_id,
        principal.user_id,
        sentence=body.sentence,
        sentence_type=body.sentence_type.value if body.sentence_type else None,
        difficulty_level=body.difficulty_level,
    )
    return {"success": True, "message": "Example updated successfully", "example": example}


@router.delete("/user/examples/{example_id}")
def delete_user_example(example_id: str, principal: Principal = Depends(require_user),
                        service: ExampleService = Depends(get_example_service)):
    service.delete_user_example(example_id, principal.user_id)
    return {"success": True, "message": "Example deleted successfully"}


@router.put("/user/examples/{example_id}/share")
def share_user_example(example_id: str, principal: Principal = Depends(require_user),
                       service: ExampleService = Depends(get_example_service)):
    example = service.share_user_example(example_id, principal.user_id)
    return {"success": True, "message": "Example shared with teacher", "example": example}


# ========== STAFF ==========
@router.get("/teacher/shared-examples")
def shared_examples(principal: Principal = Depends(staff_only),
                    service: ExampleService = Depends(get_example_service)):
    return {"success": True, **service.shared_examples()}


@router.get("/examples/pending")
def pending_examples(principal: Principal = Depends(staff_only),
                     service: ExampleService = Depends(get_example_service)):
    examples = service.pending_reviews()
    return {"success": True, "count": len(examples), "examples": examples}


@router.get("/examples/filter")
def filter_examples(
    tense_id: Optional[str] = None,
    difficulty_level: Optional[str] = None,
    difficulty_levels: Optional[str] = None,
    sentence_type: Optional[str] = None,
    student_submission: Optional[bool] = None,
    teacher_reviewed: Optional[bool] = None,
    submitter_id: Optional[str] = None,
    user_id: Optional[str] = None,
    shared_with_teacher: Optional[bool] = None,
    principal: Principal = Depends(staff_only),
    service: ExampleService = Depends(get_example_service),
):
    criteria = {
        "tense_id": tense_id,
        "difficulty_level": difficulty_level,
        "difficulty_levels": difficulty_levels,
        "sentence_type": sentence_type,
        "student_submission": student_submission,
        "teacher_reviewed": teacher_reviewed,
        "submitter_id": submitter_id,
        "user_id": user_id,
        "shared_with_teacher": shared_with_teacher,
    }
    examples = service.filtered({k: v for k, v in criteria.items() if v is not None})
    return {"success": True, "count": len(examples), "examples": examples}


@router.get("/examples/statistics")
def example_statistics(principal: Principal = Depends(staff_only),
                       service: ExampleService = Depends(get_example_service)):
    return {"success": True, "statistics": service.statistics()}
