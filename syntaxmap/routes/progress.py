from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from syntaxmap.analytics import system_analytics
from syntaxmap.auth import ADMIN, STAFF, Principal, require_roles, require_user
from syntaxmap.database import get_db
from syntaxmap.errors import ForbiddenError
from syntaxmap.progress import ProgressService, report_to_csv
from syntaxmap.routes.deps import get_progress_service
from syntaxmap.schemas import ActivityUpdate, AssessmentCreate, ExampleProgress, ProgressUpsert, QuizProgress

router = APIRouter(tags=["Progress"])

staff_only = require_roles(*STAFF, message="Only teachers and admins can view student progress")
admin_only = require_roles(ADMIN, message="Only admins can view system analytics")


# ========== OWN PROGRESS ==========
@router.get("/progress")
def user_progress(principal: Principal = Depends(require_user),
                  service: ProgressService = Depends(get_progress_service)):
    return {"success": True, "progress": service.user_progress(principal.user_id)}


@router.get("/progress/tense/{tense_id}")
def tense_progress(tense_id: str, principal: Principal = Depends(require_user),
                   service: ProgressService = Depends(get_progress_service)):
    return {"success": True, "progress": service.tense_progress(principal.user_id, tense_id)}


@router.post("/progress/tense/{tense_id}")
def save_tense_progress(tense_id: str, body: ProgressUpsert, response: Response,
                        principal: Principal = Depends(require_user),
                        service: ProgressService = Depends(get_progress_service)):
    created, progress = service.save_tense_progress(principal.user_id, tense_id, body.model_dump())
    if created:
        response.status_code = 201
    message = "Progress created" if created else "Progress updated"
    return {"success": True, "message": message, "progress": progress}


@router.post("/progress/quiz")
def quiz_progress(body: QuizProgress, principal: Principal = Depends(require_user),
                  service: ProgressService = Depends(get_progress_service)):
    progress = service.update_quiz_progress(principal.user_id, body.tense_id, body.score)
    return {"success": True, "message": "Quiz progress updated", "progress": progress}


@router.post("/progress/example")
def example_progress(body: ExampleProgress, principal: Principal = Depends(require_user),
                     service: ProgressService = Depends(get_progress_service)):
    progress = service.update_example_progress(principal.user_id, body.tense_id, body.is_correct)
    return {"success": True, "message": "Example progress updated", "progress": progress}


# ========== ACTIVITY / ACHIEVEMENTS ==========
@router.get("/progress/activity")
def activity(limit: int = Query(7, ge=1, le=365), principal: Principal = Depends(require_user),
             service: ProgressService = Depends(get_progress_service)):
    return {"success": True, "activity": service.activity(principal.user_id, limit),
            "streak": service.streak(principal.user_id)}


@router.post("/progress/activity")
def log_activity(body: ActivityUpdate, response: Response, principal: Principal = Depends(require_user),
                 service: ProgressService = Depends(get_progress_service)):
    data = body.model_dump()
    created, record = service.log_activity(principal.user_id, data["time_spent"], data["tenses"],
                                           data["activities"])
    if created:
        response.status_code = 201
    message = "Activity recorded" if created else "Activity updated"
    return {"success": True, "message": message, "activity": record}


@router.get("/progress/achievements")
def achievements(principal: Principal = Depends(require_user),
                 service: ProgressService = Depends(get_progress_service)):
    return {"success": True, "achievements": service.achievements(principal.user_id)}


# ========== TEACHER VIEWS ==========
@router.get("/progress/student/{student_id}")
def student_progress(student_id: str, principal: Principal = Depends(staff_only),
                     service: ProgressService = Depends(get_progress_service)):
    return {"success": True, **service.student_progress(student_id)}


@router.get("/progress/student/{student_id}/report")
def student_report(
    student_id: str,
    format: str = Query("json", pattern="^(json|csv)$"),
    tense_id: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    principal: Principal = Depends(staff_only),
    service: ProgressService = Depends(get_progress_service),
):
    filters = {"tense_id": tense_id, "start_date": start_date, "end_date": end_date}
    report = service.student_report(student_id, filters)
    if format == "csv":
        return Response(
            content=report_to_csv(report),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="student_report_{student_id}.csv"'},
        )
    return {"success": True, "report": report}


@router.post("/progress/assessment", status_code=201)
def create_assessment(body: AssessmentCreate, principal: Principal = Depends(staff_only),
                      service: ProgressService = Depends(get_progress_service)):
    assessment = service.create_assessment(principal.user_id, body.student_id, body.tense_id,
                                           body.assessment.model_dump())
    return {"success": True, "message": "Assessment created", "assessment": assessment}


@router.get("/progress/assessment/{student_id}")
def student_assessments(student_id: str, principal: Principal = Depends(require_user),
                        service: ProgressService = Depends(get_progress_service)):
    if not principal.is_staff and principal.user_id != student_id:
        raise ForbiddenError("You can only view your own assessments")
    return {"success": True, **service.student_assessments(student_id)}


# ========== ADMIN ==========
@router.get("/admin/progress/analytics")
def analytics(principal: Principal = Depends(admin_only), conn=Depends(get_db)):
    return {"success": True, "analytics": system_analytics(conn)}
