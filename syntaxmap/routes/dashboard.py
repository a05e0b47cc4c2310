from typing import Optional

from fastapi import APIRouter, Depends, Query

from syntaxmap.analytics import (
    admin_overview, quiz_completion_report, tense_usage_report, user_activity_report, vocabulary_trends_report,
)
from syntaxmap.auth import ADMIN, Principal, require_roles, require_user
from syntaxmap.database import get_db
from syntaxmap.goals import GoalService
from syntaxmap.routes.deps import get_goal_service
from syntaxmap.schemas import GoalCreate, GoalUpdate

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])

admin_only = require_roles(ADMIN, message="Unauthorized: Admin role required")


# ========== ADMIN REPORTS ==========
@router.get("/admin/overview")
def overview(principal: Principal = Depends(admin_only), conn=Depends(get_db)):
    return {"success": True, **admin_overview(conn)}


@router.get("/admin/user-activity")
def user_activity(range_: str = Query("month", alias="range", pattern="^(week|month|year)$"),
                  principal: Principal = Depends(admin_only), conn=Depends(get_db)):
    return {"success": True, **user_activity_report(conn, range_)}


@router.get("/admin/quiz-completion")
def quiz_completion(range_: str = Query("month", alias="range", pattern="^(week|month|year)$"),
                    principal: Principal = Depends(admin_only), conn=Depends(get_db)):
    return {"success": True, **quiz_completion_report(conn, range_)}


@router.get("/admin/vocabulary-trends")
def vocabulary_trends(range_: str = Query("month", alias="range", pattern="^(week|month|year)$"),
                      principal: Principal = Depends(admin_only), conn=Depends(get_db)):
    return {"success": True, **vocabulary_trends_report(conn, range_)}


@router.get("/admin/tense-usage")
def tense_usage(range_: str = Query("month", alias="range", pattern="^(week|month|year)$"),
                principal: Principal = Depends(admin_only), conn=Depends(get_db)):
    return {"success": True, **tense_usage_report(conn, range_)}


# ========== LEARNING GOALS ==========
@router.get("/goals")
def goals(goal_type: Optional[str] = Query(None, alias="type"), completed: Optional[bool] = None,
          principal: Principal = Depends(require_user), service: GoalService = Depends(get_goal_service)):
    return {"success": True, "goals": service.user_goals(principal.user_id, goal_type, completed)}


@router.get("/goals/{goal_id}")
def goal(goal_id: str, principal: Principal = Depends(require_user),
         service: GoalService = Depends(get_goal_service)):
    return {"success": True, "goal": service.goal(goal_id, principal.user_id)}


@router.post("/goals", status_code=201)
def create_goal(body: GoalCreate, principal: Principal = Depends(require_user),
                service: GoalService = Depends(get_goal_service)):
    goal = service.create(principal.user_id, body.model_dump())
    return {"success": True, "goal": goal, "message": "Goal created successfully"}


@router.put("/goals/{goal_id}")
def update_goal(goal_id: str, body: GoalUpdate, principal: Principal = Depends(require_user),
                service: GoalService = Depends(get_goal_service)):
    goal = service.update(goal_id, principal.user_id, body.model_dump())
    return {"success": True, "goal": goal, "message": "Goal updated successfully"}


@router.delete("/goals/{goal_id}")
def delete_goal(goal_id: str, principal: Principal = Depends(require_user),
                service: GoalService = Depends(get_goal_service)):
    service.delete(goal_id, principal.user_id)
    return {"success": True, "message": "Goal deleted successfully"}
