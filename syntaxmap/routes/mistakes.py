from typing import Optional

from fastapi import APIRouter, Depends

from syntaxmap.auth import Principal, current_user, require_user
from syntaxmap.mistakes import MistakeService
from syntaxmap.routes.deps import get_mistake_service
from syntaxmap.schemas import MistakeCreate

router = APIRouter(prefix="/mistakeQuestion", tags=["Mistakes"])


@router.get("")
def all_mistakes(principal: Principal = Depends(current_user),
                 service: MistakeService = Depends(get_mistake_service)):
    return {"success": True, "mistakeQuestions": service.all_mistakes()}


@router.get("/user")
def user_mistakes(tense_id: Optional[str] = None, principal: Principal = Depends(require_user),
                  service: MistakeService = Depends(get_mistake_service)):
    return {"success": True, "mistakeQuestions": service.user_mistakes(principal.user_id, tense_id)}


@router.post("", status_code=201)
def add_mistake(body: MistakeCreate, principal: Principal = Depends(require_user),
                service: MistakeService = Depends(get_mistake_service)):
    mistake = service.add(principal.user_id, body.model_dump())
    return {"success": True, "mistake_id": mistake["mistake_id"], "mistakeQuestion": mistake}


@router.delete("/{mistake_id}")
def delete_mistake(mistake_id: str, principal: Principal = Depends(require_user),
                   service: MistakeService = Depends(get_mistake_service)):
    service.delete(mistake_id, principal.user_id)
    return {"success": True, "message": "Mistake deleted successfully"}
