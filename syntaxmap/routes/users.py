from fastapi import APIRouter, Body, Depends

from syntaxmap.auth import ADMIN, STAFF, Principal, require_roles, require_user
from syntaxmap.routes.deps import get_user_service
from syntaxmap.schemas import RoleUpdate, UserCreate, UserLogin
from syntaxmap.users import UserService

router = APIRouter(prefix="/user", tags=["Users"])

admin_only = require_roles(ADMIN, message="You don't have permission to perform this action")
staff_only = require_roles(*STAFF, message="Access denied. Only teachers and admins can view student lists.")


@router.post("/register", status_code=201)
def register(body: UserCreate, service: UserService = Depends(get_user_service)):
    user = service.register(body.user_name, body.user_email_address, body.user_password, body.user_role)
    return {"success": True, "message": "User registered successfully", "user": user}


@router.post("/login")
def login(body: UserLogin, service: UserService = Depends(get_user_service)):
    return {"success": True, **service.login(body.user_email_address, body.user_password)}


@router.get("/me")
def me(principal: Principal = Depends(require_user), service: UserService = Depends(get_user_service)):
    return {"success": True, "user": service.me(principal.user_id)}


@router.post("/last_session")
def last_session(session: str = Body(..., embed=True), principal: Principal = Depends(require_user),
                 service: UserService = Depends(get_user_service)):
    service.record_session(principal.user_id, session)
    return {"success": True, "message": "Session updated successfully"}


@router.post("/update-role")
def update_role(body: RoleUpdate,
                principal: Principal = Depends(admin_only),
                service: UserService = Depends(get_user_service)):
    user = service.update_role(body.user_id, body.user_role)
    return {"success": True, "message": "User role updated successfully", "user": user}


@router.get("/students")
def students(principal: Principal = Depends(staff_only), service: UserService = Depends(get_user_service)):
    return {"success": True, "students": service.students()}
