from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from newsadmin.api.dependencies import (
    get_admin_user,
    get_super_admin_user,
    get_user,
    list_params,
)
from newsadmin.api.schemas import (
    AuthResponse,
    LoginRequest,
    PasswordChangeRequest,
    RegisterRequest,
    UserResponse,
    UserRoleRequest,
    UserStatusRequest,
    ok,
)
from newsadmin.logging import get_logger
from newsadmin.service.auth import IdentityContext
from newsadmin.service.errors import NotFoundError
from newsadmin.service.listing import USER_LISTING, ListParams, paginate
from newsadmin.service.runtime import get_runtime
from newsadmin.storage.models import User

logger = get_logger(__name__)

auth_router = APIRouter(prefix="/api/auth", tags=["auth"])
admin_router = APIRouter(prefix="/api/admin", tags=["admin"])


def _user_to_response(user: User) -> UserResponse:
    return UserResponse.from_user(user)


@auth_router.post("/register", status_code=201)
async def register(body: RegisterRequest):
    runtime = get_runtime()
    user, token = await runtime.auth.register(
        body.name,
        body.email,
        body.password,
        phone=body.phone,
        role=body.role,
    )
    return ok(
        AuthResponse(token=token, user=_user_to_response(user)),
        "User registered successfully",
    )


@auth_router.post("/login")
async def login(body: LoginRequest):
    runtime = get_runtime()
    user, token = await runtime.auth.login(body.email, body.password)
    return ok(AuthResponse(token=token, user=_user_to_response(user)), "Login successful")


@auth_router.get("/me")
async def get_current_user(principal: IdentityContext = Depends(get_user)):
    """Current caller's profile; also records activity."""
    runtime = get_runtime()
    user = runtime.auth.touch_activity(principal.id) if not principal.is_guest else None
    if not user:
        raise NotFoundError("User not found")
    return ok({"user": _user_to_response(user)})


@auth_router.post("/change-password")
async def change_password(
    body: PasswordChangeRequest, principal: IdentityContext = Depends(get_user)
):
    runtime = get_runtime()
    await runtime.auth.change_password(principal.id, body.old_password, body.new_password)
    return ok(message="Password changed successfully")


@auth_router.post("/logout")
async def logout(principal: IdentityContext = Depends(get_user)):
    # Tokens are stateless; the client discards its copy
    logger.info("logout", user_id=principal.id)
    return ok(message="Logout successful")


@admin_router.get("/dashboard")
async def dashboard(principal: IdentityContext = Depends(get_admin_user)):
    runtime = get_runtime()
    return ok(await runtime.analytics.dashboard())


@admin_router.get("/analytics")
async def analytics(
    period: str = Query("30"),
    report_type: str = Query("all", alias="type"),
    principal: IdentityContext = Depends(get_admin_user),
):
    runtime = get_runtime()
    return ok(await runtime.analytics.analytics(period, report_type))


@admin_router.get("/content-stats")
async def content_stats(
    period: str = Query("30"),
    principal: IdentityContext = Depends(get_admin_user),
):
    runtime = get_runtime()
    return ok(await runtime.analytics.content_stats(period))


@admin_router.get("/users")
async def list_users(
    role: Optional[str] = None,
    status: Optional[str] = None,
    params: ListParams = Depends(list_params),
    principal: IdentityContext = Depends(get_admin_user),
):
    runtime = get_runtime()
    params.filters = {"role": role, "status": status}
    page = await paginate(
        runtime.store,
        USER_LISTING,
        params,
        default_limit=runtime.settings.default_page_size,
        max_limit=runtime.settings.max_page_size,
    )
    users = [_user_to_response(User.from_document(doc)) for doc in page.items]
    return ok({"users": users, "pagination": page.pagination()})


@admin_router.put("/users/{user_id}/status")
async def set_user_status(
    user_id: str,
    body: UserStatusRequest,
    principal: IdentityContext = Depends(get_admin_user),
):
    runtime = get_runtime()
    user = await runtime.auth.set_user_status(user_id, body.status)
    return ok({"user": _user_to_response(user)}, "User status updated successfully")


@admin_router.put("/users/{user_id}/role")
async def set_user_role(
    user_id: str,
    body: UserRoleRequest,
    principal: IdentityContext = Depends(get_super_admin_user),
):
    runtime = get_runtime()
    user = await runtime.auth.set_user_role(user_id, body.role)
    return ok({"user": _user_to_response(user)}, "User role updated successfully")


@admin_router.get("/profile")
async def profile(principal: IdentityContext = Depends(get_admin_user)):
    runtime = get_runtime()
    admin = runtime.store.get_user(principal.id)
    if not admin:
        raise NotFoundError("Admin not found")
    return ok(
        {
            "id": admin.id,
            "name": admin.name,
            "email": admin.email,
            "role": admin.role.value,
            "status": admin.status.value,
            "created_at": admin.created_at,
        }
    )
