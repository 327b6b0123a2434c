from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, Query

from newsadmin.service.auth import AccessLevel, IdentityContext, require_role
from newsadmin.service.listing import ListParams
from newsadmin.service.runtime import get_runtime


async def get_user(authorization: Optional[str] = Header(None)) -> IdentityContext:
    runtime = get_runtime()
    return await runtime.auth.authenticate(authorization)


async def get_optional_user(
    authorization: Optional[str] = Header(None),
) -> Optional[IdentityContext]:
    runtime = get_runtime()
    return await runtime.auth.authenticate_optional(authorization)


async def get_admin_user(principal: IdentityContext = Depends(get_user)) -> IdentityContext:
    return require_role(principal, {AccessLevel.ADMIN})


async def get_super_admin_user(
    principal: IdentityContext = Depends(get_user),
) -> IdentityContext:
    return require_role(principal, {AccessLevel.SUPER_ADMIN})


def list_params(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    sort: Optional[str] = Query(None, max_length=64),
    order: str = Query("desc", max_length=8),
    search: Optional[str] = Query(None, max_length=200),
) -> ListParams:
    return ListParams(page=page, limit=limit, sort=sort, order=order, search=search)
