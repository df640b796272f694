from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from src.db.models import User
from .dependencies import get_current_active_user
from .schemas import UserOut


router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=UserOut)
async def me(
    current_user: Annotated[User, Depends(get_current_active_user)],
) -> UserOut:
    return UserOut(
        id=current_user.id,
        email=current_user.email,
        username=current_user.username,
        is_active=current_user.is_active,
    )
