"""Renter and owner account endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from sublease.api.deps import DbDep
from sublease.api.schemas import UserCreateRequest, UserResponse
from sublease.errors import UserNotFoundError

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=UserResponse, status_code=201)
def create_user(
    body: UserCreateRequest,
    db: DbDep,
) -> UserResponse:
    return UserResponse.from_user(db.create_user(body.email))


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    db: DbDep,
) -> UserResponse:
    user = db.get_user(user_id)
    if user is None:
        raise UserNotFoundError(user_id)
    return UserResponse.from_user(user)
