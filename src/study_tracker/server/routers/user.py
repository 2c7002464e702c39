from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger

from ...schemas import ProfileUpdate, UserProfile
from ..auth import get_current_user
from ..repositories import ProfileRepository, get_profile_repository

router = APIRouter(
    prefix="/api/user",
    tags=["user"],
)


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=UserProfile,
    summary="Get Profile",
    description="Display profile of the authenticated user.",
    responses={
        200: {"description": "Profile found"},
        404: {"description": "No profile saved yet"},
    },
)
def get_profile(
    user_id: str = Depends(get_current_user),
    repo: ProfileRepository = Depends(get_profile_repository),
) -> UserProfile:
    profile = repo.get(user_id)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return profile


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=UserProfile,
    summary="Save Profile",
    description="Set the display name (trimmed, at least 2 characters) and mark the user as onboarded.",
    responses={
        200: {"description": "Profile saved"},
        422: {"description": "Name too short"},
    },
)
def save_profile(
    payload: ProfileUpdate,
    user_id: str = Depends(get_current_user),
    repo: ProfileRepository = Depends(get_profile_repository),
) -> UserProfile:
    """
    Create or replace the caller's profile.
    """
    saved = repo.save(user_id, payload.to_profile())
    logger.debug("Profile saved for user {}", user_id)
    return saved
