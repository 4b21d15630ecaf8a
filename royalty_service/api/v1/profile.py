"""/v1/profile - artist profile used by the missing-money estimator"""

import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from royalty_service.api.dependencies import get_user_id
from royalty_service.api.v1.schemas import ProfileRequest, ProfileResponse
from royalty_service.infrastructure.database.repositories import ProfileRepository
from royalty_service.infrastructure.database.session import get_db

router = APIRouter()


def _to_response(profile) -> ProfileResponse:
    return ProfileResponse(
        user_id=profile.user_id,
        artist_name=profile.artist_name,
        writes_own_songs=profile.writes_own_songs,
        monthly_streams=profile.monthly_streams,
    )


@router.get("/profile", response_model=ProfileResponse)
def get_profile(
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    profile = ProfileRepository(db).get_profile(user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return _to_response(profile)


@router.put("/profile", response_model=ProfileResponse)
def update_profile(
    request_body: ProfileRequest,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    """Create or replace the calling user's profile"""
    try:
        profile = ProfileRepository(db).upsert_profile(
            user_id=user_id,
            writes_own_songs=request_body.writes_own_songs,
            monthly_streams=request_body.monthly_streams,
            artist_name=request_body.artist_name,
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"Failed to save profile: {e}", extra={"user_id": user_id})
        raise HTTPException(status_code=500, detail="Failed to save profile")

    return _to_response(profile)
