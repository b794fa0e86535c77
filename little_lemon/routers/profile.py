import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from little_lemon.exceptions import QueryError
from little_lemon.routers.dependencies import get_profile_store, request_id
from little_lemon.schemas.profile import (
    OnboardingRequest,
    OnboardingStatus,
    Profile,
    ProfileImageUpdate,
    ProfileUpdate,
)
from little_lemon.services.profile_store import ProfileStore

router = APIRouter()
logger = logging.getLogger(__name__)


def _storage_failure(request: Request, exc: QueryError) -> HTTPException:
    logger.error("Profile storage failed", extra={"request_id": request_id(request), "error": str(exc)})
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Failed to load or save profile",
    )


@router.get("", response_model=Profile)
async def get_profile(request: Request, profiles: ProfileStore = Depends(get_profile_store)) -> Profile:
    try:
        return await profiles.load()
    except QueryError as exc:
        raise _storage_failure(request, exc)


@router.get("/status", response_model=OnboardingStatus)
async def onboarding_status(
    request: Request,
    profiles: ProfileStore = Depends(get_profile_store),
) -> OnboardingStatus:
    try:
        return OnboardingStatus(onboarded=await profiles.is_onboarded())
    except QueryError as exc:
        raise _storage_failure(request, exc)


@router.post("/onboarding", response_model=Profile, status_code=status.HTTP_201_CREATED)
async def onboard(
    body: OnboardingRequest,
    request: Request,
    profiles: ProfileStore = Depends(get_profile_store),
) -> Profile:
    logger.info("Received onboarding request", extra={"request_id": request_id(request)})
    try:
        return await profiles.complete_onboarding(body.first_name, body.last_name, body.email)
    except QueryError as exc:
        raise _storage_failure(request, exc)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))


@router.put("", response_model=Profile)
async def update_profile(
    body: ProfileUpdate,
    request: Request,
    profiles: ProfileStore = Depends(get_profile_store),
) -> Profile:
    logger.info("Received update_profile request", extra={"request_id": request_id(request)})
    try:
        return await profiles.save(body)
    except QueryError as exc:
        raise _storage_failure(request, exc)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))


@router.put("/image", response_model=Profile)
async def update_profile_image(
    body: ProfileImageUpdate,
    request: Request,
    profiles: ProfileStore = Depends(get_profile_store),
) -> Profile:
    try:
        return await profiles.set_profile_image(body.uri)
    except QueryError as exc:
        raise _storage_failure(request, exc)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def logout(request: Request, profiles: ProfileStore = Depends(get_profile_store)) -> None:
    logger.info("Received logout request", extra={"request_id": request_id(request)})
    try:
        await profiles.clear()
    except QueryError as exc:
        raise _storage_failure(request, exc)
