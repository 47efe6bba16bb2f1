"""
Location endpoints
==================

PUT    /api/v1/users/{user_id}/location  -- upsert a user's position
GET    /api/v1/users/{user_id}/location  -- last-known position
DELETE /api/v1/users/{user_id}/location  -- forget the position
POST   /api/v1/users/{user_id}/offline   -- keep position, mark offline
GET    /api/v1/drivers/nearby            -- online drivers near a rider
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ridedispatch.api.dependencies import get_dispatch, get_settings
from ridedispatch.api.middleware import limiter
from ridedispatch.api.schemas import (
    LocationUpdateRequest,
    NearbyDriverResponse,
    SuccessResponse,
    UserLocationResponse,
)
from ridedispatch.config import Settings, settings
from ridedispatch.services.dispatch import DispatchFacade

router = APIRouter(tags=["locations"])


@router.put(
    "/users/{user_id}/location",
    response_model=SuccessResponse,
    summary="Update a user's location",
)
@limiter.limit(settings.rate_limit)
async def update_location(
    request: Request,
    user_id: int,
    body: LocationUpdateRequest,
    dispatch: DispatchFacade = Depends(get_dispatch),
):
    ok = await dispatch.update_user_location(
        user_id, body.latitude, body.longitude, body.address
    )
    return SuccessResponse(success=ok)


@router.get(
    "/users/{user_id}/location",
    response_model=UserLocationResponse,
    summary="Get a user's last-known location",
)
@limiter.limit(settings.rate_limit)
async def get_location(
    request: Request,
    user_id: int,
    dispatch: DispatchFacade = Depends(get_dispatch),
):
    loc = await dispatch.get_user_location(user_id)
    if not loc:
        raise HTTPException(status_code=404, detail="No location reported")
    return loc


@router.delete(
    "/users/{user_id}/location",
    response_model=SuccessResponse,
    summary="Remove a user's location",
)
@limiter.limit(settings.rate_limit)
async def remove_location(
    request: Request,
    user_id: int,
    dispatch: DispatchFacade = Depends(get_dispatch),
):
    if not await dispatch.remove_user_location(user_id):
        raise HTTPException(status_code=404, detail="No location reported")
    return SuccessResponse()


@router.post(
    "/users/{user_id}/offline",
    response_model=SuccessResponse,
    summary="Mark a user offline",
)
@limiter.limit(settings.rate_limit)
async def go_offline(
    request: Request,
    user_id: int,
    dispatch: DispatchFacade = Depends(get_dispatch),
):
    if not await dispatch.go_offline(user_id):
        raise HTTPException(status_code=404, detail="No location reported")
    return SuccessResponse()


@router.get(
    "/drivers/nearby",
    response_model=list[NearbyDriverResponse],
    summary="Online drivers near a rider, nearest first",
)
@limiter.limit(settings.rate_limit)
async def nearby_drivers(
    request: Request,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius: Optional[float] = Query(None, ge=0, description="Search radius in km"),
    dispatch: DispatchFacade = Depends(get_dispatch),
    app_settings: Settings = Depends(get_settings),
):
    if radius is None:
        radius = app_settings.default_search_radius_km
    drivers = await dispatch.find_nearby_drivers(lat, lng, radius)
    return [NearbyDriverResponse.from_entity(d) for d in drivers]
