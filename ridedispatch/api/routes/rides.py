"""
Ride endpoints
==============

POST /api/v1/rides/request                  -- create a ride request
GET  /api/v1/rides/pending                  -- PENDING rides near a driver
GET  /api/v1/rides/current?user_id=         -- active ride for a rider/driver
GET  /api/v1/rides/history?user_id=         -- all rides, newest first
POST /api/v1/rides/driver/{id}/location     -- driver position (marks online)
GET  /api/v1/rides/{ride_id}                -- full ride record
GET  /api/v1/rides/{ride_id}/status         -- status string only
POST /api/v1/rides/{ride_id}/accept         -- driver accepts a PENDING ride
PUT  /api/v1/rides/{ride_id}/status         -- lifecycle action
POST /api/v1/rides/{ride_id}/cancel         -- cancel a non-terminal ride
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ridedispatch.api.dependencies import get_dispatch, get_settings
from ridedispatch.api.middleware import limiter
from ridedispatch.api.schemas import (
    AcceptRideRequest,
    AcceptRideResponse,
    DriverLocationRequest,
    RideActionRequest,
    RideActionResponse,
    RideCreatedResponse,
    RideCreateRequest,
    RideResponse,
    RideStatusResponse,
    SuccessResponse,
)
from ridedispatch.config import Settings, settings
from ridedispatch.domain.enums import TransitionOutcome
from ridedispatch.services.dispatch import DispatchFacade

router = APIRouter(prefix="/rides", tags=["rides"])

_OUTCOME_ERRORS = {
    TransitionOutcome.NOT_FOUND: (404, "Ride not found"),
    TransitionOutcome.CONFLICT: (409, "Ride is not in the required status"),
    TransitionOutcome.INVALID: (400, "Invalid action"),
}


@router.post(
    "/request",
    status_code=201,
    response_model=RideCreatedResponse,
    summary="Create a ride request",
)
@limiter.limit(settings.rate_limit)
async def request_ride(
    request: Request,
    body: RideCreateRequest,
    dispatch: DispatchFacade = Depends(get_dispatch),
):
    ride_id = await dispatch.request_ride(
        body.rider_id,
        body.pickup_lat,
        body.pickup_lng,
        body.dest_lat,
        body.dest_lng,
        pickup_address=body.pickup_address,
        dest_address=body.dest_address,
        idempotency_key=body.idempotency_key,
    )
    if ride_id <= 0:
        raise HTTPException(status_code=503, detail="Failed to request ride")
    return RideCreatedResponse(ride_id=ride_id)


@router.get(
    "/pending",
    response_model=list[RideResponse],
    summary="Pending rides near a driver",
)
@limiter.limit(settings.rate_limit)
async def pending_rides(
    request: Request,
    driver_lat: float = Query(..., ge=-90, le=90),
    driver_lng: float = Query(..., ge=-180, le=180),
    radius: Optional[float] = Query(None, ge=0, description="Search radius in km"),
    dispatch: DispatchFacade = Depends(get_dispatch),
    app_settings: Settings = Depends(get_settings),
):
    if radius is None:
        radius = app_settings.default_search_radius_km
    return await dispatch.pending_rides_near(driver_lat, driver_lng, radius)


@router.get(
    "/current",
    response_model=Optional[RideResponse],
    summary="Current (non-terminal) ride for a rider or driver",
)
@limiter.limit(settings.rate_limit)
async def current_ride(
    request: Request,
    user_id: int = Query(..., gt=0),
    dispatch: DispatchFacade = Depends(get_dispatch),
):
    return await dispatch.get_current_ride(user_id)


@router.get(
    "/history",
    response_model=list[RideResponse],
    summary="Ride history, newest first",
)
@limiter.limit(settings.rate_limit)
async def ride_history(
    request: Request,
    user_id: int = Query(..., gt=0),
    dispatch: DispatchFacade = Depends(get_dispatch),
):
    return await dispatch.get_ride_history(user_id)


@router.post(
    "/driver/{driver_id}/location",
    response_model=SuccessResponse,
    summary="Update a driver's position and mark them online",
)
@limiter.limit(settings.rate_limit)
async def update_driver_location(
    request: Request,
    driver_id: int,
    body: DriverLocationRequest,
    dispatch: DispatchFacade = Depends(get_dispatch),
):
    ok = await dispatch.update_driver_location(driver_id, body.latitude, body.longitude)
    if not ok:
        raise HTTPException(
            status_code=400,
            detail="Location not updated - user may not be a driver",
        )
    return SuccessResponse()


@router.get(
    "/{ride_id}",
    response_model=RideResponse,
    summary="Get a ride",
)
@limiter.limit(settings.rate_limit)
async def get_ride(
    request: Request,
    ride_id: int,
    dispatch: DispatchFacade = Depends(get_dispatch),
):
    ride = await dispatch.get_ride(ride_id)
    if not ride:
        raise HTTPException(status_code=404, detail="Ride not found")
    return ride


@router.get(
    "/{ride_id}/status",
    response_model=RideStatusResponse,
    summary="Get ride status",
)
@limiter.limit(settings.rate_limit)
async def get_ride_status(
    request: Request,
    ride_id: int,
    dispatch: DispatchFacade = Depends(get_dispatch),
):
    status = await dispatch.get_ride_status(ride_id)
    if status is None:
        raise HTTPException(status_code=404, detail="Ride not found")
    return RideStatusResponse(ride_id=ride_id, status=status)


@router.post(
    "/{ride_id}/accept",
    response_model=AcceptRideResponse,
    summary="Accept a pending ride",
    description=(
        "Conditionally moves a PENDING ride to ACCEPTED. When several drivers "
        "race for the same ride exactly one succeeds; the rest get 409."
    ),
)
@limiter.limit(settings.rate_limit)
async def accept_ride(
    request: Request,
    ride_id: int,
    body: AcceptRideRequest,
    dispatch: DispatchFacade = Depends(get_dispatch),
):
    if await dispatch.accept_ride(body.driver_id, ride_id) <= 0:
        raise HTTPException(
            status_code=409,
            detail="Failed to accept ride - ride may not be available",
        )
    return AcceptRideResponse(ride_id=ride_id, driver_id=body.driver_id)


@router.put(
    "/{ride_id}/status",
    response_model=RideActionResponse,
    summary="Advance or cancel a ride",
)
@limiter.limit(settings.rate_limit)
async def update_ride_status(
    request: Request,
    ride_id: int,
    body: RideActionRequest,
    dispatch: DispatchFacade = Depends(get_dispatch),
):
    outcome = await dispatch.apply_action(ride_id, body.action)
    if outcome is not TransitionOutcome.APPLIED:
        code, detail = _OUTCOME_ERRORS[outcome]
        raise HTTPException(status_code=code, detail=detail)
    return RideActionResponse(ride_id=ride_id, action=body.action)


@router.post(
    "/{ride_id}/cancel",
    response_model=RideStatusResponse,
    summary="Cancel a ride",
    description="Cancels any ride that is not already COMPLETED or CANCELLED.",
)
@limiter.limit(settings.rate_limit)
async def cancel_ride(
    request: Request,
    ride_id: int,
    dispatch: DispatchFacade = Depends(get_dispatch),
):
    if not await dispatch.cancel_ride(ride_id):
        raise HTTPException(
            status_code=409,
            detail="Cannot cancel ride - it may be completed, cancelled or missing",
        )
    return RideStatusResponse(ride_id=ride_id, status="CANCELLED")
