"""Domain enumerations and the ride lifecycle graph."""

import enum


class RideStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DRIVER_EN_ROUTE = "DRIVER_EN_ROUTE"
    ARRIVED = "ARRIVED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES: frozenset[RideStatus] = frozenset(
    {RideStatus.COMPLETED, RideStatus.CANCELLED}
)

# State machine: maps current status -> set of valid next statuses
RIDE_TRANSITIONS: dict[RideStatus, set[RideStatus]] = {
    RideStatus.PENDING: {RideStatus.ACCEPTED, RideStatus.CANCELLED},
    RideStatus.ACCEPTED: {RideStatus.DRIVER_EN_ROUTE, RideStatus.CANCELLED},
    RideStatus.DRIVER_EN_ROUTE: {RideStatus.ARRIVED, RideStatus.CANCELLED},
    RideStatus.ARRIVED: {RideStatus.IN_PROGRESS, RideStatus.CANCELLED},
    RideStatus.IN_PROGRESS: {RideStatus.COMPLETED, RideStatus.CANCELLED},
    RideStatus.COMPLETED: set(),
    RideStatus.CANCELLED: set(),
}

# Timestamp column written exactly once, by the transition into the status
STATUS_TIMESTAMPS: dict[RideStatus, str] = {
    RideStatus.ACCEPTED: "accepted_at",
    RideStatus.IN_PROGRESS: "started_at",
    RideStatus.COMPLETED: "completed_at",
}


def sources_for(target: RideStatus) -> frozenset[RideStatus]:
    """Every status from which *target* is directly reachable."""
    return frozenset(
        status for status, nxt in RIDE_TRANSITIONS.items() if target in nxt
    )


class RideAction(str, enum.Enum):
    """Lifecycle actions accepted by the status-update route."""

    START_DRIVE_TO_PICKUP = "start_drive_to_pickup"
    ARRIVED_AT_PICKUP = "arrived_at_pickup"
    START_RIDE = "start_ride"
    COMPLETE = "complete"
    CANCEL = "cancel"


ACTION_TARGETS: dict[RideAction, RideStatus] = {
    RideAction.START_DRIVE_TO_PICKUP: RideStatus.DRIVER_EN_ROUTE,
    RideAction.ARRIVED_AT_PICKUP: RideStatus.ARRIVED,
    RideAction.START_RIDE: RideStatus.IN_PROGRESS,
    RideAction.COMPLETE: RideStatus.COMPLETED,
    RideAction.CANCEL: RideStatus.CANCELLED,
}


class TransitionOutcome(str, enum.Enum):
    APPLIED = "APPLIED"
    CONFLICT = "CONFLICT"  # ride exists but is not in a source status
    NOT_FOUND = "NOT_FOUND"
    INVALID = "INVALID"  # input rejected before the store was touched


class UserRole(str, enum.Enum):
    RIDER = "RIDER"
    DRIVER = "DRIVER"
    ADMIN = "ADMIN"
