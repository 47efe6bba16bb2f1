"""Input checks run before any store access."""

from __future__ import annotations

import math

from .enums import RideAction
from .errors import ValidationError


def validate_coordinates(lat: float, lng: float, label: str = "point") -> None:
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise ValidationError(f"{label}: coordinates must be finite")
    if not -90.0 <= lat <= 90.0:
        raise ValidationError(f"{label}: latitude {lat} out of range [-90, 90]")
    if not -180.0 <= lng <= 180.0:
        raise ValidationError(f"{label}: longitude {lng} out of range [-180, 180]")


def validate_radius(radius_km: float) -> None:
    if not math.isfinite(radius_km) or radius_km < 0:
        raise ValidationError(f"radius must be a finite, non-negative km value, got {radius_km}")


def parse_action(action: str | RideAction) -> RideAction:
    """Map a gateway action string (any case) onto ``RideAction``."""
    if isinstance(action, RideAction):
        return action
    try:
        return RideAction(str(action).strip().lower())
    except ValueError:
        raise ValidationError(f"Invalid action: {action}") from None
