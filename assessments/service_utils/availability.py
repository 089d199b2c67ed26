from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from django.utils import timezone

from assessments.models import Assessment

NOT_YET_AVAILABLE = "not yet available"
WINDOW_CLOSED = "window closed"


@dataclass(frozen=True)
class AvailabilityResult:
    allowed: bool
    reason: str | None = None


def check_availability(
    assessment: Assessment, now: datetime | None = None
) -> AvailabilityResult:
    """Compare ``now`` with the assessment's ``[available_from, available_until]`` window.

    Both bounds are optional. The closing instant still counts as open.
    """

    now = now or timezone.now()
    if assessment.available_from and now < assessment.available_from:
        return AvailabilityResult(allowed=False, reason=NOT_YET_AVAILABLE)
    if assessment.available_until and now > assessment.available_until:
        return AvailabilityResult(allowed=False, reason=WINDOW_CLOSED)
    return AvailabilityResult(allowed=True)
