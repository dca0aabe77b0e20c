"""Subdomain availability endpoint."""

from __future__ import annotations

from fastapi import APIRouter

from sublease.api.deps import AvailabilityDep
from sublease.api.schemas import AvailabilityRequest
from sublease.availability import AvailabilityResult

router = APIRouter(tags=["availability"])


@router.post("/check-availability", response_model=AvailabilityResult)
def check_availability(
    body: AvailabilityRequest,
    resolver: AvailabilityDep,
) -> AvailabilityResult:
    return resolver.check(body.listing_id, body.subdomain)
