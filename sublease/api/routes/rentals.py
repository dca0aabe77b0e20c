"""Rental checkout, listing, record update and cancellation endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from sublease.api.deps import RentalServiceDep
from sublease.api.schemas import (
    CancelResponse,
    CheckoutResponse,
    RentalCreateRequest,
    RentalResponse,
    RentalUpdateRequest,
)

router = APIRouter(prefix="/rentals", tags=["rentals"])


@router.post("", response_model=CheckoutResponse)
def initiate_rental(
    body: RentalCreateRequest,
    service: RentalServiceDep,
) -> CheckoutResponse:
    session = service.initiate_rental(
        listing_id=body.listing_id,
        renter_id=body.renter_id,
        subdomain=body.subdomain,
        record_type=body.record_type,
        record_value=body.record_value,
    )
    return CheckoutResponse(session_id=session.session_id, session_url=session.url)


@router.get("/my-rentals", response_model=list[RentalResponse])
def my_rentals(
    user_id: int,
    service: RentalServiceDep,
) -> list[RentalResponse]:
    return [
        RentalResponse.from_rental(r.rental, r.domain_name, r.transactions)
        for r in service.list_rentals_for_renter(user_id)
    ]


@router.put("/{rental_id}", response_model=RentalResponse)
def update_rental(
    rental_id: int,
    body: RentalUpdateRequest,
    service: RentalServiceDep,
) -> RentalResponse:
    rental = service.update_rental(
        rental_id, record_type=body.record_type, record_value=body.record_value
    )
    return RentalResponse.from_rental(rental)


@router.delete("/{rental_id}", response_model=CancelResponse)
def cancel_rental(
    rental_id: int,
    service: RentalServiceDep,
) -> CancelResponse:
    outcome = service.cancel_rental(rental_id)
    rental = service.get_rental(rental_id)
    message = (
        "Rental cancelled successfully"
        if outcome.action == "cancelled"
        else f"Rental already {rental.status.value}"
    )
    return CancelResponse(
        message=message,
        rental=RentalResponse.from_rental(rental),
        dns_success=outcome.dns_success,
    )
