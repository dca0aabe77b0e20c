"""Listing CRUD and ownership verification endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Response

from sublease.api.deps import ListingServiceDep, VerifierDep
from sublease.api.schemas import (
    ListingCreatedResponse,
    ListingCreateRequest,
    ListingListResponse,
    ListingResponse,
    ListingUpdateRequest,
    VerifyResponse,
)
from sublease.models.listing import ListingStatus, Registrar

router = APIRouter(prefix="/listings", tags=["listings"])


@router.get("", response_model=ListingListResponse)
def list_listings(
    service: ListingServiceDep,
    status: str | None = "active",
    registrar: str | None = None,
    owner_id: int | None = None,
) -> ListingListResponse:
    summaries = service.list_listings(
        status=ListingStatus(status) if status else None,
        registrar=Registrar(registrar) if registrar else None,
        owner_id=owner_id,
    )
    return ListingListResponse(
        listings=[ListingResponse.from_summary(s) for s in summaries],
        total=len(summaries),
    )


@router.post("", response_model=ListingCreatedResponse, status_code=201)
def create_listing(
    body: ListingCreateRequest,
    service: ListingServiceDep,
) -> ListingCreatedResponse:
    created = service.create_listing(
        owner_id=body.owner_id,
        domain_name=body.domain_name,
        registrar=body.registrar,
        credentials=body.credentials,
        allowed_record_types=body.allowed_record_types,
        max_subdomains=body.max_subdomains,
        price=body.price,
        pricing_period=body.pricing_period,
    )
    return ListingCreatedResponse(
        listing=ListingResponse.from_listing(created.listing),
        verification=created.instructions,
    )


@router.get("/{listing_id}", response_model=ListingResponse)
def get_listing(
    listing_id: int,
    service: ListingServiceDep,
) -> ListingResponse:
    return ListingResponse.from_listing(service.get_listing(listing_id))


@router.put("/{listing_id}", response_model=ListingResponse)
def update_listing(
    listing_id: int,
    body: ListingUpdateRequest,
    service: ListingServiceDep,
) -> ListingResponse:
    updated = service.update_listing(
        listing_id,
        price=body.price,
        pricing_period=body.pricing_period,
        credentials=body.credentials,
        max_subdomains=body.max_subdomains,
        status=body.status,
    )
    return ListingResponse.from_listing(updated)


@router.delete("/{listing_id}", status_code=204)
def delete_listing(
    listing_id: int,
    service: ListingServiceDep,
) -> Response:
    service.delete_listing(listing_id)
    return Response(status_code=204)


@router.post("/{listing_id}/verify", response_model=VerifyResponse)
def verify_listing(
    listing_id: int,
    verifier: VerifierDep,
) -> VerifyResponse:
    # A failed check is a normal outcome: 200 with instructions
    outcome = verifier.verify(listing_id)
    return VerifyResponse(
        success=outcome.success,
        message=outcome.message,
        error=outcome.error,
        instructions=outcome.instructions,
        listing=ListingResponse.from_listing(outcome.listing),
    )
