"""Billing event ingress."""

from __future__ import annotations

from fastapi import APIRouter, Header, Request
from starlette.concurrency import run_in_threadpool

from sublease.api.deps import BillingDep, LifecycleDep
from sublease.api.schemas import WebhookResponse

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/stripe", response_model=WebhookResponse)
async def stripe_webhook(
    request: Request,
    billing: BillingDep,
    lifecycle: LifecycleDep,
    stripe_signature: str = Header(default=""),
) -> WebhookResponse:
    payload = await request.body()
    # Signature failures raise WebhookSignatureError -> 400, nothing processed
    event = billing.parse_event(payload, stripe_signature)
    if event is None:
        return WebhookResponse(action="ignored")

    outcome = await run_in_threadpool(lifecycle.handle, event)
    return WebhookResponse(action=outcome.action.value)
