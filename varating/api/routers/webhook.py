"""
Stripe webhook endpoint.

The event is verified with the endpoint secret and processed synchronously;
its id is recorded in the same transaction as its effects, so a redelivery
that loses the insert race is acknowledged as a duplicate. Any other failure,
integrity errors of the side effects included, answers 500 and Stripe retries.
"""

import logging
from typing import Optional

import stripe
from fastapi import APIRouter, Header, HTTPException, Request, Response
from sqlalchemy.exc import IntegrityError
from starlette.concurrency import run_in_threadpool

from varating.database.core.billing_funcs import is_event_processed, process_stripe_event
from varating.integrations import stripe_funcs

router = APIRouter(tags=["stripe"])
logger = logging.getLogger("uvicorn")


@router.options("/stripe-webhook")
async def stripe_webhook_preflight():
    return Response(status_code=204)


@router.post("/stripe-webhook")
async def stripe_webhook(request: Request, stripe_signature: Optional[str] = Header(None)):
    """
    Receive a Stripe event.

    Response:
        200: {'received': True} or {'received': True, 'duplicate': True}
        400: missing or invalid signature
        500: processing failed; Stripe retries the delivery
    """
    if not stripe_signature:
        raise HTTPException(status_code=400, detail="No signature found")
    payload = await request.body()
    try:
        event = stripe_funcs.verify_webhook(payload, stripe_signature)
    except (stripe.SignatureVerificationError, ValueError) as e:
        logger.error(f"Webhook signature verification failed: {e}")
        raise HTTPException(status_code=400, detail=f"Webhook signature verification failed: {e}")

    event = stripe_funcs.to_dict(event)
    try:
        return await run_in_threadpool(process_stripe_event, event=event)
    except IntegrityError as e:
        if await run_in_threadpool(is_event_processed, event_id=event.get("id")):
            logger.info(f"Duplicate webhook event {event.get('id')}")
            return {"received": True, "duplicate": True}
        logger.exception(f"Integrity error processing webhook event {event.get('id')}: {e}")
        raise HTTPException(status_code=500, detail="Webhook processing failed")
    except Exception as e:
        logger.exception(f"Error processing webhook event {event.get('id')}: {e}")
        raise HTTPException(status_code=500, detail="Webhook processing failed")


@router.api_route("/stripe-webhook", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def stripe_webhook_other_methods():
    raise HTTPException(status_code=405, detail="Method not allowed")
