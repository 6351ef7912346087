"""cm_payment REST API: the Payment Gateway's webhook callback.

Authentication runs on the raw body and headers before anything is
written. Once the payment is ledgered the response is 200, even when
fulfillment is parked for retry.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.database import get_db_session
from src.cm_common.response import ApiResponse, success_response
from src.cm_mint.application.payment_intake import PaymentIntakeService
from src.cm_mint.application.wiring import get_intake, get_webhook_authenticator
from src.cm_payment.application.webhook_auth import WebhookAuthenticator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/payment")
async def payment_webhook(
    request: Request,
    authenticator: Annotated[WebhookAuthenticator, Depends(get_webhook_authenticator)],
    intake: Annotated[PaymentIntakeService, Depends(get_intake)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    body = await request.body()
    notification = authenticator.authenticate(request.headers, body)
    logger.info(
        "Payment notification %s (status=%s, %s %s)",
        notification.record_id, notification.status, notification.amount, notification.currency,
    )
    ack = await intake.process(db, notification)
    return success_response(ack.model_dump(), request)
