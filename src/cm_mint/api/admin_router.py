"""Operator endpoints — all require X-Admin-Token."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.database import get_db_session
from src.cm_common.response import ApiResponse, success_response
from src.cm_gateway.auth.dependencies import require_admin
from src.cm_mint.application.executor import FulfillmentExecutor
from src.cm_mint.application.reconciler import IntentReconciler
from src.cm_mint.application.scheduler import ActivationScheduler
from src.cm_mint.application.schemas import (
    FulfillmentResultOut,
    IntentStatusOut,
    SchedulerRunResponse,
)
from src.cm_mint.application.wiring import get_executor, get_reconciler, get_scheduler

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.post("/intents/{intent_id}/retry")
async def retry_fulfillment(
    intent_id: str,
    executor: Annotated[FulfillmentExecutor, Depends(get_executor)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    """Fulfil a 'paid' intent now, ignoring activation_time."""
    result = await executor.fulfill(db, intent_id)
    return success_response(FulfillmentResultOut.from_result(result).model_dump(), request)


@router.post("/intents/{intent_id}/abandon")
async def abandon_intent(
    intent_id: str,
    reconciler: Annotated[IntentReconciler, Depends(get_reconciler)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    intent = await reconciler.abandon(db, intent_id)
    return success_response(
        IntentStatusOut(intent_id=intent.id, status=intent.status).model_dump(), request
    )


@router.post("/scheduler/run")
async def run_scheduler(
    scheduler: Annotated[ActivationScheduler, Depends(get_scheduler)],
    request: Request,
) -> ApiResponse:
    results = await scheduler.run_once()
    data = SchedulerRunResponse(
        processed=len(results),
        results=[FulfillmentResultOut.from_result(r) for r in results],
    )
    return success_response(data.model_dump(), request)
