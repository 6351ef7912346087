"""cm_mint REST API — issue, status polling, acknowledge, pool progress."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.database import get_db_session
from src.cm_common.response import ApiResponse, success_response
from src.cm_gateway.auth.dependencies import get_requester
from src.cm_mint.application.issuer import PaymentRequestIssuer
from src.cm_mint.application.progress import PoolProgressService
from src.cm_mint.application.reconciler import IntentReconciler
from src.cm_mint.application.schemas import IntentStatusOut, IssueRequest, IssueResponse
from src.cm_mint.application.status import MintStatusService
from src.cm_mint.application.wiring import (
    get_issuer,
    get_progress_service,
    get_reconciler,
    get_status_service,
)
from src.cm_mint.domain.models import Requester

router = APIRouter(tags=["mint"])


@router.post("/mint/payment-requests", status_code=201)
async def issue_payment_request(
    body: IssueRequest,
    requester: Annotated[Requester, Depends(get_requester)],
    issuer: Annotated[PaymentRequestIssuer, Depends(get_issuer)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    intent = await issuer.issue(db, requester, body)
    return success_response(IssueResponse.from_intent(intent).model_dump(), request)


@router.get("/mint/status")
async def get_mint_status(
    status_service: Annotated[MintStatusService, Depends(get_status_service)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    intent_id: str | None = Query(None, description="Mint intent ID"),
    request_id: str | None = Query(None, description="Gateway payment request ID"),
) -> ApiResponse:
    data = await status_service.get_status(db, intent_id=intent_id, external_request_id=request_id)
    return success_response(data.model_dump(), request)


@router.get("/mint/intents/{intent_id}")
async def get_intent(
    intent_id: str,
    status_service: Annotated[MintStatusService, Depends(get_status_service)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await status_service.get_status(db, intent_id=intent_id)
    return success_response(data.model_dump(), request)


@router.post("/mint/intents/{intent_id}/acknowledge")
async def acknowledge_intent(
    intent_id: str,
    requester: Annotated[Requester, Depends(get_requester)],
    reconciler: Annotated[IntentReconciler, Depends(get_reconciler)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    intent = await reconciler.acknowledge(db, intent_id, requester.account_id)
    return success_response(
        IntentStatusOut(intent_id=intent.id, status=intent.status).model_dump(), request
    )


@router.get("/pools/{pool}/progress")
async def get_pool_progress(
    pool: str,
    progress: Annotated[PoolProgressService, Depends(get_progress_service)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await progress.get_progress(db, pool)
    return success_response(data.model_dump(), request)
