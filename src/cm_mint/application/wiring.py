"""Process-wide service instances.

Each getter builds its object on first use and returns the same one
afterwards; routers take them through Depends() so tests can swap any
of them via app.dependency_overrides.
"""
import logging
from functools import lru_cache

from config.settings import settings
from src.cm_common.database import async_session_factory
from src.cm_mint.application.executor import FulfillmentExecutor
from src.cm_mint.application.issuer import PaymentRequestIssuer
from src.cm_mint.application.payment_intake import PaymentIntakeService
from src.cm_mint.application.progress import PoolProgressService
from src.cm_mint.application.reconciler import IntentReconciler
from src.cm_mint.application.scheduler import ActivationScheduler
from src.cm_mint.application.status import MintStatusService
from src.cm_mint.infrastructure.identity_client import HttpIdentityProvider
from src.cm_mint.infrastructure.locks import RedisIntentLocks
from src.cm_mint.infrastructure.minting_client import HttpMintingService
from src.cm_mint.infrastructure.persistence import MintedItemRepository, MintIntentRepository
from src.cm_mint.infrastructure.pool_catalog import PoolCatalog, get_pool_catalog
from src.cm_payment.application.webhook_auth import WebhookAuthenticator
from src.cm_payment.domain.models import PaymentDestinationConfig
from src.cm_payment.infrastructure.gateway_client import HttpPaymentGateway
from src.cm_payment.infrastructure.ledger import PaymentLedger

logger = logging.getLogger(__name__)

_intents = MintIntentRepository()
_items = MintedItemRepository()
_ledger = PaymentLedger()


def get_catalog() -> PoolCatalog:
    return get_pool_catalog()


@lru_cache(maxsize=1)
def get_intent_locks() -> RedisIntentLocks:
    return RedisIntentLocks()


@lru_cache(maxsize=1)
def get_payment_gateway() -> HttpPaymentGateway:
    return HttpPaymentGateway()


@lru_cache(maxsize=1)
def get_identity_provider() -> HttpIdentityProvider:
    return HttpIdentityProvider()


@lru_cache(maxsize=1)
def get_minting_service() -> HttpMintingService:
    return HttpMintingService()


@lru_cache(maxsize=1)
def get_webhook_authenticator() -> WebhookAuthenticator:
    return WebhookAuthenticator(
        settings.WEBHOOK_APP_ID,
        settings.WEBHOOK_APP_SECRET,
        freshness_seconds=settings.WEBHOOK_FRESHNESS_SECONDS,
    )


@lru_cache(maxsize=1)
def get_issuer() -> PaymentRequestIssuer:
    destinations = PaymentDestinationConfig(
        destinations=settings.MINT_DESTINATIONS,
        currency=settings.MINT_CURRENCY,
        fallback_destination=settings.MINT_FALLBACK_DESTINATION,
    )
    return PaymentRequestIssuer(get_payment_gateway(), _intents, get_catalog(), destinations)


@lru_cache(maxsize=1)
def get_reconciler() -> IntentReconciler:
    return IntentReconciler(_intents, get_intent_locks())


@lru_cache(maxsize=1)
def get_executor() -> FulfillmentExecutor:
    return FulfillmentExecutor(
        _intents,
        _items,
        get_catalog(),
        get_identity_provider(),
        get_minting_service(),
        get_intent_locks(),
    )


@lru_cache(maxsize=1)
def get_intake() -> PaymentIntakeService:
    return PaymentIntakeService(_ledger, get_reconciler(), get_executor())


@lru_cache(maxsize=1)
def get_status_service() -> MintStatusService:
    return MintStatusService(_intents, _items)


@lru_cache(maxsize=1)
def get_progress_service() -> PoolProgressService:
    return PoolProgressService(_items, get_catalog())


@lru_cache(maxsize=1)
def get_scheduler() -> ActivationScheduler:
    return ActivationScheduler(get_executor(), _intents, async_session_factory)


async def close_clients() -> None:
    """Close any outbound HTTP clients that were opened."""
    for getter in (get_payment_gateway, get_identity_provider, get_minting_service):
        if getter.cache_info().currsize:
            await getter().aclose()
            getter.cache_clear()
    for getter in (
        get_issuer, get_reconciler, get_executor, get_intake, get_scheduler, get_intent_locks
    ):
        getter.cache_clear()
