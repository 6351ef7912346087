"""Payment Request Issuer — prices a purchase, opens a gateway payment
request and persists the MintIntent in 'pending_payment'.

All-or-nothing from the caller's view: nothing is written unless the
gateway call succeeded, and a failed insert is rolled back.
"""
import logging
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.cm_common.amounts import quantize_amount
from src.cm_common.datetime_utils import ensure_utc, utc_now
from src.cm_common.enums import IntentStatus
from src.cm_common.errors import InvalidMintRequestError, PoolNotFoundError
from src.cm_common.id_generator import generate_intent_id
from src.cm_mint.application.schemas import IssueRequest
from src.cm_mint.domain.models import MintIntent, Requester, WeightedPool
from src.cm_mint.domain.repository import MintIntentRepositoryProtocol, PoolCatalogProtocol
from src.cm_payment.domain.models import PaymentDestinationConfig
from src.cm_payment.domain.repository import PaymentGatewayProtocol
from src.cm_payment.domain.splitter import allocate

logger = logging.getLogger(__name__)

WEBHOOK_PATH = "/api/v1/webhooks/payment"
REDIRECT_PATH = "/payment-complete"


class PaymentRequestIssuer:
    def __init__(
        self,
        gateway: PaymentGatewayProtocol,
        intents: MintIntentRepositoryProtocol,
        catalog: PoolCatalogProtocol,
        destinations: PaymentDestinationConfig,
        *,
        unit_price: Decimal | None = None,
        max_quantity: int | None = None,
        default_pool: str | None = None,
        public_base_url: str | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._gateway = gateway
        self._intents = intents
        self._catalog = catalog
        self._destinations = destinations
        self._unit_price = unit_price or settings.MINT_UNIT_PRICE
        self._max_quantity = max_quantity or settings.MINT_MAX_QUANTITY
        self._default_pool = default_pool or settings.DEFAULT_POOL
        self._base_url = (public_base_url or settings.PUBLIC_BASE_URL).rstrip("/")
        self._clock = clock

    def _resolve_pool(self, requested: str | None) -> WeightedPool:
        name = requested or self._default_pool
        pool = self._catalog.get_pool(name)
        if pool is None and name != self._default_pool:
            logger.info("Pool '%s' not found, falling back to '%s'", name, self._default_pool)
            pool = self._catalog.get_pool(self._default_pool)
        if pool is None:
            raise PoolNotFoundError(name)
        return pool

    async def issue(
        self, db: AsyncSession, requester: Requester, req: IssueRequest
    ) -> MintIntent:
        if req.quantity > self._max_quantity:
            raise InvalidMintRequestError(f"quantity must be at most {self._max_quantity}")
        pool = self._resolve_pool(req.pool)
        activation_time = ensure_utc(req.activation_time) if req.activation_time else None

        unit_price = pool.unit_price or self._unit_price
        amount = quantize_amount(unit_price * req.quantity)
        receivers = allocate(self._destinations, amount)

        intent_id = generate_intent_id()
        collection_id = req.collection_id or pool.collection_id
        # Self-describing: enough to fulfil from the gateway record alone.
        metadata = {
            "type": "mint_payment",
            "intent_id": intent_id,
            "pool": pool.name,
            "quantity": req.quantity,
            "collection_id": collection_id,
            "account_id": requester.account_id,
            "handle": requester.handle,
            "activation_time": activation_time.isoformat() if activation_time else None,
        }
        payment_request = await self._gateway.create_payment_request(
            product_name=f"{settings.APP_NAME} Mint",
            product_description=f"Mint {req.quantity} item(s) from pool {pool.name}",
            receivers=receivers,
            currency=self._destinations.currency,
            amount=amount,
            webhook_url=f"{self._base_url}{WEBHOOK_PATH}",
            redirect_url=f"{self._base_url}{REDIRECT_PATH}",
            metadata=metadata,
        )

        now = self._clock()
        intent = MintIntent(
            id=intent_id,
            external_request_id=payment_request.external_request_id,
            external_request_url=payment_request.external_request_url,
            account_id=requester.account_id,
            handle=requester.handle,
            pool=pool.name,
            collection_id=collection_id,
            quantity=req.quantity,
            amount_requested=amount,
            currency=self._destinations.currency,
            status=IntentStatus.PENDING_PAYMENT.value,
            activation_time=activation_time,
            transaction_id=None,
            paid_at=None,
            fulfillment_attempts=0,
            last_error=None,
            created_at=now,
            updated_at=now,
        )
        try:
            await self._intents.insert(db, intent)
            await db.commit()
        except Exception:
            await db.rollback()
            logger.error(
                "Intent insert failed; payment request %s is orphaned",
                payment_request.external_request_id,
            )
            raise
        logger.info(
            "Intent %s issued: request=%s pool=%s qty=%d amount=%s",
            intent.id, intent.external_request_id, pool.name, req.quantity, amount,
        )
        return intent
