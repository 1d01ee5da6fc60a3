"""Transaction CRUD scenario

One iteration, strictly in order:

1. Create a transaction (expect 201 with an id)
2. Get it back (expect 200 and the same id)      - only if create returned 201
3. Update it to COMPLETED (expect 200)           - only if create returned 201
4. List the first page (expect 200 with content)

Every call and check is recorded; nothing here raises on a failed call.
"""

import logging
from decimal import Decimal

from txload.api_client import ApiResponse, TransactionApiClient
from txload.metrics.checks import check
from txload.metrics.collector import HTTP_REQ_DURATION, HTTP_REQ_FAILED, MetricsCollector
from txload.models.run_config import RunConfig, Stage
from txload.models.transaction import TransactionPage, TransactionRequest, TransactionResponse
from txload.scheduler.worker_pool import IterationContext

logger = logging.getLogger(__name__)

SAMPLE_TRANSACTION = TransactionRequest(
    amount=Decimal("100.00"),
    currency="USD",
    type="PAYMENT",
    status="PENDING",
    description="Test transaction",
)

UPDATED_TRANSACTION = SAMPLE_TRANSACTION.model_copy(
    update={"status": "COMPLETED", "description": "Updated test transaction"}
)

DEFAULT_STAGES = (
    Stage(duration="2m", target=100),  # ramp up to 100 users
    Stage(duration="5m", target=100),  # stay at 100 users
    Stage(duration="2m", target=0),    # ramp down to 0 users
)

DEFAULT_THRESHOLDS = {
    HTTP_REQ_DURATION: ("p(95)<2000",),  # 95% of requests below 2s
    HTTP_REQ_FAILED: ("rate<0.01",),     # less than 1% of requests fail
}


def default_run_config() -> RunConfig:
    """Ramping profile and thresholds for the transaction load test"""
    return RunConfig(
        stages=DEFAULT_STAGES,
        graceful_ramp_down="30s",
        thresholds=DEFAULT_THRESHOLDS,
        start_vus=0,
        tick_interval=1.0,
        think_time=1.0,
    )


def _transaction_id(response: ApiResponse):
    parsed = response.parse(TransactionResponse)
    return parsed.id if parsed is not None else None


class TransactionScenario:
    """Callable scenario run by every worker, once per iteration"""

    def __init__(self, client: TransactionApiClient, collector: MetricsCollector, page_size: int = 10):
        self.client = client
        self.collector = collector
        self.page_size = page_size

    async def __call__(self, context: IterationContext) -> None:
        logger.debug(f"[SCENARIO] vu-{context.worker_id} #{context.iteration} testing against {self.client.base_url}")

        # 1. Create a new transaction
        create_res = await self.client.create_transaction(SAMPLE_TRANSACTION)
        check(self.collector, create_res, {
            "Create transaction status is 201": lambda r: r.status_code == 201,
            "Create response has transaction ID": lambda r: _transaction_id(r) is not None,
        }, name=create_res.name)

        if create_res.status_code == 201:
            transaction_id = _transaction_id(create_res)
            if transaction_id is None:
                logger.debug("[SCENARIO] Create returned 201 without a usable id, skipping get/update")
            else:
                await self._get_and_update(transaction_id)

        # 4. List transactions
        list_res = await self.client.list_transactions(page=0, size=self.page_size)
        check(self.collector, list_res, {
            "List transactions status is 200": lambda r: r.status_code == 200,
            "List response has content": lambda r: r.parse(TransactionPage) is not None,
        }, name=list_res.name)

    async def _get_and_update(self, transaction_id) -> None:
        # 2. Get the created transaction
        get_res = await self.client.get_transaction(transaction_id)
        check(self.collector, get_res, {
            "Get transaction status is 200": lambda r: r.status_code == 200,
            "Get response matches created transaction": lambda r: _transaction_id(r) == transaction_id,
        }, name=get_res.name)

        # 3. Update the transaction
        update_res = await self.client.update_transaction(transaction_id, UPDATED_TRANSACTION)
        check(self.collector, update_res, {
            "Update transaction status is 200": lambda r: r.status_code == 200,
        }, name=update_res.name)
