"""Bulk certificate verification.

Fans a batch out to the orchestrator with bounded concurrency. The bound is
held by the coordinator, so concurrent bulk requests share it. Each item is
isolated: an exception on one item marks only that item invalid. Results are
gathered in input order regardless of completion order.
"""

import asyncio
import logging
from typing import Optional, Protocol, Sequence

from app.core.config import BULK_CONCURRENCY, MAX_BULK_VERIFICATION

from .api_models import BulkItemResult, BulkOutcome, Reason
from .exceptions import BulkLimitExceededError
from .verify import VerificationOrchestrator, get_orchestrator

log = logging.getLogger(__name__)


class BulkItem(Protocol):
    """Anything carrying an optional id and an optional code."""
    certificate_id: Optional[str]
    verification_code: Optional[str]


class BulkCoordinator:
    """Runs many verifications with per-item failure isolation."""

    def __init__(
        self,
        orchestrator: VerificationOrchestrator,
        concurrency: int = BULK_CONCURRENCY,
        max_items: int = MAX_BULK_VERIFICATION,
    ):
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self._orchestrator = orchestrator
        self._concurrency = concurrency
        self._max_items = max_items
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._semaphore_loop: Optional[asyncio.AbstractEventLoop] = None

    def _shared_semaphore(self) -> asyncio.Semaphore:
        # One semaphore per event loop; a semaphore cannot be awaited across loops
        loop = asyncio.get_running_loop()
        if self._semaphore is None or self._semaphore_loop is not loop:
            self._semaphore = asyncio.Semaphore(self._concurrency)
            self._semaphore_loop = loop
        return self._semaphore

    async def verify_bulk(self, requests: Sequence[BulkItem]) -> BulkOutcome:
        """Verify every item and aggregate the counts.

        Args:
            requests: Items in caller order; id wins when both are present.

        Returns:
            BulkOutcome whose results match the input order.

        Raises:
            BulkLimitExceededError: More than max_items requested.
        """
        if len(requests) > self._max_items:
            raise BulkLimitExceededError(len(requests), self._max_items)

        semaphore = self._shared_semaphore()

        async def run(index: int, item: BulkItem) -> BulkItemResult:
            async with semaphore:
                return await self._verify_item(index, item)

        results = await asyncio.gather(
            *(run(index, item) for index, item in enumerate(requests))
        )

        valid_count = sum(1 for r in results if r.valid)
        log.info(f"Bulk verification completed: {valid_count}/{len(results)} valid")
        return BulkOutcome(
            total_requested=len(requests),
            valid_certificates=valid_count,
            invalid_certificates=len(results) - valid_count,
            results=list(results),
        )

    async def _verify_item(self, index: int, item: BulkItem) -> BulkItemResult:
        certificate_id = item.certificate_id
        verification_code = item.verification_code
        try:
            if certificate_id:
                outcome = await self._orchestrator.verify_by_id(certificate_id)
            elif verification_code:
                outcome = await self._orchestrator.verify_by_code(verification_code)
            else:
                return BulkItemResult(valid=False, reason=Reason.IDENTIFIER_MISSING)
        except Exception:
            log.exception(f"Bulk verification item {index} failed")
            return BulkItemResult(
                certificate_id=certificate_id,
                verification_code=verification_code,
                valid=False,
                reason=Reason.INTERNAL_ERROR,
            )

        return BulkItemResult(
            certificate_id=certificate_id,
            verification_code=verification_code,
            valid=outcome.valid,
            reason=outcome.reason,
        )


# Module-level singleton; every bulk request draws from its bound
_coordinator: Optional[BulkCoordinator] = None


def get_bulk_coordinator() -> BulkCoordinator:
    """Get or create the bulk coordinator singleton."""
    global _coordinator
    if _coordinator is None:
        _coordinator = BulkCoordinator(get_orchestrator())
    return _coordinator


def reset_bulk_coordinator() -> None:
    global _coordinator
    _coordinator = None
