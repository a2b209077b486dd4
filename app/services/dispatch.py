"""
Fan-out of one notification to many push endpoints.
"""

import asyncio
import dataclasses
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from app.errors import PermanentInvalidEndpoint, ProviderUnavailable, TransientDeliveryFailure
from app.services.providers import DeliveryProvider, NotificationPayload
from app.services.report import DeliveryOutcome, DeliveryStatus, DispatchReport, ResultAggregator
from app.services.token_store import RegistrationStore

logger = logging.getLogger(__name__)

PROVIDER_UNAVAILABLE_MESSAGE = "Push provider unavailable: no notifications were sent"
NO_RECIPIENTS_MESSAGE = "No FCM tokens found for the specified users"
WEBPUSH_NO_RECIPIENTS_MESSAGE = "No push subscriptions found for the specified users"


@dataclass(frozen=True)
class _Target:
    registration_id: str
    owner_id: str
    owner_email: str | None
    address: Any

    @classmethod
    def from_registration(cls, registration) -> "_Target":
        owner = registration.owner
        return cls(
            registration_id=registration.id,
            owner_id=registration.user_id,
            owner_email=owner.email if owner is not None else None,
            address=registration.delivery_address,
        )


class DispatchEngine:
    """Sends a payload to every endpoint of the target accounts.

    Each endpoint gets exactly one attempt. Endpoints the provider reports
    as permanently invalid are deleted once delivery has finished; other
    failures leave the endpoint in place for the next dispatch.
    """

    def __init__(
        self,
        store: RegistrationStore,
        provider: DeliveryProvider,
        max_concurrency: int = 10,
        timeout: float | None = None,
        no_recipients_message: str = NO_RECIPIENTS_MESSAGE,
        channel: str = "fcm",
    ):
        self.store = store
        self.provider = provider
        self.max_concurrency = max(1, max_concurrency)
        self.timeout = timeout
        self.no_recipients_message = no_recipients_message
        self.event_prefix = channel

    async def dispatch(
        self,
        target_account_ids: Sequence[str] | None,
        payload: NotificationPayload,
        timeout: float | None = None,
    ) -> DispatchReport:
        if not self.provider.available:
            logger.warning(
                "Push provider unavailable, skipping dispatch",
                extra={"event": f"{self.event_prefix}_dispatch_skipped", "reason": "provider_unavailable"},
            )
            return DispatchReport.empty(PROVIDER_UNAVAILABLE_MESSAGE)

        broadcast = not target_account_ids
        registrations = await self.store.list_by_owners(None if broadcast else target_account_ids)
        if not registrations:
            logger.info(
                "No recipients for dispatch",
                extra={"event": f"{self.event_prefix}_dispatch_skipped", "reason": "no_recipients", "broadcast": broadcast},
            )
            return DispatchReport.empty(self.no_recipients_message)

        targets = [_Target.from_registration(r) for r in registrations]
        logger.info(
            "Dispatching notification",
            extra={"event": f"{self.event_prefix}_dispatch_started", "recipients": len(targets), "broadcast": broadcast},
        )

        outcomes, skipped = await self._deliver_all(
            targets, payload, timeout if timeout is not None else self.timeout
        )
        outcomes = await self._prune(outcomes)

        aggregator = ResultAggregator(outcomes)
        aggregator.add_skipped(skipped)
        report = aggregator.report()
        logger.info(
            report.message,
            extra={
                "event": f"{self.event_prefix}_dispatch_finished",
                "success": report.success_count,
                "failure": report.failure_count,
                "removed": report.removed_count,
                "skipped": report.skipped_count,
            },
        )
        return report

    async def _deliver_all(
        self,
        targets: list[_Target],
        payload: NotificationPayload,
        timeout: float | None,
    ) -> tuple[list[DeliveryOutcome], int]:
        """Run attempts concurrently; returns completed outcomes and the skipped count."""
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(target: _Target) -> DeliveryOutcome:
            async with semaphore:
                return await self._attempt(target, payload)

        tasks = [asyncio.create_task(bounded(t)) for t in targets]
        try:
            done, pending = await asyncio.wait(tasks, timeout=timeout)
        finally:
            # Also reached when the caller is cancelled mid-dispatch
            unfinished = [t for t in tasks if not t.done()]
            for task in unfinished:
                task.cancel()
            if unfinished:
                await asyncio.gather(*unfinished, return_exceptions=True)

        if pending:
            logger.warning(
                "Dispatch timed out before every attempt completed",
                extra={"event": f"{self.event_prefix}_dispatch_timeout", "skipped": len(pending), "timeout": timeout},
            )
        return [task.result() for task in done], len(pending)

    async def _attempt(self, target: _Target, payload: NotificationPayload) -> DeliveryOutcome:
        status = DeliveryStatus.FAILED
        error_code = None
        try:
            await self.provider.send(target.address, payload)
            status = DeliveryStatus.DELIVERED
        except PermanentInvalidEndpoint as exc:
            status = DeliveryStatus.INVALID
            error_code = exc.code
        except TransientDeliveryFailure as exc:
            error_code = exc.code
        except ProviderUnavailable:
            error_code = "provider-unavailable"
        except Exception:
            logger.exception(
                "Unexpected error delivering notification",
                extra={"event": f"{self.event_prefix}_delivery_error", "registration_id": target.registration_id},
            )
            error_code = "unexpected"

        logger.info(
            "Push delivery %s",
            status.value,
            extra={
                "event": f"{self.event_prefix}_delivery",
                "registration_id": target.registration_id,
                "owner_id": target.owner_id,
                "owner_email": target.owner_email,
                "outcome": status.value,
                "error_code": error_code,
            },
        )
        return DeliveryOutcome(
            registration_id=target.registration_id,
            owner_id=target.owner_id,
            status=status,
            error_code=error_code,
        )

    async def _prune(self, outcomes: list[DeliveryOutcome]) -> list[DeliveryOutcome]:
        """Delete registrations whose endpoint is permanently invalid."""
        pruned = []
        removed_any = False
        for outcome in outcomes:
            if outcome.status is DeliveryStatus.INVALID:
                removed = await self.store.delete_by_id(outcome.registration_id)
                removed_any = removed_any or removed
                outcome = dataclasses.replace(outcome, removed=removed)
                logger.info(
                    "Invalid endpoint removed" if removed else "Invalid endpoint already gone",
                    extra={
                        "event": f"{self.event_prefix}_endpoint_pruned",
                        "registration_id": outcome.registration_id,
                        "owner_id": outcome.owner_id,
                        "removed": removed,
                    },
                )
            pruned.append(outcome)

        if removed_any:
            await self.store.commit()
        return pruned
