"""
Subscription state machine driven by billing provider events.

Events for one provider subscription are applied one at a time under a Redis
lock, each inside a single database transaction. Every handler overwrites
state from the event rather than incrementing it, and the user's cached plan
is always recomputed from their subscriptions, so replaying an event (or a
whole sequence) converges on the same result.
"""

from datetime import datetime
from typing import Awaitable, Callable, Optional

from common.core.config import settings
from common.core.exceptions import TransientStoreError, UnhandledBillingEventError
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.base import utcnow
from common.db.scoped import transaction
from common.providers.locking.factory import get_lock_provider
from common.providers.locking.interface import DistributedLockInterface
from packages.billing.catalog import PlanCatalog, get_plan_catalog
from packages.billing.models.domain.enums import (
    BillingEventName,
    BillingInterval,
    PaymentProvider,
    PlanId,
    SubscriptionStatus,
)
from packages.billing.models.domain.lemonsqueezy_webhooks import (
    BillingEventPayload,
    LemonSqueezySubscriptionStatus,
)
from packages.billing.models.domain.subscription import (
    BillingEventOutcome,
    Subscription,
    SubscriptionCreateModel,
    SubscriptionUpdateModel,
)
from packages.billing.repositories.subscription_repository import SubscriptionRepository
from packages.users.repositories.user_repository import UserRepository
from packages.users.services.user_service import UserService

logger = get_logger(__name__)

PROVIDER_STATUS_MAP: dict[str, SubscriptionStatus] = {
    LemonSqueezySubscriptionStatus.ACTIVE.value: SubscriptionStatus.ACTIVE,
    LemonSqueezySubscriptionStatus.ON_TRIAL.value: SubscriptionStatus.TRIALING,
    LemonSqueezySubscriptionStatus.PAST_DUE.value: SubscriptionStatus.PAST_DUE,
    LemonSqueezySubscriptionStatus.UNPAID.value: SubscriptionStatus.PAST_DUE,
    LemonSqueezySubscriptionStatus.CANCELLED.value: SubscriptionStatus.CANCELED,
    LemonSqueezySubscriptionStatus.EXPIRED.value: SubscriptionStatus.EXPIRED,
    LemonSqueezySubscriptionStatus.PAUSED.value: SubscriptionStatus.PAUSED,
}

FALLBACK_VARIANT = (PlanId.PLUS, BillingInterval.MONTHLY)


def lock_key_for(provider_subscription_id: str) -> str:
    return f"billing_event:subscription:{provider_subscription_id}"


def map_provider_status(status: Optional[str]) -> SubscriptionStatus:
    """Provider status to ours. Missing or unrecognised values map to active."""
    if status is None:
        return SubscriptionStatus.ACTIVE
    mapped = PROVIDER_STATUS_MAP.get(status)
    if mapped is None:
        logger.warning(
            f"Unknown provider subscription status '{status}', treating as active",
            extra={"provider_status": status},
        )
        return SubscriptionStatus.ACTIVE
    return mapped


def build_variant_map(
    variant_ids: Optional[dict[str, Optional[str]]] = None,
) -> dict[str, tuple[PlanId, BillingInterval]]:
    """Variant id to (plan, interval), from ``<plan>_<interval>`` keyed settings."""
    variant_ids = settings.variant_ids if variant_ids is None else variant_ids
    mapping = {}
    for key, variant_id in variant_ids.items():
        if not variant_id:
            continue
        plan, interval = key.split("_", 1)
        mapping[str(variant_id)] = (PlanId(plan), BillingInterval(interval))
    return mapping


class SubscriptionStateMachine:
    def __init__(
        self,
        catalog: Optional[PlanCatalog] = None,
        lock_provider: Optional[DistributedLockInterface] = None,
        variant_map: Optional[dict[str, tuple[PlanId, BillingInterval]]] = None,
    ):
        self.catalog = catalog or get_plan_catalog()
        self._lock_provider = lock_provider
        self.variant_map = build_variant_map() if variant_map is None else variant_map
        self.subscription_repo = SubscriptionRepository()
        self.user_repo = UserRepository()
        self.user_service = UserService()

        self._handlers: dict[
            str,
            Callable[
                [str, str, BillingEventPayload, datetime],
                Awaitable[BillingEventOutcome],
            ],
        ] = {
            BillingEventName.SUBSCRIPTION_CREATED.value: self._on_created,
            BillingEventName.SUBSCRIPTION_UPDATED.value: self._on_updated,
            BillingEventName.SUBSCRIPTION_CANCELLED.value: self._on_cancelled,
            BillingEventName.SUBSCRIPTION_EXPIRED.value: self._on_expired,
            BillingEventName.SUBSCRIPTION_RESUMED.value: self._on_resumed,
            BillingEventName.SUBSCRIPTION_PAUSED.value: self._on_paused,
            BillingEventName.SUBSCRIPTION_UNPAUSED.value: self._on_unpaused,
            BillingEventName.SUBSCRIPTION_PAYMENT_SUCCESS.value: self._on_payment_success,
            BillingEventName.SUBSCRIPTION_PAYMENT_FAILED.value: self._on_payment_failed,
        }

    @property
    def lock_provider(self) -> DistributedLockInterface:
        if self._lock_provider is None:
            self._lock_provider = get_lock_provider()
        return self._lock_provider

    def _handler_for(self, event_name: str):
        handler = self._handlers.get(event_name)
        if handler is None:
            raise UnhandledBillingEventError(event_name)
        return handler

    def resolve_variant(
        self, variant_id
    ) -> Optional[tuple[PlanId, BillingInterval]]:
        if variant_id is None:
            return None
        return self.variant_map.get(str(variant_id))

    @trace_span
    async def apply_billing_event(
        self,
        event_name: str,
        provider_subscription_id: str,
        payload: BillingEventPayload,
        now: Optional[datetime] = None,
    ) -> BillingEventOutcome:
        """
        Apply one provider event.

        Unknown event names and unknown subscriptions come back as an ignored
        outcome. Raises TransientStoreError when the lock or the store is
        unavailable, and NotFoundError when a created event names a user we
        do not have.
        """
        now = now or utcnow()

        try:
            handler = self._handler_for(event_name)
        except UnhandledBillingEventError as e:
            logger.info(str(e), extra={"event_name": event_name})
            return BillingEventOutcome.ignored(
                event_name, provider_subscription_id, "unhandled event"
            )

        lock_key = lock_key_for(provider_subscription_id)
        token = await self.lock_provider.acquire_lock_with_retry(
            lock_key,
            lock_ttl_seconds=settings.billing_event_lock_ttl_seconds,
            acquire_timeout_seconds=settings.billing_event_lock_acquire_timeout_seconds,
        )
        if not token:
            raise TransientStoreError(
                f"Timed out waiting for billing event lock on {provider_subscription_id}"
            )

        try:
            async with transaction():
                outcome = await handler(
                    event_name, provider_subscription_id, payload, now
                )
        finally:
            await self.lock_provider.release_lock(lock_key, token)

        logger.info(
            f"Billing event {event_name} for {provider_subscription_id}: {outcome.status.value}",
            extra={
                "event_name": event_name,
                "provider_subscription_id": provider_subscription_id,
                "outcome": outcome.status.value,
                "subscription_status": (
                    outcome.subscription_status.value
                    if outcome.subscription_status
                    else None
                ),
            },
        )
        return outcome

    async def _sync_user_plan(self, user_id: int) -> PlanId:
        """Set the user's cached plan from their newest current subscription, else free."""
        current = await self.subscription_repo.get_current_for_user(user_id)
        plan_id = current.plan_id if current else PlanId.FREE
        self.catalog.plan_for(plan_id)
        await self.user_repo.set_current_plan(user_id, plan_id)
        return plan_id

    async def _existing_or_none(
        self, event_name: str, provider_subscription_id: str
    ) -> Optional[Subscription]:
        subscription = await self.subscription_repo.get_by_provider_id(
            provider_subscription_id
        )
        if subscription is None:
            logger.warning(
                f"Ignoring {event_name}: subscription {provider_subscription_id} not found",
                extra={
                    "event_name": event_name,
                    "provider_subscription_id": provider_subscription_id,
                },
            )
        return subscription

    async def _update_and_sync(
        self, event_name: str, subscription: Subscription, update: SubscriptionUpdateModel
    ) -> BillingEventOutcome:
        updated = await self.subscription_repo.update(subscription.id, update)
        await self._sync_user_plan(updated.user_id)
        return BillingEventOutcome.applied(event_name, updated)

    async def _on_created(
        self,
        event_name: str,
        provider_subscription_id: str,
        payload: BillingEventPayload,
        now: datetime,
    ) -> BillingEventOutcome:
        user_id = payload.custom_data.user_id
        if user_id is None:
            logger.warning(
                f"Ignoring {event_name} for {provider_subscription_id}: no user_id in custom data",
                extra={"provider_subscription_id": provider_subscription_id},
            )
            return BillingEventOutcome.ignored(
                event_name, provider_subscription_id, "missing user_id"
            )

        await self.user_service.get_user_or_raise(user_id)

        attributes = payload.attributes
        resolved = self.resolve_variant(attributes.variant_id)
        if resolved is None:
            logger.warning(
                f"Unknown variant {attributes.variant_id}, defaulting to plus monthly",
                extra={"variant_id": attributes.variant_id},
            )
            resolved = FALLBACK_VARIANT
        plan_id, interval = resolved

        subscription = await self.subscription_repo.upsert_by_provider_id(
            SubscriptionCreateModel(
                user_id=user_id,
                provider=PaymentProvider.LEMONSQUEEZY,
                provider_subscription_id=provider_subscription_id,
                plan_id=plan_id,
                status=map_provider_status(attributes.status),
                billing_interval=interval,
                renew_at=attributes.renews_at,
                cancel_at=attributes.ends_at,
            )
        )

        await self._sync_user_plan(user_id)
        if attributes.customer_id is not None:
            await self.user_repo.set_billing_customer_id(
                user_id, str(attributes.customer_id)
            )
        return BillingEventOutcome.applied(event_name, subscription)

    async def _on_updated(
        self,
        event_name: str,
        provider_subscription_id: str,
        payload: BillingEventPayload,
        now: datetime,
    ) -> BillingEventOutcome:
        subscription = await self._existing_or_none(event_name, provider_subscription_id)
        if subscription is None:
            return BillingEventOutcome.ignored(
                event_name, provider_subscription_id, "unknown subscription"
            )

        attributes = payload.attributes
        update = SubscriptionUpdateModel(
            status=map_provider_status(attributes.status),
            renew_at=attributes.renews_at,
            cancel_at=attributes.ends_at,
        )

        resolved = self.resolve_variant(attributes.variant_id)
        if resolved is not None and resolved[0] != subscription.plan_id:
            plan_id, interval = resolved
            logger.info(
                f"Subscription {subscription.id} changed plan {subscription.plan_id.value} -> {plan_id.value}",
                extra={"subscription_id": subscription.id},
            )
            update.plan_id = plan_id.value
            update.billing_interval = interval.value

        return await self._update_and_sync(event_name, subscription, update)

    async def _on_cancelled(
        self,
        event_name: str,
        provider_subscription_id: str,
        payload: BillingEventPayload,
        now: datetime,
    ) -> BillingEventOutcome:
        subscription = await self._existing_or_none(event_name, provider_subscription_id)
        if subscription is None:
            return BillingEventOutcome.ignored(
                event_name, provider_subscription_id, "unknown subscription"
            )

        return await self._update_and_sync(
            event_name,
            subscription,
            SubscriptionUpdateModel(
                status=SubscriptionStatus.CANCELED,
                cancel_at=payload.attributes.ends_at or now,
            ),
        )

    async def _on_expired(
        self,
        event_name: str,
        provider_subscription_id: str,
        payload: BillingEventPayload,
        now: datetime,
    ) -> BillingEventOutcome:
        subscription = await self._existing_or_none(event_name, provider_subscription_id)
        if subscription is None:
            return BillingEventOutcome.ignored(
                event_name, provider_subscription_id, "unknown subscription"
            )

        return await self._update_and_sync(
            event_name,
            subscription,
            SubscriptionUpdateModel(status=SubscriptionStatus.EXPIRED),
        )

    async def _on_resumed(
        self,
        event_name: str,
        provider_subscription_id: str,
        payload: BillingEventPayload,
        now: datetime,
    ) -> BillingEventOutcome:
        subscription = await self._existing_or_none(event_name, provider_subscription_id)
        if subscription is None:
            return BillingEventOutcome.ignored(
                event_name, provider_subscription_id, "unknown subscription"
            )

        return await self._update_and_sync(
            event_name,
            subscription,
            SubscriptionUpdateModel(status=SubscriptionStatus.ACTIVE, cancel_at=None),
        )

    async def _on_paused(
        self,
        event_name: str,
        provider_subscription_id: str,
        payload: BillingEventPayload,
        now: datetime,
    ) -> BillingEventOutcome:
        subscription = await self._existing_or_none(event_name, provider_subscription_id)
        if subscription is None:
            return BillingEventOutcome.ignored(
                event_name, provider_subscription_id, "unknown subscription"
            )

        return await self._update_and_sync(
            event_name,
            subscription,
            SubscriptionUpdateModel(status=SubscriptionStatus.PAUSED),
        )

    async def _on_unpaused(
        self,
        event_name: str,
        provider_subscription_id: str,
        payload: BillingEventPayload,
        now: datetime,
    ) -> BillingEventOutcome:
        subscription = await self._existing_or_none(event_name, provider_subscription_id)
        if subscription is None:
            return BillingEventOutcome.ignored(
                event_name, provider_subscription_id, "unknown subscription"
            )

        return await self._update_and_sync(
            event_name,
            subscription,
            SubscriptionUpdateModel(status=SubscriptionStatus.ACTIVE),
        )

    async def _on_payment_success(
        self,
        event_name: str,
        provider_subscription_id: str,
        payload: BillingEventPayload,
        now: datetime,
    ) -> BillingEventOutcome:
        subscription = await self._existing_or_none(event_name, provider_subscription_id)
        if subscription is None:
            return BillingEventOutcome.ignored(
                event_name, provider_subscription_id, "unknown subscription"
            )

        update = SubscriptionUpdateModel()
        if payload.attributes.renews_at is not None:
            update.renew_at = payload.attributes.renews_at
        if subscription.status == SubscriptionStatus.PAST_DUE:
            update.status = SubscriptionStatus.ACTIVE.value

        return await self._update_and_sync(event_name, subscription, update)

    async def _on_payment_failed(
        self,
        event_name: str,
        provider_subscription_id: str,
        payload: BillingEventPayload,
        now: datetime,
    ) -> BillingEventOutcome:
        subscription = await self._existing_or_none(event_name, provider_subscription_id)
        if subscription is None:
            return BillingEventOutcome.ignored(
                event_name, provider_subscription_id, "unknown subscription"
            )

        return await self._update_and_sync(
            event_name,
            subscription,
            SubscriptionUpdateModel(status=SubscriptionStatus.PAST_DUE),
        )
