"""
Billing period resolution.

A period is the half-open interval [start, end). Subscriptions with a renewal
anchor get periods aligned to that anchor; everyone else gets the calendar
month (UTC) containing ``now``.
"""

import calendar
from datetime import datetime, timezone
from typing import Optional

from packages.billing.models.domain.enums import BillingInterval
from packages.billing.models.domain.subscription import BillingPeriod, Subscription


def _add_months(anchor: datetime, months: int) -> datetime:
    month_index = anchor.month - 1 + months
    year = anchor.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return anchor.replace(year=year, month=month, day=min(anchor.day, last_day))


def shift_by_intervals(anchor: datetime, interval: BillingInterval, k: int) -> datetime:
    """
    Move ``anchor`` by ``k`` whole billing intervals.

    The day of month is clamped to the target month's length, always starting
    from the anchor's own day, so a Jan 31 anchor lands on Feb 28 (29) and
    then Mar 31 rather than drifting to the 28th.
    """
    if interval == BillingInterval.YEARLY:
        return _add_months(anchor, 12 * k)
    return _add_months(anchor, k)


def calendar_month(now: datetime) -> BillingPeriod:
    now = now.astimezone(timezone.utc)
    start = datetime(now.year, now.month, 1, tzinfo=timezone.utc)
    return BillingPeriod(start=start, end=_add_months(start, 1))


def current_period(
    subscription: Optional[Subscription], now: datetime
) -> BillingPeriod:
    if subscription is None or subscription.renew_at is None:
        return calendar_month(now)

    anchor = subscription.renew_at
    interval = subscription.billing_interval
    step = 12 if interval == BillingInterval.YEARLY else 1

    months_apart = (now.year - anchor.year) * 12 + (now.month - anchor.month)
    k = months_apart // step

    while shift_by_intervals(anchor, interval, k) > now:
        k -= 1
    while shift_by_intervals(anchor, interval, k + 1) <= now:
        k += 1

    return BillingPeriod(
        start=shift_by_intervals(anchor, interval, k),
        end=shift_by_intervals(anchor, interval, k + 1),
    )
