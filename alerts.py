"""Price alert registry and trigger evaluation."""

from datetime import datetime, timezone
from typing import List, Mapping, Optional
from uuid import uuid4

from errors import ConflictError, NotFoundError, ValidationError
from portfolio import Quote
from schemas import Alert, Condition


def create_alert(
    alerts: List[Alert],
    coin_id: str,
    symbol: str,
    target_price: float,
    condition: Condition,
    now: Optional[datetime] = None,
) -> List[Alert]:
    if target_price <= 0:
        raise ValidationError("Target price must be a positive number")
    condition = Condition(condition)
    duplicate = any(
        a.is_active and a.coin_id == coin_id and a.target_price == target_price and a.condition == condition
        for a in alerts
    )
    if duplicate:
        raise ConflictError("Alert already exists for this price target")

    alert = Alert(
        id=uuid4().hex,
        coin_id=coin_id,
        symbol=symbol,
        target_price=target_price,
        condition=condition,
        is_active=True,
        created_at=now or datetime.now(timezone.utc),
    )
    return [*alerts, alert]


def update_alert(
    alerts: List[Alert],
    alert_id: str,
    target_price: Optional[float] = None,
    condition: Optional[Condition] = None,
    is_active: Optional[bool] = None,
) -> List[Alert]:
    """Apply only the supplied fields to one alert."""
    if not any(a.id == alert_id for a in alerts):
        raise NotFoundError("Alert not found")
    if target_price is not None and target_price <= 0:
        raise ValidationError("Target price must be a positive number")

    changes = {}
    if target_price is not None:
        changes["target_price"] = target_price
    if condition is not None:
        changes["condition"] = Condition(condition).value
    if is_active is not None:
        changes["is_active"] = is_active
    return [a.model_copy(update=changes) if a.id == alert_id else a for a in alerts]


def delete_alert(alerts: List[Alert], alert_id: str) -> List[Alert]:
    remaining = [a for a in alerts if a.id != alert_id]
    if len(remaining) == len(alerts):
        raise NotFoundError("Alert not found")
    return remaining


def evaluate(alert: Alert, current_price: float) -> bool:
    """
    True when an active alert's target has been reached. Equality counts in
    both directions; inactive alerts never trigger.
    """
    if not alert.is_active:
        return False
    if alert.condition == Condition.ABOVE:
        return current_price >= alert.target_price
    return current_price <= alert.target_price


def triggered_alerts(alerts: List[Alert], prices: Mapping[str, Quote]) -> List[Alert]:
    """
    Active alerts whose coin currently sits past its target.

    Evaluation is read-only: a triggered alert stays active and is reported
    again on every call until the user toggles or deletes it. Coins without a
    quote are skipped rather than treated as price 0.
    """
    hits = []
    for alert in alerts:
        if not alert.is_active:
            continue
        quote = prices.get(alert.coin_id)
        if quote is None:
            continue
        if evaluate(alert, quote.price):
            hits.append(alert)
    return hits
