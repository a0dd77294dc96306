"""Position ledger and portfolio valuation with weighted-average cost basis."""

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from errors import NotFoundError, ValidationError
from schemas import Position


@dataclass
class Quote:
    price: float
    change_24h: float = 0.0


@dataclass
class PricedPosition:
    """A position merged with its live quote. Never persisted."""
    position: Position
    current_price: float
    price_change_24h: float
    total_value: float
    profit_loss: float
    profit_loss_percentage: float

    def to_dict(self) -> Dict:
        return {
            **self.position.model_dump(by_alias=True),
            "currentPrice": self.current_price,
            "priceChange24h": self.price_change_24h,
            "totalValue": self.total_value,
            "profitLoss": self.profit_loss,
            "profitLossPercentage": self.profit_loss_percentage,
        }


@dataclass
class PortfolioSummary:
    total_value: float = 0.0
    total_profit_loss: float = 0.0
    total_profit_loss_percentage: float = 0.0

    def to_dict(self) -> Dict:
        return {
            "totalValue": self.total_value,
            "totalProfitLoss": self.total_profit_loss,
            "totalProfitLossPercentage": self.total_profit_loss_percentage,
        }


def _percentage(numerator: float, denominator: float) -> float:
    # Zero basis has no meaningful percentage; report 0 instead of inf/nan.
    if denominator == 0:
        return 0.0
    return numerator / denominator * 100.0


def _find(positions: List[Position], coin_id: str) -> Optional[Position]:
    return next((p for p in positions if p.coin_id == coin_id), None)


# --------- Ledger ---------

def add_or_increase_position(
    positions: List[Position],
    coin_id: str,
    symbol: str,
    name: str,
    amount: float,
    buy_price: float,
) -> List[Position]:
    """
    Record an acquisition. A coin already held is merged into one position
    whose buy price becomes the quantity-weighted mean of all acquisitions.
    Returns the new position list; the input list is not modified.
    """
    if amount <= 0:
        raise ValidationError("Amount must be a positive number")
    if buy_price < 0:
        raise ValidationError("Buy price must not be negative")

    existing = _find(positions, coin_id)
    if existing is None:
        created = Position(coin_id=coin_id, symbol=symbol, name=name, amount=amount, buy_price=buy_price)
        return [*positions, created]

    total_amount = existing.amount + amount
    avg_cost = ((existing.buy_price * existing.amount) + (buy_price * amount)) / total_amount
    merged = existing.model_copy(update={"amount": total_amount, "buy_price": avg_cost})
    return [merged if p.coin_id == coin_id else p for p in positions]


def set_position(
    positions: List[Position],
    coin_id: str,
    amount: Optional[float] = None,
    buy_price: Optional[float] = None,
) -> List[Position]:
    """Overwrite amount and/or buy price of a held coin (corrections, not accumulation)."""
    existing = _find(positions, coin_id)
    if existing is None:
        raise NotFoundError("Coin not found in portfolio")
    if amount is not None and amount < 0:
        raise ValidationError("Amount must not be negative")
    if buy_price is not None and buy_price < 0:
        raise ValidationError("Buy price must not be negative")

    changes = {}
    if amount is not None:
        changes["amount"] = amount
    if buy_price is not None:
        changes["buy_price"] = buy_price
    updated = existing.model_copy(update=changes)
    return [updated if p.coin_id == coin_id else p for p in positions]


def remove_position(positions: List[Position], coin_id: str) -> List[Position]:
    return [p for p in positions if p.coin_id != coin_id]


def list_positions(positions: List[Position]) -> List[Position]:
    return list(positions)


# --------- Valuation ---------

def price_position(position: Position, quote: Optional[Quote]) -> PricedPosition:
    current_price = quote.price if quote else 0.0
    change_24h = quote.change_24h if quote else 0.0
    return PricedPosition(
        position=position,
        current_price=current_price,
        price_change_24h=change_24h,
        total_value=position.amount * current_price,
        profit_loss=(current_price - position.buy_price) * position.amount,
        profit_loss_percentage=_percentage(current_price - position.buy_price, position.buy_price),
    )


def summarize(priced: List[PricedPosition]) -> PortfolioSummary:
    total_value = sum(p.total_value for p in priced)
    total_profit_loss = sum(p.profit_loss for p in priced)
    if total_value == 0:
        pct = 0.0
    else:
        pct = _percentage(total_profit_loss, total_value - total_profit_loss)
    return PortfolioSummary(
        total_value=total_value,
        total_profit_loss=total_profit_loss,
        total_profit_loss_percentage=pct,
    )


def value_portfolio(positions: List[Position], prices: Mapping[str, Quote]):
    """
    Price every position and aggregate the totals.

    A coin missing from ``prices`` is valued at 0, so its profit/loss is the
    full cost basis lost. Returns ``(priced_positions, summary)``.
    """
    priced = [price_position(p, prices.get(p.coin_id)) for p in positions]
    return priced, summarize(priced)
