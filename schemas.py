"""
Database Schemas

Each user owns exactly one document in the "user" collection. Positions,
alerts, the wallet and preferences are embedded in it:
- User -> "user"
- Position -> embedded in user.portfolio
- Alert -> embedded in user.alerts
- Wallet -> embedded in user.wallet

Request bodies (the *In / *Update models) are validated here before they
reach the ledgers. Wire names are camelCase, attributes are snake_case.
"""

from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class Condition(str, Enum):
    ABOVE = "above"
    BELOW = "below"


class Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)


class Position(Document):
    coin_id: str = Field(..., alias="coinId", description="CoinGecko coin id, e.g., 'bitcoin'")
    symbol: str = Field(..., description="Ticker symbol, e.g., 'btc'")
    name: str = Field(..., description="Display name, e.g., 'Bitcoin'")
    amount: float = Field(..., ge=0, description="Units held")
    buy_price: float = Field(..., ge=0, alias="buyPrice", description="Weighted-average cost per unit")


class Alert(Document):
    id: str = Field(..., description="Alert id, unique within the owning account")
    coin_id: str = Field(..., alias="coinId")
    symbol: str
    target_price: float = Field(..., gt=0, alias="targetPrice")
    condition: Condition
    is_active: bool = Field(True, alias="isActive")
    created_at: datetime = Field(..., alias="createdAt")


class Wallet(Document):
    balance: float = Field(0.0, ge=0)
    currency: Literal["INR", "USD"] = "INR"


class Notifications(Document):
    email: bool = True
    push: bool = True


class Preferences(Document):
    currency: str = Field("usd", description="Display currency used to price the portfolio")
    theme: Literal["light", "dark"] = "light"
    notifications: Notifications = Field(default_factory=Notifications)


class User(Document):
    name: str
    email: str
    api_token: str = Field(..., description="Bearer token presented by the client")
    version: int = Field(0, ge=0, description="Bumped on every write; used for compare-and-swap")
    preferences: Preferences = Field(default_factory=Preferences)
    wallet: Wallet = Field(default_factory=Wallet)
    portfolio: List[Position] = Field(default_factory=list)
    alerts: List[Alert] = Field(default_factory=list)
    processed_payments: List[str] = Field(default_factory=list, description="Payment ids already credited to the wallet")


# --------- Request bodies ---------

class RegisterIn(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3, pattern=r"^[^@\s]+@[^@\s]+$")


class NotificationsUpdate(Document):
    email: Optional[bool] = None
    push: Optional[bool] = None


class PreferencesUpdate(Document):
    currency: Optional[str] = Field(None, min_length=3, max_length=5)
    theme: Optional[Literal["light", "dark"]] = None
    notifications: Optional[NotificationsUpdate] = None


class PositionIn(Document):
    coin_id: str = Field(..., alias="coinId", min_length=1)
    symbol: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0)
    buy_price: float = Field(..., ge=0, alias="buyPrice")


class PositionUpdate(Document):
    amount: Optional[float] = Field(None, ge=0)
    buy_price: Optional[float] = Field(None, ge=0, alias="buyPrice")


class AlertIn(Document):
    coin_id: str = Field(..., alias="coinId", min_length=1)
    symbol: str = Field(..., min_length=1)
    target_price: float = Field(..., gt=0, alias="targetPrice")
    condition: Condition


class AlertUpdate(Document):
    target_price: Optional[float] = Field(None, gt=0, alias="targetPrice")
    condition: Optional[Condition] = None
    is_active: Optional[bool] = Field(None, alias="isActive")


class OrderIn(BaseModel):
    amount: float = Field(..., ge=1)
    currency: Literal["INR", "USD"] = "INR"


class VerifyIn(Document):
    order_id: str = Field(..., alias="orderId", min_length=1)
    payment_id: str = Field(..., alias="paymentId", min_length=1)
    signature: str = Field(..., min_length=1)
    amount: float = Field(..., ge=1)


class WithdrawIn(BaseModel):
    amount: float = Field(..., ge=1)
