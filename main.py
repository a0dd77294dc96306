import logging
import os
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware

import accounts
import alerts as alert_registry
import payments
import portfolio as ledger
import wallet as wallet_ledger
from accounts import current_user_id
from config import Settings
from context import AppContext, get_context
from errors import UpstreamUnavailable, ValidationError, register_error_handlers
from schemas import (
    AlertIn,
    AlertUpdate,
    OrderIn,
    PositionIn,
    PositionUpdate,
    PreferencesUpdate,
    RegisterIn,
    VerifyIn,
    WithdrawIn,
)

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    settings = context.settings if context else Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "context", None) is None:
            app.state.context = AppContext.from_settings(settings)
        app.state.context.db.ensure_indexes()
        logger.info("Crypto Tracker API started (%s)", settings.environment)
        yield
        app.state.context.close()

    app = FastAPI(title="Crypto Tracker API", version="1.0.0", lifespan=lifespan)
    app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.client_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)
    register_routes(app)
    return app


def register_routes(app: FastAPI) -> None:

    # --------- Health ---------

    @app.get("/api/health")
    def health(ctx: AppContext = Depends(get_context)):
        return {
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "environment": ctx.settings.environment,
            "message": "Crypto Tracker API is running!",
        }

    # --------- Accounts ---------

    @app.post("/api/auth/register")
    def register(body: RegisterIn, ctx: AppContext = Depends(get_context)):
        return accounts.register(ctx, body.name, body.email)

    @app.get("/api/auth/me")
    def me(user_id: str = Depends(current_user_id), ctx: AppContext = Depends(get_context)):
        return accounts.profile(user_id, ctx.db.find_user(user_id))

    @app.put("/api/auth/preferences")
    def update_preferences(body: PreferencesUpdate, user_id: str = Depends(current_user_id),
                           ctx: AppContext = Depends(get_context)):
        user = ctx.db.mutate_user(
            user_id,
            lambda u: u.model_copy(update={"preferences": accounts.apply_preferences(u.preferences, body)}),
        )
        return {"message": "Preferences updated successfully", "preferences": user.preferences.model_dump()}

    # --------- Market data ---------

    @app.get("/api/crypto/prices")
    def crypto_prices(
        vs_currency: str = "usd",
        order: str = "market_cap_desc",
        per_page: int = Query(100, ge=1, le=250),
        page: int = Query(1, ge=1),
        ctx: AppContext = Depends(get_context),
    ):
        return ctx.prices.markets(vs_currency, order, per_page, page)

    @app.get("/api/crypto/coin/{coin_id}")
    def crypto_coin(coin_id: str, vs_currency: str = "usd", ctx: AppContext = Depends(get_context)):
        return ctx.prices.coin(coin_id, vs_currency)

    @app.get("/api/crypto/search")
    def crypto_search(query: Optional[str] = None, ctx: AppContext = Depends(get_context)):
        if not query or not query.strip():
            raise ValidationError("Search query is required")
        return ctx.prices.search(query.strip())

    @app.get("/api/crypto/trending")
    def crypto_trending(ctx: AppContext = Depends(get_context)):
        return ctx.prices.trending()

    @app.get("/api/crypto/global")
    def crypto_global(ctx: AppContext = Depends(get_context)):
        return ctx.prices.global_stats()

    @app.get("/api/crypto/overview")
    def crypto_overview(vs_currency: str = "usd", top: int = Query(10, ge=1, le=100),
                        ctx: AppContext = Depends(get_context)):
        return ctx.prices.market_overview(vs_currency, top)

    # --------- Portfolio ---------

    @app.get("/api/portfolio")
    def get_portfolio(user_id: str = Depends(current_user_id), ctx: AppContext = Depends(get_context)):
        user = ctx.db.find_user(user_id)
        positions = ledger.list_positions(user.portfolio)
        quotes = ctx.prices.quotes([p.coin_id for p in positions], user.preferences.currency) if positions else {}
        priced, summary = ledger.value_portfolio(positions, quotes)
        return {"portfolio": [p.to_dict() for p in priced], "summary": summary.to_dict()}

    @app.post("/api/portfolio")
    def add_position(body: PositionIn, user_id: str = Depends(current_user_id),
                     ctx: AppContext = Depends(get_context)):
        ctx.db.mutate_user(user_id, lambda u: u.model_copy(update={
            "portfolio": ledger.add_or_increase_position(
                u.portfolio, body.coin_id, body.symbol, body.name, body.amount, body.buy_price),
        }))
        return {"message": "Coin added to portfolio successfully"}

    @app.put("/api/portfolio/{coin_id}")
    def update_position(coin_id: str, body: PositionUpdate, user_id: str = Depends(current_user_id),
                        ctx: AppContext = Depends(get_context)):
        ctx.db.mutate_user(user_id, lambda u: u.model_copy(update={
            "portfolio": ledger.set_position(u.portfolio, coin_id, body.amount, body.buy_price),
        }))
        return {"message": "Portfolio updated successfully"}

    @app.delete("/api/portfolio/{coin_id}")
    def remove_position(coin_id: str, user_id: str = Depends(current_user_id),
                        ctx: AppContext = Depends(get_context)):
        ctx.db.mutate_user(user_id, lambda u: u.model_copy(update={
            "portfolio": ledger.remove_position(u.portfolio, coin_id),
        }))
        return {"message": "Coin removed from portfolio successfully"}

    # --------- Alerts ---------

    @app.get("/api/alerts")
    def list_alerts(user_id: str = Depends(current_user_id), ctx: AppContext = Depends(get_context)):
        return [a.model_dump(by_alias=True) for a in ctx.db.find_user(user_id).alerts]

    @app.get("/api/alerts/triggered")
    def list_triggered_alerts(user_id: str = Depends(current_user_id), ctx: AppContext = Depends(get_context)):
        user = ctx.db.find_user(user_id)
        active = [a for a in user.alerts if a.is_active]
        quotes = ctx.prices.quotes([a.coin_id for a in active], user.preferences.currency) if active else {}
        hits = alert_registry.triggered_alerts(active, quotes)
        return [{**a.model_dump(by_alias=True), "currentPrice": quotes[a.coin_id].price} for a in hits]

    @app.post("/api/alerts")
    def create_alert(body: AlertIn, user_id: str = Depends(current_user_id),
                     ctx: AppContext = Depends(get_context)):
        ctx.db.mutate_user(user_id, lambda u: u.model_copy(update={
            "alerts": alert_registry.create_alert(
                u.alerts, body.coin_id, body.symbol, body.target_price, body.condition),
        }))
        return {"message": "Alert created successfully"}

    @app.put("/api/alerts/{alert_id}")
    def update_alert(alert_id: str, body: AlertUpdate, user_id: str = Depends(current_user_id),
                     ctx: AppContext = Depends(get_context)):
        ctx.db.mutate_user(user_id, lambda u: u.model_copy(update={
            "alerts": alert_registry.update_alert(
                u.alerts, alert_id, body.target_price, body.condition, body.is_active),
        }))
        return {"message": "Alert updated successfully"}

    @app.delete("/api/alerts/{alert_id}")
    def delete_alert(alert_id: str, user_id: str = Depends(current_user_id),
                     ctx: AppContext = Depends(get_context)):
        ctx.db.mutate_user(user_id, lambda u: u.model_copy(update={
            "alerts": alert_registry.delete_alert(u.alerts, alert_id),
        }))
        return {"message": "Alert deleted successfully"}

    # --------- Payments ---------

    @app.get("/api/payments/wallet")
    def get_wallet(user_id: str = Depends(current_user_id), ctx: AppContext = Depends(get_context)):
        user = ctx.db.find_user(user_id)
        return {"balance": wallet_ledger.get_balance(user.wallet), "currency": user.wallet.currency}

    @app.post("/api/payments/create-order")
    def create_order(body: OrderIn, user_id: str = Depends(current_user_id),
                     ctx: AppContext = Depends(get_context)):
        order = payments.create_order(user_id, body.amount, body.currency)
        logger.info("Created payment order %s for user %s", order["id"], user_id)
        return {"order": order, "key": ctx.settings.razorpay_key_id}

    @app.post("/api/payments/verify")
    def verify_payment(body: VerifyIn, user_id: str = Depends(current_user_id),
                       ctx: AppContext = Depends(get_context)):
        secret = ctx.settings.razorpay_key_secret
        if not secret:
            raise UpstreamUnavailable("Payment gateway is not configured")
        if not payments.verify_signature(body.order_id, body.payment_id, body.signature, secret):
            logger.warning("Rejected payment %s for user %s: bad signature", body.payment_id, user_id)
            raise ValidationError("Invalid payment signature")

        user = ctx.db.mutate_user(
            user_id, lambda u: wallet_ledger.credit_payment(u, body.payment_id, body.amount))
        logger.info("Credited %.2f to user %s (order %s)", body.amount, user_id, body.order_id)
        return {"message": "Payment verified successfully", "wallet": user.wallet.model_dump()}

    @app.post("/api/payments/withdraw")
    def withdraw(body: WithdrawIn, user_id: str = Depends(current_user_id),
                 ctx: AppContext = Depends(get_context)):
        user = ctx.db.mutate_user(user_id, lambda u: u.model_copy(update={
            "wallet": wallet_ledger.debit(u.wallet, body.amount),
        }))
        logger.info("Debited %.2f from user %s", body.amount, user_id)
        return {"message": "Withdrawal successful", "wallet": user.wallet.model_dump()}


app = create_app()


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
