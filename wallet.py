"""Wallet balance arithmetic. Persistence and atomicity live in database.py."""

from errors import ConflictError, InsufficientFundsError, ValidationError
from schemas import User, Wallet


def _check_amount(amount: float) -> None:
    if amount <= 0:
        raise ValidationError("Amount must be a positive number")


def credit(wallet: Wallet, amount: float) -> Wallet:
    """Top up the wallet. Callers must have verified the payment signature first."""
    _check_amount(amount)
    return wallet.model_copy(update={"balance": wallet.balance + amount})


def credit_payment(user: User, payment_id: str, amount: float) -> User:
    """Credit a verified payment once; a payment id seen before is rejected."""
    if payment_id in user.processed_payments:
        raise ConflictError("Payment already processed")
    return user.model_copy(update={
        "wallet": credit(user.wallet, amount),
        "processed_payments": [*user.processed_payments, payment_id],
    })


def debit(wallet: Wallet, amount: float) -> Wallet:
    """Withdraw from the wallet; all-or-nothing."""
    _check_amount(amount)
    if amount > wallet.balance:
        raise InsufficientFundsError("Insufficient wallet balance")
    return wallet.model_copy(update={"balance": wallet.balance - amount})


def get_balance(wallet: Wallet) -> float:
    return wallet.balance
