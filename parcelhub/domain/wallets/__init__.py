"""Wallet domain exports"""

from .exceptions import InsufficientFunds, InvalidAmount, WalletError
from .models import LedgerAudit, LedgerTransaction, TransactionPage, WalletSnapshot
from .service import WalletLedger

__all__ = [
    "InsufficientFunds",
    "InvalidAmount",
    "LedgerAudit",
    "LedgerTransaction",
    "TransactionPage",
    "WalletError",
    "WalletLedger",
    "WalletSnapshot",
]
