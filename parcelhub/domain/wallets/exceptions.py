"""Wallet domain errors."""

from __future__ import annotations


class WalletError(Exception):
    code = "wallet_error"


class InvalidAmount(WalletError):
    code = "invalid_amount"

    def __init__(self, amount: object) -> None:
        self.amount = amount
        super().__init__(f"Amount must be a positive number of paise, got {amount!r}")


class InsufficientFunds(WalletError):
    code = "insufficient_funds"

    def __init__(self, required_paise: int, available_paise: int) -> None:
        self.required_paise = required_paise
        self.available_paise = available_paise
        super().__init__(
            f"Insufficient wallet balance: required {required_paise} paise, available {available_paise} paise"
        )

    @property
    def shortfall_paise(self) -> int:
        return max(self.required_paise - self.available_paise, 0)
