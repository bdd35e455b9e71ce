"""Top-up errors."""

from __future__ import annotations


class TopupError(Exception):
    code = "topup_error"


class TopupNotFound(TopupError):
    code = "topup_not_found"

    def __init__(self, reference_no: str) -> None:
        self.reference_no = reference_no
        super().__init__(f"Top-up not found: {reference_no}")


class TopupMismatch(TopupError):
    """The confirmed payment does not match the recorded intent."""

    code = "topup_mismatch"

    def __init__(self, reference_no: str, expected_paise: int, received_paise: int) -> None:
        self.reference_no = reference_no
        self.expected_paise = expected_paise
        self.received_paise = received_paise
        super().__init__(
            f"Top-up {reference_no} amount mismatch: expected {expected_paise} paise, got {received_paise} paise"
        )


class TopupNotPending(TopupError):
    code = "topup_not_pending"

    def __init__(self, reference_no: str, status: str) -> None:
        self.reference_no = reference_no
        self.status = status
        super().__init__(f"Top-up {reference_no} is already {status}")
