"""Folding partner status vocabulary into the internal status set."""

from __future__ import annotations

from typing import Mapping

from parcelhub.core.constants import OrderStatus

# checked in order; "out for" and failed-delivery wording must win over "deliver"
KEYWORD_RULES: tuple[tuple[str, OrderStatus], ...] = (
    ("out for", OrderStatus.OUT_FOR_DELIVERY),
    ("undeliver", OrderStatus.IN_TRANSIT),
    ("not deliver", OrderStatus.IN_TRANSIT),
    ("deliver", OrderStatus.DELIVERED),
    ("transit", OrderStatus.IN_TRANSIT),
    ("pick", OrderStatus.PICKED_UP),
    ("return", OrderStatus.RTO),
    ("rto", OrderStatus.RTO),
)

# scan codes several partners send instead of words
ABBREVIATIONS: dict[str, OrderStatus] = {
    "ofd": OrderStatus.OUT_FOR_DELIVERY,
    "dl": OrderStatus.DELIVERED,
    "pu": OrderStatus.PICKED_UP,
    "rt": OrderStatus.RTO,
}


def status_table(mapping: Mapping[str, OrderStatus]) -> dict[str, OrderStatus]:
    """Normalize a partner vocabulary table to lower-case keys."""
    return {key.strip().lower(): value for key, value in mapping.items()}


def fold_status(partner_status: object, table: Mapping[str, OrderStatus]) -> OrderStatus:
    """Map a partner status string to an OrderStatus.

    Total: any input, including ``None``, non-strings and unknown vocabulary,
    yields a status. Lookup order is the partner table, common scan codes,
    the internal vocabulary itself, the keyword heuristic, then
    ``pending``.
    """
    if not isinstance(partner_status, str):
        return OrderStatus.PENDING
    key = partner_status.strip().lower()
    if not key:
        return OrderStatus.PENDING

    mapped = table.get(key) or ABBREVIATIONS.get(key)
    if mapped is not None:
        return mapped

    internal = OrderStatus.parse(key.replace(" ", "_"))
    if internal is not None:
        return internal

    for needle, status in KEYWORD_RULES:
        if needle in key:
            return status
    return OrderStatus.PENDING
