from __future__ import annotations

from collections.abc import Iterable
from typing import Any

_CURRENCY_CODE_LENGTH = 3


def _normalize_text(value: Any, *, field_name: str) -> str:
    if value is None or not isinstance(value, str):
        raise ValueError(f"Missing required {field_name}")
    normalized = value.strip()
    if not normalized:
        raise ValueError(f"Missing required {field_name}")
    return normalized


def ensure_supported_currency(currency: str, supported: Iterable[str]) -> str:
    normalized = _normalize_text(currency, field_name="currency").upper()
    if len(normalized) != _CURRENCY_CODE_LENGTH:
        raise ValueError(f"Invalid currency code length: {normalized}")
    supported_codes = {
        item.strip().upper() for item in supported if isinstance(item, str) and item.strip()
    }
    if normalized not in supported_codes:
        raise ValueError(f"Unsupported currency: {normalized}")
    return normalized


def ensure_positive_amount(amount: Any) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError("Amount must be an integer number of minor units")
    if amount <= 0:
        raise ValueError(f"Amount must be positive, got {amount}")
    return amount
