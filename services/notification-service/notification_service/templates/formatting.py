from __future__ import annotations

# ISO 4217 currencies without a minor unit.
_ZERO_DECIMAL_CURRENCIES = frozenset({"JPY", "KRW", "CLP", "VND", "ISK", "UGX"})


def format_amount(amount_minor: int, currency: str) -> str:
    code = currency.upper()
    if code in _ZERO_DECIMAL_CURRENCIES:
        return f"{amount_minor:,} {code}"
    units, cents = divmod(abs(amount_minor), 100)
    sign = "-" if amount_minor < 0 else ""
    return f"{sign}{units:,}.{cents:02d} {code}"


def greeting_name(display_name: str | None) -> str:
    if display_name and display_name.strip():
        return display_name.strip().split()[0]
    return "there"
