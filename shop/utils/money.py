from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

Money = Decimal

CENT = Decimal("0.01")


def D(x) -> Money:
    if isinstance(x, Decimal):
        return x
    try:
        return Decimal(str(x or "0"))
    except InvalidOperation:
        raise ValueError(f"invalid amount: {x!r}") from None


def round_money(x) -> Money:
    return D(x).quantize(CENT, rounding=ROUND_HALF_UP)


def apply_discount(price, percentage) -> Money:
    """Return ``price * (1 - percentage/100)``; the percentage is clamped to 0..100."""
    pct = D(percentage)
    if pct <= 0:
        return round_money(price)
    if pct > 100:
        pct = Decimal("100")
    return round_money(D(price) * (Decimal("100") - pct) / Decimal("100"))


def format_amount(x) -> str:
    """Render a money value without trailing zero cents (200, 199.5, 12.25)."""
    value = round_money(x)
    if value == value.to_integral_value():
        return str(value.quantize(Decimal("1")))
    return format(value.normalize(), "f")
