"""Money arithmetic.

Amounts are stored as floats on aggregates but every calculation goes
through ``Decimal`` quantised to the cent with half-up rounding, so sums
and allocations are exact.
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def line_subtotal(unit_price, quantity, add_ons=()) -> Decimal:
    """``(unit_price + sum of add-on prices) * quantity``."""
    per_unit = to_money(unit_price) + sum((to_money(a["price"]) for a in add_ons), Decimal("0.00"))
    return to_money(per_unit * int(quantity))


def allocate_discount(subtotals, discount):
    """Split ``discount`` across ``subtotals`` in proportion to their size.

    Each share is rounded to the cent and the last share absorbs the
    rounding residual, so the shares always sum to exactly ``discount``.
    No share goes below zero or above its own subtotal. The discount is
    capped at the combined subtotal.
    """
    subtotals = [to_money(s) for s in subtotals]
    base = sum(subtotals, Decimal("0.00"))
    discount = min(to_money(discount), base)

    if not subtotals:
        return []
    if base == 0 or discount == 0:
        return [Decimal("0.00") for _ in subtotals]

    shares = [to_money(discount * s / base) for s in subtotals[:-1]]
    shares.append(discount - sum(shares, Decimal("0.00")))
    return _keep_within_subtotals(shares, subtotals)


def _keep_within_subtotals(shares, subtotals):
    """Pull the residual share back into ``[0, subtotal]``.

    Rounding the earlier shares can leave the last one a cent or two above
    its own subtotal, or below zero. The difference moves to the earlier
    shares, nearest first, so the total is unchanged.
    """
    last = len(shares) - 1
    if shares[last] > subtotals[last]:
        excess = shares[last] - subtotals[last]
        shares[last] = subtotals[last]
        for index in reversed(range(last)):
            moved = min(subtotals[index] - shares[index], excess)
            shares[index] += moved
            excess -= moved
    elif shares[last] < 0:
        deficit = -shares[last]
        shares[last] = Decimal("0.00")
        for index in reversed(range(last)):
            moved = min(shares[index], deficit)
            shares[index] -= moved
            deficit -= moved
    return shares
