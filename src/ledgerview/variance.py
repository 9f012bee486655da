# LedgerView - Configurable financial statements from trial balance data
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Variance between the current and prior side of a comparison.

    amount  = current - prior
    percent = amount / |prior| * 100   (0 when prior is 0)

Dividing by the absolute prior keeps the sign of ``percent`` aligned with
the sign of ``amount`` when the prior value is negative (expenses).
"""

from typing import NamedTuple, Optional


class VarianceResult(NamedTuple):
    amount: float
    percent: float


def calculate_amount(current: float, prior: float) -> float:
    return current - prior


def calculate_percent(current: float, prior: float) -> float:
    if prior == 0:
        return 0.0
    return (current - prior) / abs(prior) * 100


def calculate(current: float, prior: float) -> VarianceResult:
    """Return both the amount and percent variance."""
    return VarianceResult(
        amount=calculate_amount(current, prior),
        percent=calculate_percent(current, prior),
    )


def calculate_optional(
    current: Optional[float], prior: Optional[float]
) -> tuple[Optional[float], Optional[float]]:
    """Variance when both sides are numeric, otherwise ``(None, None)``."""
    if current is None or prior is None:
        return None, None
    result = calculate(current, prior)
    return result.amount, result.percent
