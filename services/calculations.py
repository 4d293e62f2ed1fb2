"""Derived values for specific tax forms."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

TAX_RATE = 0.17

Calculator = Callable[[Mapping[str, Any]], Dict[str, float]]


def _number(data: Mapping[str, Any], key: str) -> Optional[float]:
    """Return ``data[key]`` as a float, or None when the input is absent or unreadable.

    Strings may use Polish formatting ("60 000,00").
    """

    value = data.get(key)
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = value.replace("\xa0", "").replace(" ", "").replace(",", ".")
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric %s: %r", key, data.get(key))
        return None


def pit37(data: Mapping[str, Any]) -> Dict[str, float]:
    """Employment income return: totals, child deduction, 17% tax, balance."""

    calculated: Dict[str, float] = {}
    employment = _number(data, "employmentIncome")
    contracts = _number(data, "civilContractIncome")
    if employment is not None and contracts is not None:
        calculated["totalIncome"] = employment + contracts

    per_child = _number(data, "childDeduction")
    children = _number(data, "numberOfChildren")
    if per_child is not None and children is not None:
        calculated["totalTaxDeduction"] = per_child * children

    if "totalIncome" in calculated and "totalTaxDeduction" in calculated:
        calculated["taxBase"] = calculated["totalIncome"] - calculated["totalTaxDeduction"]
    _tax_due_and_balance(data, calculated)
    return calculated


def pitr(data: Mapping[str, Any]) -> Dict[str, float]:
    """Business income return."""

    calculated: Dict[str, float] = {}
    income = _number(data, "businessIncome")
    costs = _number(data, "businessCosts")
    if income is not None and costs is not None:
        calculated["taxBase"] = income - costs
    _tax_due_and_balance(data, calculated)
    return calculated


def _tax_due_and_balance(data: Mapping[str, Any], calculated: Dict[str, float]) -> None:
    if "taxBase" in calculated:
        calculated["taxDue"] = calculated["taxBase"] * TAX_RATE
    paid = _number(data, "taxPaid")
    if "taxDue" in calculated and paid is not None:
        calculated["taxToPay"] = calculated["taxDue"] - paid


CALCULATORS: Dict[str, Calculator] = {
    "PIT-37": pit37,
    "PIT-R": pitr,
}


def calculate(form_type: str, data: Mapping[str, Any]) -> Dict[str, float]:
    """Derived fields for ``form_type``; forms without rules get an empty dict."""

    calculator = CALCULATORS.get(form_type.upper())
    if calculator is None:
        return {}
    return calculator(data)


__all__ = ["CALCULATORS", "TAX_RATE", "calculate", "pit37", "pitr"]
