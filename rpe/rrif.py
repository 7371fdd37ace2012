"""Mandatory minimum withdrawals from the tax-deferred registered account."""

from __future__ import annotations

from .rates import MandatoryWithdrawalSchedule


def schedule_fraction(schedule: MandatoryWithdrawalSchedule, age: float) -> float:
    if age < schedule.minimum_age:
        return 0.0

    table = schedule.fractions
    if age <= table[0][0]:
        return table[0][1]
    if age >= table[-1][0]:
        return table[-1][1]

    for (low_age, low_fraction), (high_age, high_fraction) in zip(table, table[1:]):
        if age == low_age:
            return low_fraction
        if low_age < age < high_age:
            weight = (age - low_age) / (high_age - low_age)
            return low_fraction + (high_fraction - low_fraction) * weight
    return table[-1][1]


def minimum_withdrawal(age: float, balance: float, schedule: MandatoryWithdrawalSchedule) -> float:
    """Required withdrawal for the year, zero below the schedule's minimum age."""
    if balance <= 0:
        return 0.0
    return balance * schedule_fraction(schedule, age)
