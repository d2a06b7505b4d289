"""
Unit Statistics Module
Mean, median and mode of spending per time unit
"""

import statistics
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence

from .models import TimeUnitAggregate


def safe_divide(numerator: Decimal, denominator) -> Optional[Decimal]:
    """Divide, returning None instead of raising or producing inf/NaN"""
    if denominator is None or denominator <= 0:
        return None
    return numerator / Decimal(denominator)


@dataclass(frozen=True)
class UnitStatistics:
    """Central tendency of a bucket series"""

    mean: Optional[Decimal]
    median: Optional[Decimal]
    mode: Optional[Decimal]


class UnitStatisticsCalculator:
    """Computes per-unit statistics, ignoring future units of an in-progress period"""

    def calculate(self,
                  series: Sequence[TimeUnitAggregate],
                  total: Decimal,
                  divisor,
                  elapsed_through: Optional[int] = None) -> UnitStatistics:
        """
        Calculate mean, median and mode for a filled bucket series

        Args:
            series: Zero-filled canonical series in ascending key order
            total: Total expenditure of the period
            divisor: Unit count the mean is spread over (fractional while the
                period is in progress)
            elapsed_through: Last key that has started; later buckets are
                future zeros and are left out of median and mode

        Returns:
            UnitStatistics; fields are None when there is nothing to measure
        """
        if elapsed_through is not None:
            series = [unit for unit in series if unit.period_key <= elapsed_through]

        values = [unit.total for unit in series]

        return UnitStatistics(
            mean=safe_divide(total, divisor),
            median=self.median(values),
            mode=self.mode(values),
        )

    @staticmethod
    def median(values: Sequence[Decimal]) -> Optional[Decimal]:
        """Middle value; average of the two central values for even lengths"""
        if not values:
            return None
        return statistics.median(values)

    @staticmethod
    def mode(values: Sequence[Decimal]) -> Optional[Decimal]:
        """
        Most frequent value

        Ties resolve to the value seen first in ascending key order.
        """
        if not values:
            return None
        return statistics.multimode(values)[0]
