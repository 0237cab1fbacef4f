"""Policy definitions for pay rules.

Pay rules are kept separate from the statistics code so that they can be
tested independently and swapped per company.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from crewschedule.domain.models import PaymentType, ShiftEntry


@dataclass(frozen=True)
class EntryPay:
    """Breakdown of the pay for a single shift entry."""

    regular_pay: float = 0.0
    overtime_pay: float = 0.0
    overtime_hours: float = 0.0
    overtime_premium: float = 0.0
    bonus: float = 0.0
    deductions: float = 0.0

    @property
    def total(self) -> float:
        return self.regular_pay + self.overtime_pay + self.bonus - self.deductions


class PayPolicy(ABC):
    """Abstract base class for shift pay policies."""

    @abstractmethod
    def regular_hours_limit(self) -> float:
        """Hours per shift paid at the base rate."""
        pass

    @abstractmethod
    def overtime_multiplier(self, entry: ShiftEntry) -> float:
        """Multiplier applied to the base rate for hours past the limit."""
        pass

    @abstractmethod
    def calculate_entry_pay(self, entry: ShiftEntry) -> EntryPay:
        """Calculate the pay breakdown for one entry.

        Args:
            entry: The shift entry to price.

        Returns:
            EntryPay with regular, overtime, bonus and deduction amounts.
        """
        pass


@dataclass
class DefaultPayPolicy(PayPolicy):
    """Default pay policy implementation.

    Hourly shifts:
    - First 8 hours at the entry's hourly rate
    - Remaining hours at rate x overtime multiplier (1.5 unless the entry
      overrides it)

    Flat-rate shifts are paid the flat amount regardless of hours.
    Bonuses are added and deductions subtracted in both cases.
    """

    regular_hours: float = 8.0
    default_overtime_multiplier: float = 1.5

    def regular_hours_limit(self) -> float:
        return self.regular_hours

    def overtime_multiplier(self, entry: ShiftEntry) -> float:
        if entry.overtime_rate is not None:
            return entry.overtime_rate
        return self.default_overtime_multiplier

    def calculate_entry_pay(self, entry: ShiftEntry) -> EntryPay:
        if entry.payment_type == PaymentType.FLAT_RATE:
            return EntryPay(
                regular_pay=entry.flat_rate_amount,
                bonus=entry.bonus_amount,
                deductions=entry.deductions,
            )

        regular_hours = min(entry.hours, self.regular_hours)
        overtime_hours = max(0.0, entry.hours - self.regular_hours)
        multiplier = self.overtime_multiplier(entry)
        return EntryPay(
            regular_pay=regular_hours * entry.hourly_rate,
            overtime_pay=overtime_hours * entry.hourly_rate * multiplier,
            overtime_hours=overtime_hours,
            overtime_premium=overtime_hours * entry.hourly_rate * (multiplier - 1),
            bonus=entry.bonus_amount,
            deductions=entry.deductions,
        )
