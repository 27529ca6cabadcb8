"""
Price snapshots captured at order-creation time.

A snapshot freezes a course's live price and discount so later catalog edits
never change what an existing order charges.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from domain.catalog.entity import Course
from domain.common.exceptions import DomainValidationException


CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Normalize any numeric input to a two-decimal Decimal."""
    return Decimal(str(value if value is not None else 0)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PricingSnapshot:
    course_id: int
    title: str
    price: Decimal
    discount: Decimal

    @property
    def net_amount(self) -> Decimal:
        return self.price - self.discount

    @classmethod
    def capture(cls, course: Course) -> "PricingSnapshot":
        price = to_money(course.price)
        if price < 0:
            raise DomainValidationException(
                f"Course {course.id} has a negative price",
                field="price",
                details={"course_id": course.id},
            )
        # discount is clamped into [0, price] so every line nets to >= 0
        discount = min(max(to_money(course.discount), ZERO), price)
        return cls(course_id=course.id, title=course.title, price=price, discount=discount)


@dataclass(frozen=True)
class PriceQuote:
    """Aggregated snapshot lines for one purchase."""

    lines: tuple[PricingSnapshot, ...]
    tax: Decimal = ZERO

    @classmethod
    def from_courses(cls, courses: Iterable[Course]) -> "PriceQuote":
        return cls(lines=tuple(PricingSnapshot.capture(c) for c in courses))

    @property
    def total_amount(self) -> Decimal:
        return sum((line.price for line in self.lines), ZERO)

    @property
    def discount(self) -> Decimal:
        return sum((line.discount for line in self.lines), ZERO)

    @property
    def final_amount(self) -> Decimal:
        net = sum((line.net_amount for line in self.lines), ZERO) + self.tax
        return max(net, ZERO)

    @property
    def is_free(self) -> bool:
        return self.final_amount == ZERO

    @property
    def course_ids(self) -> list[int]:
        return [line.course_id for line in self.lines]
