"""
Pure domain layer.

Value objects, the clock abstraction and workflow definitions. No ORM,
no database, no I/O (except SystemClock).
"""

from agency_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from agency_kernel.domain.values import (
    EUR,
    USD,
    Currency,
    ExchangeRate,
    Money,
    to_decimal,
)
from agency_kernel.domain.workflow import Transition, Workflow

__all__ = [
    "Clock",
    "Currency",
    "DeterministicClock",
    "EUR",
    "ExchangeRate",
    "Money",
    "SystemClock",
    "Transition",
    "USD",
    "Workflow",
    "to_decimal",
]
