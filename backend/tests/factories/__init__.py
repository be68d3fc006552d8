# backend/tests/factories/__init__.py

"""
Shared test factories for the seating backend.
"""

from .base import BaseFactory
from .seating import (
    RestaurantTableFactory,
    CustomerFactory,
    BookingFactory,
    TableCombinationFactory,
)

ALL_FACTORIES = (
    RestaurantTableFactory,
    CustomerFactory,
    BookingFactory,
    TableCombinationFactory,
)

__all__ = [
    "BaseFactory",
    "RestaurantTableFactory",
    "CustomerFactory",
    "BookingFactory",
    "TableCombinationFactory",
    "ALL_FACTORIES",
]
