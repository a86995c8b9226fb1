"""Couriers - per-foundation clients used by deployment actions."""

from .courier import CloudFoundryCourier, Courier, CourierCreator
from .executor import Executor

__all__ = [
    "Courier",
    "CloudFoundryCourier",
    "CourierCreator",
    "Executor",
]
