"""Routers package."""

from . import (
    health,
    ledger,
)
