"""Read-only query selectors returning frozen DTOs."""

from bullion_kernel.selectors.base import BaseSelector
from bullion_kernel.selectors.registry_selector import (
    PartyAxisTotals,
    RegistryRowDTO,
    RegistrySelector,
)

__all__ = [
    "BaseSelector",
    "PartyAxisTotals",
    "RegistryRowDTO",
    "RegistrySelector",
]
