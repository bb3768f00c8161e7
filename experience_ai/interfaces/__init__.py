"""
Interfaces Module
External data sources: internal catalog, inventory provider and geocoder
"""

from .catalog_store import CatalogStore
from .inventory_provider import (
    InventoryProviderError,
    ViatorClient,
    add_affiliate_params,
    extract_location,
    format_duration,
    transform_product,
)
from .geocoder import Geocoder

__all__ = [
    "CatalogStore",
    "InventoryProviderError",
    "ViatorClient",
    "add_affiliate_params",
    "extract_location",
    "format_duration",
    "transform_product",
    "Geocoder",
]
