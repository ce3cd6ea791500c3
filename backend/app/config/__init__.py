"""Config package exporting loader helpers."""

from .loader import GateConfig, ListingConfig, Settings, StoreConfig, load_settings

__all__ = ["GateConfig", "ListingConfig", "Settings", "StoreConfig", "load_settings"]
