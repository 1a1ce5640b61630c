"""Infrastructure modules for PlanScale."""

from . import api_client, config_store, image_loader, wire

__all__ = ["api_client", "config_store", "image_loader", "wire"]
