"""Tenant-scoped resource and delivery layer for the BoothOS photo platform."""

__version__ = "0.4.0"
