"""
Shared utilities for Contract Intelligence.

This package provides:
- Secrets management
- Field encryption for stored secrets
"""
from .secrets import get_secret, mask_secret, mask_email

__all__ = ["get_secret", "mask_secret", "mask_email"]
