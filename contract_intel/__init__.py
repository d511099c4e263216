"""
Contract Intelligence - Credential Recovery and MFA Core

Multi-tenant business-intelligence backend, authentication core.

This package provides password-reset token handling and TOTP-based
multi-factor authentication for the Contract Intelligence platform.
Storage, audit and rendering are injected collaborators.
"""

__version__ = "0.1.0"
__author__ = "Contract Intelligence Team"
