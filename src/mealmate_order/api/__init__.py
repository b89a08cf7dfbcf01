"""
API module - local stand-in for the Swiggy Instamart service.
"""

from .mock_instamart import app, STATE, DEMO_OTP, DEMO_ADDRESSES, CATALOG

__all__ = ["app", "STATE", "DEMO_OTP", "DEMO_ADDRESSES", "CATALOG"]
