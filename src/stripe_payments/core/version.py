"""
Version constants shared by the client and the user-agent builder.
"""

PACKAGE_VERSION = "1.4.0"

# API version the bindings were generated against.
API_VERSION = "2024-12-18.acacia"

__all__ = ["API_VERSION", "PACKAGE_VERSION"]
