"""
Typesense HTTP transport.
"""

from .client import API_KEY_HEADER, TypesenseClient

__all__ = ["API_KEY_HEADER", "TypesenseClient"]
