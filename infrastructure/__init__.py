"""
Infrastructure Layer for the API tester.

This package contains concrete implementations of the ports in
application/ports:
- storage/: Dual-layer JSON file storage
"""

# Re-export storage providers for convenient access
from infrastructure.storage import JsonStorageProvider

__all__ = [
    "JsonStorageProvider",
]
