"""
Repository Interfaces (Ports) for the API tester.

This package defines abstract interfaces that decouple the capture pipeline
and the tester API from storage. Implementations are provided in the
infrastructure layer.

Architecture follows the Ports & Adapters (Hexagonal) pattern:
- Ports: Abstract interfaces defined here (what the pipeline needs)
- Adapters: Concrete implementations in infrastructure/ (how it's provided)

Usage:
    from application.ports import StorageProvider

    class CaptureService:
        def __init__(self, storage: StorageProvider):
            self.storage = storage
"""

from application.ports.storage_provider import StorageProvider

__all__ = [
    "StorageProvider",
]
