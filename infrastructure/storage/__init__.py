"""
Infrastructure Storage Layer.

This package provides the file-backed implementation of the StorageProvider
interface defined in application.ports.

Usage:
    from infrastructure.storage import JsonStorageProvider

    store = JsonStorageProvider(
        storage_path=".restiqo/api-tester-db.json",
        customization_path="api-tester.json",
        auto_collection_name="Auto-Captured",
    )
"""

from infrastructure.storage.json_store import (
    HISTORY_LIMIT,
    JsonStorageProvider,
    Layer,
    StoreLayer,
    is_empty_body,
    is_empty_headers,
    merge_records,
    owning_layer,
)

__all__ = [
    "HISTORY_LIMIT",
    "JsonStorageProvider",
    "Layer",
    "StoreLayer",
    "is_empty_body",
    "is_empty_headers",
    "merge_records",
    "owning_layer",
]
