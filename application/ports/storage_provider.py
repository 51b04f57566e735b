"""
Storage Provider Interface (Port).

This module defines the abstract interface for persisting collections,
saved requests, environments, and request history. Records are plain
dicts with snake_case keys so that any backing store can round-trip them
as JSON.
"""
from typing import Protocol, Optional, List, Dict, Any


class StorageProvider(Protocol):
    """
    Abstract interface for tester persistence.

    All methods are coroutines. Read methods return copies of merged
    records; mutating methods persist before returning.
    """

    async def init(self) -> None:
        """Load persisted data. Safe to call repeatedly and concurrently."""
        ...

    async def clear_cache(self) -> None:
        """Drop every system-owned (auto-captured) record and history entry."""
        ...

    # =========================================================================
    # Collections
    # =========================================================================

    async def get_collections(self, user_id: str) -> List[Dict[str, Any]]:
        """
        List a user's live collections.

        Returns:
            Collections with a nested ``requests`` list of their live requests.
        """
        ...

    async def create_collection(self, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create a collection owned by ``user_id``. ``data`` needs a ``name``."""
        ...

    async def update_collection(self, collection_id: str, data: Dict[str, Any]) -> bool:
        """Apply field changes. Returns False when the collection is unknown."""
        ...

    async def delete_collection(self, collection_id: str) -> bool:
        """Soft-delete a collection. Returns False when the collection is unknown."""
        ...

    # =========================================================================
    # Requests
    # =========================================================================

    async def get_requests(self, collection_id: str) -> List[Dict[str, Any]]:
        """List the live requests of a collection."""
        ...

    async def get_request(self, request_id: str) -> Optional[Dict[str, Any]]:
        """Get a live request by id, or None."""
        ...

    async def create_request(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a saved request.

        Args:
            data: collection_id, name, method, url, headers, body
        """
        ...

    async def update_request(self, request_id: str, data: Dict[str, Any]) -> bool:
        """Apply field changes. Returns False when the request is unknown."""
        ...

    async def delete_request(self, request_id: str) -> bool:
        """Soft-delete a request. Returns False when the request is unknown."""
        ...

    async def backfill_request(
        self,
        request_id: str,
        *,
        body: Optional[str] = None,
        headers: Optional[str] = None,
    ) -> bool:
        """
        Fill a request's body and/or headers only where currently empty.

        The emptiness check is made against the current in-memory state at
        write time, so a value set by someone else in the meantime is kept.

        Returns:
            True when at least one field was written.
        """
        ...

    # =========================================================================
    # Environments
    # =========================================================================

    async def get_environments(self) -> List[Dict[str, Any]]:
        """List live environments."""
        ...

    async def create_environment(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create an environment. ``data`` needs ``name`` and ``variables``."""
        ...

    async def update_environment(self, environment_id: str, data: Dict[str, Any]) -> bool:
        ...

    async def delete_environment(self, environment_id: str) -> bool:
        ...

    # =========================================================================
    # History
    # =========================================================================

    async def get_history(self, user_id: str) -> List[Dict[str, Any]]:
        """Most recent history entries for a user, newest first (max 50)."""
        ...

    async def add_to_history(self, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Append a history entry.

        Args:
            data: method, url, status, duration, request_headers, request_body,
                  response_headers, response_body
        """
        ...

    async def clear_history(self, user_id: str) -> None:
        """Hard-delete all of a user's history."""
        ...

    async def delete_history_item(self, entry_id: str) -> bool:
        """Hard-delete one history entry."""
        ...
