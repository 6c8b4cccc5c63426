"""Document Store - Persistence Adapter for MFA Records

This module provides the key-value document access the 2FA core needs:
- get / set (with merge) / update / delete on a collection path and key
- Keys may contain "/" to address sub-collection documents
  (e.g. collection "admins", key "{adminId}/mfa/totp")
- Firestore errors are classified into typed PersistenceError subclasses
- Transient errors (unavailable, deadline exceeded) are retried with
  exponential backoff; everything else is raised immediately

Implementations:
- FirestoreDocumentStore: async Firestore client (production)
- InMemoryDocumentStore: process-local dict (tests, local development)
"""

import asyncio
import copy
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, TypeVar

from google.api_core import exceptions as google_exceptions

from cropify_auth.config import get_settings
from cropify_auth.exceptions import (
    PersistenceDeadlineExceededError,
    PersistenceError,
    PersistencePermissionDeniedError,
    PersistenceResourceExhaustedError,
    PersistenceUnavailableError,
    PersistenceUnknownError,
)
from cropify_auth.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def classify_error(
    error: Exception,
    operation: Optional[str] = None,
    path: Optional[str] = None,
) -> PersistenceError:
    """Map a Firestore / google-api-core error onto the typed taxonomy."""
    if isinstance(error, PersistenceError):
        return error

    if isinstance(error, google_exceptions.ServiceUnavailable):
        error_class = PersistenceUnavailableError
    elif isinstance(error, google_exceptions.PermissionDenied):
        error_class = PersistencePermissionDeniedError
    elif isinstance(error, (google_exceptions.DeadlineExceeded, asyncio.TimeoutError)):
        error_class = PersistenceDeadlineExceededError
    elif isinstance(error, google_exceptions.ResourceExhausted):
        error_class = PersistenceResourceExhaustedError
    else:
        return PersistenceUnknownError(
            f"Database error: {error}", operation=operation, path=path
        )

    return error_class(operation=operation, path=path)


class DocumentStore(ABC):
    """Async key-value document store.

    All methods raise PersistenceError subclasses on failure.
    """

    @abstractmethod
    async def get(self, collection_path: str, key: str) -> Optional[Dict[str, Any]]:
        """Return the document data, or None if it does not exist."""

    @abstractmethod
    async def set(
        self,
        collection_path: str,
        key: str,
        record: Dict[str, Any],
        merge: bool = False,
    ) -> bool:
        """Create or overwrite (or merge into) a document."""

    @abstractmethod
    async def update(
        self, collection_path: str, key: str, partial: Dict[str, Any]
    ) -> bool:
        """Update fields of an existing document."""

    @abstractmethod
    async def delete(self, collection_path: str, key: str) -> bool:
        """Delete a document. Deleting a missing document succeeds."""


class FirestoreDocumentStore(DocumentStore):
    """DocumentStore backed by the async Firestore client.

    Args:
        client: Firestore AsyncClient (defaults to the shared client)
        max_retries: Attempts for transient failures
        retry_base_delay: First backoff delay in seconds, doubled per attempt
    """

    def __init__(
        self,
        client=None,
        max_retries: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
    ):
        settings = get_settings()
        if client is None:
            from cropify_auth.services.firestore_client import get_firestore_client

            client = get_firestore_client()
        self.client = client
        self.max_retries = max(
            1, max_retries if max_retries is not None else settings.persistence_max_retries
        )
        self.retry_base_delay = (
            retry_base_delay
            if retry_base_delay is not None
            else settings.persistence_retry_base_delay
        )

    def _document(self, collection_path: str, key: str):
        segments = [part for part in f"{collection_path}/{key}".split("/") if part]
        return self.client.document(*segments)

    async def _call(
        self,
        operation: str,
        path: str,
        func: Callable[[], Awaitable[T]],
    ) -> T:
        for attempt in range(1, self.max_retries + 1):
            try:
                result = await func()
                logger.log_persistence_operation(operation, path, attempt=attempt)
                return result

            except Exception as e:
                error = classify_error(e, operation=operation, path=path)
                logger.log_persistence_operation(
                    operation,
                    path,
                    success=False,
                    attempt=attempt,
                    error_type=type(error).__name__,
                    error=str(e),
                )

                if not error.retryable or attempt == self.max_retries:
                    raise error from e

                await asyncio.sleep(self.retry_base_delay * (2 ** (attempt - 1)))

        raise PersistenceUnknownError(operation=operation, path=path)

    async def get(self, collection_path: str, key: str) -> Optional[Dict[str, Any]]:
        doc_ref = self._document(collection_path, key)

        async def _get():
            snapshot = await doc_ref.get()
            if not snapshot.exists:
                return None
            return snapshot.to_dict() or {}

        return await self._call("get", doc_ref.path, _get)

    async def set(
        self,
        collection_path: str,
        key: str,
        record: Dict[str, Any],
        merge: bool = False,
    ) -> bool:
        doc_ref = self._document(collection_path, key)

        async def _set():
            await doc_ref.set(record, merge=merge)
            return True

        return await self._call("set", doc_ref.path, _set)

    async def update(
        self, collection_path: str, key: str, partial: Dict[str, Any]
    ) -> bool:
        doc_ref = self._document(collection_path, key)

        async def _update():
            await doc_ref.update(partial)
            return True

        return await self._call("update", doc_ref.path, _update)

    async def delete(self, collection_path: str, key: str) -> bool:
        doc_ref = self._document(collection_path, key)

        async def _delete():
            await doc_ref.delete()
            return True

        return await self._call("delete", doc_ref.path, _delete)


class InMemoryDocumentStore(DocumentStore):
    """Process-local DocumentStore with Firestore-like semantics.

    Values are deep-copied on the way in and out so callers cannot mutate
    stored documents. ``update`` on a missing document fails like Firestore.
    """

    def __init__(self):
        self._documents: Dict[Tuple[str, str], Dict[str, Any]] = {}

    @staticmethod
    def _key(collection_path: str, key: str) -> Tuple[str, str]:
        return collection_path.strip("/"), key.strip("/")

    async def get(self, collection_path: str, key: str) -> Optional[Dict[str, Any]]:
        doc = self._documents.get(self._key(collection_path, key))
        return copy.deepcopy(doc) if doc is not None else None

    async def set(
        self,
        collection_path: str,
        key: str,
        record: Dict[str, Any],
        merge: bool = False,
    ) -> bool:
        doc_key = self._key(collection_path, key)
        if merge and doc_key in self._documents:
            self._documents[doc_key].update(copy.deepcopy(record))
        else:
            self._documents[doc_key] = copy.deepcopy(record)
        return True

    async def update(
        self, collection_path: str, key: str, partial: Dict[str, Any]
    ) -> bool:
        doc_key = self._key(collection_path, key)
        if doc_key not in self._documents:
            raise PersistenceUnknownError(
                f"Database error: no document to update: {'/'.join(doc_key)}",
                operation="update",
                path="/".join(doc_key),
            )
        self._documents[doc_key].update(copy.deepcopy(partial))
        return True

    async def delete(self, collection_path: str, key: str) -> bool:
        self._documents.pop(self._key(collection_path, key), None)
        return True

    def clear(self) -> None:
        self._documents.clear()


_memory_store: Optional[InMemoryDocumentStore] = None


def get_document_store() -> DocumentStore:
    """Get the configured document store.

    Returns the shared in-memory store when USE_IN_MEMORY_STORE is set,
    otherwise a Firestore-backed store.
    """
    global _memory_store

    if get_settings().use_in_memory_store:
        if _memory_store is None:
            _memory_store = InMemoryDocumentStore()
            logger.info("Using in-memory document store")
        return _memory_store

    return FirestoreDocumentStore()
