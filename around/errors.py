"""
Hiérarchie d'exceptions du service.

Chaque erreur porte un code stable, un statut HTTP et des détails
sérialisables, pour que la couche HTTP n'ait qu'à les convertir.
"""
from typing import Any, Dict, Optional


class AroundError(Exception):
    """Base exception class for Around errors"""
    http_status: int = 500

    def __init__(self, message: str, code: str = "UNKNOWN_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to standard error format"""
        return {
            "code": self.code,
            "message": str(self),
            "details": self.details
        }


class InputError(AroundError):
    """Raised when a submission cannot be turned into a valid record"""
    http_status = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="INPUT_ERROR", details=details)


# --- Blob store -------------------------------------------------------------

class StoreError(AroundError):
    """Raised when the blob store cannot serve a request"""

    def __init__(self, message: str, code: str = "STORE_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)


class ContainerNotFound(StoreError):
    """Raised when the target blob container does not exist"""

    def __init__(self, container: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            f"Container '{container}' not found",
            code="CONTAINER_NOT_FOUND",
            details={"container": container, **(details or {})},
        )


class WriteFailed(StoreError):
    """Raised when streaming or committing a blob fails"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="WRITE_FAILED", details=details)


class PermissionDenied(StoreError):
    """Raised when the store rejects the public-read grant"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="PERMISSION_DENIED", details=details)


# --- Document index ---------------------------------------------------------

class SearchIndexError(AroundError):
    """Raised when the document index cannot serve a request"""

    def __init__(self, message: str, code: str = "INDEX_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, details=details)


class IndexNotFound(SearchIndexError):
    """Raised when the index does not exist"""

    def __init__(self, index_name: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            f"Index '{index_name}' not found",
            code="INDEX_NOT_FOUND",
            details={"index": index_name, **(details or {})},
        )


class MalformedQuery(SearchIndexError):
    """Raised when the index rejects a query or a document"""
    http_status = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="MALFORMED_QUERY", details=details)


class IndexUnavailable(SearchIndexError):
    """Raised when the index cannot be reached or times out"""
    http_status = 503

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="INDEX_UNAVAILABLE", details=details)


class HitDecodeError(SearchIndexError):
    """Raised when a search hit does not match the Post schema"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="HIT_DECODE_ERROR", details=details)


# --- Ingestion --------------------------------------------------------------

class ConsistencyGap(AroundError):
    """Raised when a blob was written but its index entry was not"""

    def __init__(self, post_id: str, media_url: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            f"Post '{post_id}' media stored but not indexed",
            code="CONSISTENCY_GAP",
            details={"post_id": post_id, "media_url": media_url, **(details or {})},
        )
        self.post_id = post_id
        self.media_url = media_url
