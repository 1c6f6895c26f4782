"""
Listing exceptions

Only CatalogError is ever surfaced to consumers (as a page-load error).
Annotation store and detail lookup failures are absorbed by the resolver.
"""

from typing import Optional


class ListingError(Exception):
    """Base exception for listing engine errors"""
    pass


class CatalogError(ListingError):
    """Raised when the primary catalog source cannot serve a page"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        result_code: Optional[str] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message)
        self.status_code = status_code
        self.result_code = result_code
        self.cause = cause


class AnnotationStoreError(ListingError):
    """Raised when the annotation store cannot be read or written"""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause


class DetailLookupError(ListingError):
    """Raised when a single detail lookup fails"""

    def __init__(self, content_id: str, message: Optional[str] = None):
        super().__init__(message or f"Detail lookup failed for {content_id}")
        self.content_id = content_id


class ConfigurationError(ListingError):
    """Raised when listing configuration is missing or invalid"""
    pass
