"""Configuration loading and validation"""

from .config_validator import (
    ConfigValidator,
    ValidationReport,
    ValidationResult,
    get_validator,
    validate_configs_on_startup,
)
from .configuration_service import (
    ConfigurationService,
    get_config_service,
    init_config_service,
)
from .settings import (
    AnnotationSettings,
    CatalogSettings,
    ContinuationSettings,
    ListingSettings,
    PaginationSettings,
)

__all__ = [
    "AnnotationSettings",
    "CatalogSettings",
    "ConfigValidator",
    "ConfigurationService",
    "ContinuationSettings",
    "ListingSettings",
    "PaginationSettings",
    "ValidationReport",
    "ValidationResult",
    "get_config_service",
    "get_validator",
    "init_config_service",
    "validate_configs_on_startup",
]
