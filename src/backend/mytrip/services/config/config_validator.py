"""
Configuration Validator

Checks listing_config.json against its JSON schema and against the cross-field
rules a schema can't express. Meant to run once at startup; every problem is
collected instead of stopping at the first one.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from jsonschema import Draft7Validator, SchemaError

from ...exceptions import ConfigurationError

logger = logging.getLogger(__name__)

LISTING_CONFIG = "listing_config"


@dataclass
class ValidationResult:
    """Errors and warnings found by one check"""
    config_name: str
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add_error(self, error: str):
        self.errors.append(error)

    def add_warning(self, warning: str):
        self.warnings.append(warning)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "config_name": self.config_name,
            "is_valid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


@dataclass
class ValidationReport:
    results: List[ValidationResult]
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def overall_valid(self) -> bool:
        return all(r.is_valid for r in self.results)

    @property
    def error_count(self) -> int:
        return sum(len(r.errors) for r in self.results)

    @property
    def warning_count(self) -> int:
        return sum(len(r.warnings) for r in self.results)

    def to_dict(self) -> Dict[str, Any]:
        invalid = [r for r in self.results if not r.is_valid]
        return {
            "overall_valid": self.overall_valid,
            "timestamp": self.generated_at.isoformat(),
            "total_configs": len(self.results),
            "invalid_configs": len(invalid),
            "total_errors": self.error_count,
            "total_warnings": self.warning_count,
            "results": [r.to_dict() for r in self.results],
        }


def _location(path) -> str:
    return ".".join(str(p) for p in path) or "<root>"


class ConfigValidator:
    """
    Schema and consistency validation for the listing configuration.

    Schemas are read once per validator instance.
    """

    def __init__(self, config_dir: Optional[Path] = None, schema_dir: Optional[Path] = None):
        """
        Args:
            config_dir: Directory holding ``<name>.json`` (defaults to mytrip/config)
            schema_dir: Directory holding ``<name>.schema.json`` (defaults to <config_dir>/schemas)
        """
        self.config_dir = Path(config_dir) if config_dir else Path(__file__).resolve().parents[2] / "config"
        self.schema_dir = Path(schema_dir) if schema_dir else self.config_dir / "schemas"
        self._schemas: Dict[str, Dict[str, Any]] = {}

        logger.debug(f"ConfigValidator using configs in {self.config_dir}, schemas in {self.schema_dir}")

    @staticmethod
    def _read_json(path: Path) -> Dict[str, Any]:
        if not path.is_file():
            raise FileNotFoundError(f"{path} does not exist")
        return json.loads(path.read_text(encoding="utf-8"))

    def load_schema(self, schema_name: str) -> Dict[str, Any]:
        """
        Raises:
            FileNotFoundError: No schema file with that name
            json.JSONDecodeError: Schema file is not JSON
        """
        if schema_name not in self._schemas:
            self._schemas[schema_name] = self._read_json(self.schema_dir / f"{schema_name}.schema.json")
        return self._schemas[schema_name]

    def load_config(self, config_name: str) -> Dict[str, Any]:
        return self._read_json(self.config_dir / f"{config_name}.json")

    def validate_config_schema(self, config_name: str, schema_name: Optional[str] = None) -> ValidationResult:
        """
        Validate one config file against ``schemas/<schema_name>.schema.json``.

        Every schema violation becomes one error, prefixed with the dotted
        path of the offending value.
        """
        result = ValidationResult(config_name=config_name)

        try:
            config = self.load_config(config_name)
            schema = self.load_schema(schema_name or config_name)
            Draft7Validator.check_schema(schema)
        except FileNotFoundError as e:
            result.add_error(f"File not found: {e}")
            return result
        except json.JSONDecodeError as e:
            result.add_error(f"Invalid JSON: {e}")
            return result
        except SchemaError as e:
            result.add_error(f"Invalid schema: {e.message}")
            return result

        violations = sorted(Draft7Validator(schema).iter_errors(config), key=lambda err: list(err.path))
        for violation in violations:
            result.add_error(f"{_location(violation.path)}: {violation.message}")

        if result.is_valid:
            logger.info(f"Config '{config_name}' matches its schema")
        return result

    def validate_listing_consistency(self) -> ValidationResult:
        """
        Cross-field checks for the listing config.

        Errors: non-positive page size, empty keyword vocabulary, blank keyword
        or positive literal. Warnings: eager threshold below one page,
        non-numeric content type codes.
        """
        result = ValidationResult(config_name="listing_consistency")

        try:
            config = self.load_config(LISTING_CONFIG)
        except (FileNotFoundError, json.JSONDecodeError) as e:
            result.add_error(f"Cannot read {LISTING_CONFIG}: {e}")
            return result

        page_size = config.get("pagination", {}).get("page_size")
        if not isinstance(page_size, int) or isinstance(page_size, bool) or page_size < 1:
            result.add_error(f"pagination.page_size must be a positive integer, got {page_size!r}")
            page_size = None

        threshold = config.get("continuation", {}).get("eager_threshold")
        if page_size and isinstance(threshold, int) and threshold < page_size:
            result.add_warning(
                f"continuation.eager_threshold ({threshold}) is below one page ({page_size}); "
                f"eager loading stops after the first page"
            )

        annotation = config.get("annotation", {})
        keywords = annotation.get("keywords") or []
        if not keywords:
            result.add_error("annotation.keywords is empty; keyword activation would never trigger")
        if any(not str(k).strip() for k in keywords):
            result.add_error("annotation.keywords has a blank entry")
        if any(not str(v).strip() for v in annotation.get("positive_detail_values", [])):
            result.add_error("annotation.positive_detail_values has a blank entry")

        odd_codes = [code for code in config.get("content_types", {}) if not str(code).isdigit()]
        if odd_codes:
            result.add_warning(f"Non-numeric content type codes: {', '.join(odd_codes)}")

        return result

    def validate_all(self) -> ValidationReport:
        report = ValidationReport(results=[
            self.validate_config_schema(LISTING_CONFIG),
            self.validate_listing_consistency(),
        ])

        if report.overall_valid:
            logger.info(f"Configuration valid ({report.warning_count} warnings)")
        else:
            logger.error(f"Configuration invalid: {report.error_count} errors, {report.warning_count} warnings")
        return report


_validator: Optional[ConfigValidator] = None


def get_validator() -> ConfigValidator:
    global _validator
    if _validator is None:
        _validator = ConfigValidator()
    return _validator


def validate_configs_on_startup(strict: bool = False) -> Tuple[bool, Dict[str, Any]]:
    """
    Validate the shipped configuration before the engine is built.

    Args:
        strict: Raise instead of returning when validation fails

    Returns:
        (is_valid, report dict)

    Raises:
        ConfigurationError: Validation failed and ``strict`` is set
    """
    report = get_validator().validate_all()
    summary = report.to_dict()

    if not report.overall_valid:
        for result in report.results:
            for error in result.errors:
                logger.error(f"[{result.config_name}] {error}")
        if strict:
            raise ConfigurationError(f"Configuration validation failed with {report.error_count} errors")

    return report.overall_valid, summary
