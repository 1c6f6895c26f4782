"""
Configuration Service

Reads the JSON files under mytrip/config, caches them, and turns
listing_config.json into typed ListingSettings with secrets and endpoints
taken from the environment.
"""

import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from ...exceptions import ConfigurationError
from .settings import ListingSettings

logger = logging.getLogger(__name__)

load_dotenv()

LISTING_CONFIG_NAME = "listing_config"

# catalog field -> environment variables, first non-empty wins
CATALOG_ENV_OVERRIDES = {
    "api_key": ("TOUR_API_KEY", "NEXT_PUBLIC_TOUR_API_KEY"),
    "base_url": ("TOUR_API_BASE_URL",),
}


def _first_env(names) -> Optional[str]:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


class ConfigurationService:
    """
    Cached access to the JSON configs.

    ``load_config`` results are memoized per (instance, name); call
    ``reload_config`` after editing a file on disk.
    """

    def __init__(self, config_dir: Optional[str] = None):
        """
        Args:
            config_dir: Directory with ``<name>.json`` files; mytrip/config when omitted
        """
        self.config_dir = Path(config_dir) if config_dir else Path(__file__).resolve().parents[2] / "config"
        logger.debug(f"ConfigurationService reading from {self.config_dir}")

    @lru_cache(maxsize=32)
    def load_config(self, config_name: str) -> Dict[str, Any]:
        """
        Read ``<config_dir>/<config_name>.json``.

        Raises:
            FileNotFoundError: No such config
            json.JSONDecodeError: The file is not valid JSON
        """
        path = self.config_dir / f"{config_name}.json"
        if not path.is_file():
            logger.error(f"Missing config file {path}")
            raise FileNotFoundError(f"{path} does not exist")

        try:
            config = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.error(f"{path.name} is not valid JSON: {e}")
            raise

        logger.info(f"Config '{config_name}' loaded (version {config.get('version', '?')})")
        return config

    def reload_config(self, config_name: str) -> Dict[str, Any]:
        """Drop every cached config and read ``config_name`` again"""
        self.load_config.cache_clear()
        logger.info(f"Config cache cleared, re-reading '{config_name}'")
        return self.load_config(config_name)

    def get_listing_settings(self) -> ListingSettings:
        """
        Typed listing settings.

        Environment:
            TOUR_API_KEY / NEXT_PUBLIC_TOUR_API_KEY: catalog service key
            TOUR_API_BASE_URL: catalog base URL

        Raises:
            ConfigurationError: The file is missing, unreadable or fails validation
        """
        try:
            raw = dict(self.load_config(LISTING_CONFIG_NAME))
        except (FileNotFoundError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot load {LISTING_CONFIG_NAME}: {e}") from e

        catalog = dict(raw.get("catalog", {}))
        for field_name, env_names in CATALOG_ENV_OVERRIDES.items():
            value = _first_env(env_names)
            if value:
                catalog[field_name] = value
        raw["catalog"] = catalog

        try:
            return ListingSettings.model_validate(raw)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid {LISTING_CONFIG_NAME}: {e}") from e

    def get_page_size(self) -> int:
        return self.get_listing_settings().pagination.page_size

    def get_pet_keywords(self) -> List[str]:
        return self.get_listing_settings().annotation.keywords

    def get_content_types(self) -> Dict[str, str]:
        """Content type code -> label"""
        return self.get_listing_settings().content_types

    def get_content_type_label(self, content_type_id: str) -> Optional[str]:
        """Label for a catalog content type code such as "12" or "39"; None when unknown"""
        label = self.get_content_types().get(str(content_type_id))
        if label is None:
            logger.warning(f"Unknown content type code: {content_type_id}")
        return label


_config_service: Optional[ConfigurationService] = None


def get_config_service() -> ConfigurationService:
    """Process-wide ConfigurationService, created on first use"""
    global _config_service
    if _config_service is None:
        _config_service = ConfigurationService()
    return _config_service


def init_config_service(config_dir: Optional[str] = None) -> ConfigurationService:
    """Replace the process-wide ConfigurationService, e.g. to point it at another directory"""
    global _config_service
    _config_service = ConfigurationService(config_dir)
    logger.info(f"ConfigurationService replaced (config_dir: {_config_service.config_dir})")
    return _config_service
