# =============================================================================
# utils/config.py - Configuration management
# =============================================================================

import os
from typing import Optional, List
from dotenv import load_dotenv


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{value}'")


class Config:
    """Configuration management"""

    DEFAULT_TIMEOUT = 30
    DEFAULT_PAGE_SIZE = 500
    DEFAULT_INACTIVE_DAYS = 90

    def __init__(self, env_file: Optional[str] = None):
        load_dotenv(env_file)

    @property
    def ad_server(self) -> Optional[str]:
        return os.getenv("AD_SERVER")

    @property
    def ad_username(self) -> Optional[str]:
        return os.getenv("AD_USERNAME")

    @property
    def ad_password(self) -> Optional[str]:
        return os.getenv("AD_PASSWORD")

    @property
    def base_dn(self) -> Optional[str]:
        return os.getenv("BASE_DN")

    @property
    def use_ssl(self) -> bool:
        return _env_bool("AD_USE_SSL", True)

    @property
    def timeout(self) -> int:
        return _env_int("AD_TIMEOUT", self.DEFAULT_TIMEOUT)

    @property
    def page_size(self) -> int:
        return _env_int("AD_PAGE_SIZE", self.DEFAULT_PAGE_SIZE)

    @property
    def inactive_days(self) -> int:
        return _env_int("INACTIVE_DAYS", self.DEFAULT_INACTIVE_DAYS)

    @property
    def exclude_name_prefix(self) -> str:
        return os.getenv("EXCLUDE_NAME_PREFIX", "")

    @property
    def bypass_group_pattern(self) -> str:
        return os.getenv("BYPASS_GROUP_PATTERN", "")

    def validate_ad_config(self) -> bool:
        """Validate that all required AD configuration is present"""
        required = [self.ad_server, self.ad_username, self.ad_password, self.base_dn]
        return all(required)

    def get_missing_ad_vars(self) -> List[str]:
        """Get list of missing AD configuration variables"""
        vars_and_names = [
            (self.ad_server, "AD_SERVER"),
            (self.ad_username, "AD_USERNAME"),
            (self.ad_password, "AD_PASSWORD"),
            (self.base_dn, "BASE_DN")
        ]
        return [name for var, name in vars_and_names if not var]
