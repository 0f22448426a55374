"""
Settings for the ImpactConnect personalization service.

Values come from the process environment (a project-root ``.env`` is loaded
through python-dotenv when present) and are read on every access, so tests
and long-running servers see changes without a restart. Invalid values
raise ``ConfigurationError`` naming the offending variable.

Config Schema:
    ENVIRONMENT (str): Application environment (dev, test, prod)
    LOG_LEVEL (str): Logging level (DEBUG, INFO, WARNING, ERROR)
    CONTENTSTACK_API_KEY (str): Stack API key for the content delivery API
    CONTENTSTACK_DELIVERY_TOKEN (str): Delivery token for the content delivery API
    CONTENTSTACK_ENVIRONMENT (str): Publishing environment to read entries from
    CONTENTSTACK_REGION (str): Stack region (na, eu, azure-na, azure-eu)
    PERSONALIZE_PROJECT_UID (str): Personalize project UID (24 characters)
    PERSONALIZE_EDGE_API_URL (str): Override for the personalize edge API URL
    CAUSE_POLL_INTERVAL (float): Seconds between primary cause checks
    TIMEOUT_SECONDS (float): Timeout applied to every collaborator call
    MAX_RETRIES (int): Attempts for transient CMS errors
    MAX_CAROUSEL_ITEMS (int): Number of events shown in the carousel
    USER_DATA_PATH (str): JSON file backing the local attribute store
"""

import logging
import os
from pathlib import Path
from typing import Callable, Literal, Optional, Union

from dotenv import load_dotenv


class ConfigurationError(Exception):
    """Raised when a setting is missing or invalid."""
    pass


CDN_BASE_URLS = {
    'na': 'https://cdn.contentstack.io',
    'eu': 'https://eu-cdn.contentstack.io',
    'azure-na': 'https://azure-na-cdn.contentstack.io',
    'azure-eu': 'https://azure-eu-cdn.contentstack.io',
}

PERSONALIZE_EDGE_URLS = {
    'na': 'https://personalize-edge.contentstack.com',
    'eu': 'https://eu-personalize-edge.contentstack.com',
    'azure-na': 'https://azure-na-personalize-edge.contentstack.com',
    'azure-eu': 'https://azure-eu-personalize-edge.contentstack.com',
    'gcp-na': 'https://gcp-na-personalize-edge.contentstack.com',
    'aws-au': 'https://au-personalize-edge.contentstack.com',
}

Number = Union[int, float]


class Config:
    """
    Process-wide settings object.

    There is exactly one instance; ``Config()`` always returns it.
    """

    _instance: Optional['Config'] = None
    _initialized: bool = False

    def __new__(cls) -> 'Config':
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if not self._initialized:
            env_path = Path(__file__).parent.parent / '.env'
            if env_path.exists():
                load_dotenv(env_path)
            self._initialized = True

    @staticmethod
    def _flag(name: str, default: str) -> bool:
        return os.getenv(name, default).lower() in ('true', '1', 'yes', 'on')

    @staticmethod
    def _number(name: str, default: str, cast: Callable[[str], Number] = int, allow_zero: bool = False) -> Number:
        """Read a numeric setting that must be positive (or non-negative with ``allow_zero``)."""
        raw = os.getenv(name, default)
        try:
            value = cast(raw)
        except ValueError:
            raise ConfigurationError(f"Invalid {name}: {raw!r} is not a number")
        if value < 0 or (value == 0 and not allow_zero):
            bound = "non-negative" if allow_zero else "positive"
            raise ConfigurationError(f"Invalid {name}: must be {bound}, got {value}")
        return value

    @property
    def ENVIRONMENT(self) -> Literal['dev', 'test', 'prod']:
        env = os.getenv('ENVIRONMENT', 'dev').lower()
        if env not in ('dev', 'test', 'prod'):
            raise ConfigurationError(f"ENVIRONMENT must be one of 'dev', 'test', 'prod', got '{env}'")
        return env  # type: ignore

    @property
    def LOG_LEVEL(self) -> str:
        level = os.getenv('LOG_LEVEL', 'INFO').upper()
        valid_levels = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')
        if level not in valid_levels:
            raise ConfigurationError(f"LOG_LEVEL must be one of {valid_levels}, got '{level}'")
        return level

    @property
    def USE_LOGURU(self) -> bool:
        """loguru sink instead of a standard logging handler."""
        return self._flag('USE_LOGURU', 'true')

    # Content delivery
    @property
    def CONTENTSTACK_API_KEY(self) -> str:
        return os.getenv('CONTENTSTACK_API_KEY', '')

    @property
    def CONTENTSTACK_DELIVERY_TOKEN(self) -> str:
        return os.getenv('CONTENTSTACK_DELIVERY_TOKEN', '')

    @property
    def CONTENTSTACK_ENVIRONMENT(self) -> str:
        """Publishing environment entries are read from."""
        return os.getenv('CONTENTSTACK_ENVIRONMENT', '')

    @property
    def CONTENTSTACK_REGION(self) -> str:
        region = os.getenv('CONTENTSTACK_REGION', 'na').lower()
        if region not in CDN_BASE_URLS:
            raise ConfigurationError(
                f"CONTENTSTACK_REGION must be one of {tuple(CDN_BASE_URLS)}, got '{region}'"
            )
        return region

    @property
    def CONTENTSTACK_BRANCH(self) -> Optional[str]:
        return os.getenv('CONTENTSTACK_BRANCH') or None

    @property
    def CONTENTSTACK_LOCALE(self) -> str:
        return os.getenv('CONTENTSTACK_LOCALE', 'en-us')

    @property
    def CONTENTSTACK_BASE_URL(self) -> str:
        """Delivery API base URL for the configured region."""
        return CDN_BASE_URLS[self.CONTENTSTACK_REGION]

    @property
    def LANDING_PAGE_ENTRY_UID(self) -> str:
        """Entry UID of the singleton landing page."""
        return os.getenv('LANDING_PAGE_ENTRY_UID', 'blta0c7d89703e07f46')

    # Personalization
    @property
    def PERSONALIZE_PROJECT_UID(self) -> str:
        return os.getenv('PERSONALIZE_PROJECT_UID', '')

    @property
    def PERSONALIZE_EDGE_API_URL(self) -> str:
        """Edge API URL, derived from the region unless overridden."""
        override = os.getenv('PERSONALIZE_EDGE_API_URL')
        if override:
            return override.rstrip('/')
        region = os.getenv('CONTENTSTACK_REGION', 'na').lower()
        return PERSONALIZE_EDGE_URLS.get(region, PERSONALIZE_EDGE_URLS['na'])

    @property
    def CAUSE_POLL_INTERVAL(self) -> float:
        """Seconds between primary cause change checks."""
        return self._number('CAUSE_POLL_INTERVAL', '3.0', float)

    # Collaborator I/O
    @property
    def TIMEOUT_SECONDS(self) -> float:
        return self._number('TIMEOUT_SECONDS', '10', float)

    @property
    def MAX_RETRIES(self) -> int:
        return self._number('MAX_RETRIES', '3', allow_zero=True)

    @property
    def ENABLE_RETRY_LOGIC(self) -> bool:
        """Retry transient CMS errors with tenacity."""
        return self._flag('ENABLE_RETRY_LOGIC', 'true')

    @property
    def MAX_CAROUSEL_ITEMS(self) -> int:
        return self._number('MAX_CAROUSEL_ITEMS', '4')

    @property
    def CAROUSEL_FETCH_LIMIT(self) -> int:
        """Entries fetched before cause filtering."""
        return self._number('CAROUSEL_FETCH_LIMIT', '50')

    @property
    def USER_DATA_PATH(self) -> str:
        """JSON file backing the local attribute store."""
        return os.getenv('USER_DATA_PATH', './data/user_data.json')

    # MCP server
    @property
    def ENABLE_PROMETHEUS_METRICS(self) -> bool:
        return self._flag('ENABLE_PROMETHEUS_METRICS', 'true')

    @property
    def ENABLE_RATE_LIMITING(self) -> bool:
        return self._flag('ENABLE_RATE_LIMITING', 'true')

    @property
    def RATE_LIMIT_REQUESTS(self) -> int:
        """Tool calls allowed per rate limit window."""
        return self._number('RATE_LIMIT_REQUESTS', '100')

    @property
    def RATE_LIMIT_WINDOW(self) -> int:
        """Rate limit window in seconds."""
        return self._number('RATE_LIMIT_WINDOW', '60')

    def has_cms_credentials(self) -> bool:
        """Whether the delivery API can be called at all."""
        return bool(
            self.CONTENTSTACK_API_KEY
            and self.CONTENTSTACK_DELIVERY_TOKEN
            and self.CONTENTSTACK_ENVIRONMENT
        )

    def validate(self) -> None:
        """
        Check every setting and report all problems at once.

        Personalization settings are optional: a missing project UID only
        disables attribute pushes, so it is logged rather than rejected.

        Raises:
            ConfigurationError: If CMS credentials are missing or any value is invalid.
        """
        errors = []

        for name in ('CONTENTSTACK_API_KEY', 'CONTENTSTACK_DELIVERY_TOKEN', 'CONTENTSTACK_ENVIRONMENT'):
            if not getattr(self, name).strip():
                errors.append(f"{name} is required but not set or empty")

        project_uid = self.PERSONALIZE_PROJECT_UID
        if project_uid and len(project_uid) != 24:
            logging.warning(f"PERSONALIZE_PROJECT_UID should be 24 characters, got {len(project_uid)}")

        for name in (
            'ENVIRONMENT', 'LOG_LEVEL', 'CONTENTSTACK_REGION', 'CAUSE_POLL_INTERVAL',
            'TIMEOUT_SECONDS', 'MAX_RETRIES', 'MAX_CAROUSEL_ITEMS', 'CAROUSEL_FETCH_LIMIT',
            'RATE_LIMIT_REQUESTS', 'RATE_LIMIT_WINDOW',
        ):
            try:
                getattr(self, name)
            except ConfigurationError as e:
                errors.append(str(e))

        if errors:
            error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {error}" for error in errors)
            raise ConfigurationError(error_msg)

    def is_development(self) -> bool:
        return self.ENVIRONMENT == 'dev'

    def is_test(self) -> bool:
        return self.ENVIRONMENT == 'test'

    def is_production(self) -> bool:
        return self.ENVIRONMENT == 'prod'

    def to_dict(self) -> dict:
        """Settings as a dictionary for debugging, with credentials masked."""
        secrets = ('CONTENTSTACK_API_KEY', 'CONTENTSTACK_DELIVERY_TOKEN', 'PERSONALIZE_PROJECT_UID')
        names = (
            'ENVIRONMENT', 'LOG_LEVEL', 'USE_LOGURU', *secrets,
            'CONTENTSTACK_ENVIRONMENT', 'CONTENTSTACK_REGION', 'PERSONALIZE_EDGE_API_URL',
            'CAUSE_POLL_INTERVAL', 'TIMEOUT_SECONDS', 'MAX_RETRIES', 'ENABLE_RETRY_LOGIC',
            'MAX_CAROUSEL_ITEMS', 'USER_DATA_PATH', 'ENABLE_PROMETHEUS_METRICS',
            'ENABLE_RATE_LIMITING', 'RATE_LIMIT_REQUESTS', 'RATE_LIMIT_WINDOW',
        )
        settings = {}
        for name in names:
            value = getattr(self, name)
            settings[name] = ('***' if value else '') if name in secrets else value
        return settings

    def __repr__(self) -> str:
        return f"Config({', '.join(f'{k}={v}' for k, v in self.to_dict().items())})"


# Global configuration instance
config = Config()
