"""Configuration handling for the Tweet Refetcher."""

import logging
import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

import yaml
from dotenv import dotenv_values, load_dotenv

from tweet_refetcher.errors import ConfigurationError, CredentialsError

logger = logging.getLogger(__name__)

# Max number of IDs accepted by GET statuses/lookup
MAX_LOOKUP_BATCH_SIZE = 100


@dataclass
class RateLimitConfig:
    """Rate limiting configuration."""

    min_remaining_calls: int = 10
    min_seconds_until_reset: int = 10
    sleep_buffer_sec: int = 5


@dataclass
class MonitoringConfig:
    """Monitoring configuration."""

    enable_prometheus: bool = False
    prometheus_port: int = 8000


@dataclass
class ProxyConfig:
    """HTTP proxy settings handed to the Twitter client."""

    host: str = ""
    port: int = 0
    user: str = ""
    password: str = ""

    @property
    def enabled(self) -> bool:
        return bool(self.host)

    @property
    def needs_password(self) -> bool:
        """True when a proxy host is configured but no password was supplied."""
        return self.enabled and not self.password

    @property
    def url(self) -> Optional[str]:
        if not self.enabled:
            return None
        return f"http://{self.host}:{self.port}" if self.port else f"http://{self.host}"


@dataclass
class Config:
    """Application configuration combining properties files, YAML and environment."""

    # Twitter OAuth 1.0a credentials
    consumer_key: str = ""
    consumer_secret: str = ""
    access_token: str = ""
    access_token_secret: str = ""

    api_base_url: str = "https://api.twitter.com/1.1"
    request_timeout_sec: int = 30
    batch_size: int = MAX_LOOKUP_BATCH_SIZE
    tweet_mode: str = "extended"
    include_entities: bool = True
    debug: bool = False

    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)
    proxy: ProxyConfig = field(default_factory=ProxyConfig)

    @classmethod
    def from_files(
        cls,
        credentials_path: str,
        proxy_path: Optional[str] = None,
        config_path: Optional[str] = None,
        env_path: Optional[str] = None,
    ) -> "Config":
        """
        Load configuration from the credentials file, proxy file, YAML and environment.

        Args:
            credentials_path: Properties file with the Twitter OAuth credentials
            proxy_path: Optional properties file with proxy settings
            config_path: Optional YAML file with refetch settings
            env_path: Optional path to .env file (defaults to .env in current directory)

        Returns:
            Config instance with merged configuration

        Raises:
            CredentialsError: If the credentials file cannot be read
            ConfigurationError: If the YAML file is malformed or has badly typed values
        """
        if env_path:
            load_dotenv(env_path)
        else:
            load_dotenv()

        config = cls()

        credentials = load_properties(credentials_path)
        config.consumer_key = os.getenv(
            "TWITTER_CONSUMER_KEY", credentials.get("oauth.consumerKey") or ""
        )
        config.consumer_secret = os.getenv(
            "TWITTER_CONSUMER_SECRET", credentials.get("oauth.consumerSecret") or ""
        )
        config.access_token = os.getenv(
            "TWITTER_ACCESS_TOKEN", credentials.get("oauth.accessToken") or ""
        )
        config.access_token_secret = os.getenv(
            "TWITTER_ACCESS_TOKEN_SECRET", credentials.get("oauth.accessTokenSecret") or ""
        )

        # A missing proxy file just means no proxy
        if proxy_path and os.path.exists(proxy_path):
            try:
                config.proxy = load_proxy_config(proxy_path)
            except CredentialsError as e:
                logger.error(f"Attempted and failed to load {proxy_path}: {e}")

        if config_path and os.path.exists(config_path):
            config.apply_yaml(load_yaml_settings(config_path))

        return config

    def apply_yaml(self, settings: Dict[str, Any]) -> None:
        """
        Overlay settings from the YAML file onto this configuration.

        Unknown keys are ignored. Values are converted to the type of the
        setting they replace.

        Raises:
            ConfigurationError: If a value cannot be converted
        """
        nested = {"rate_limit": RateLimitConfig, "monitoring": MonitoringConfig}
        known = {f.name for f in fields(self)} - set(nested) - {"proxy"}
        for key, value in settings.items():
            if key not in known:
                continue
            setattr(self, key, _coerce(key, value, getattr(self, key)))

        for section, section_class in nested.items():
            if section not in settings:
                continue
            values = settings[section]
            if not isinstance(values, dict):
                raise ConfigurationError(f"{section} must be a mapping of settings")
            section_config = section_class()
            section_fields = {f.name for f in fields(section_config)}
            for key, value in values.items():
                if key in section_fields:
                    current = getattr(section_config, key)
                    setattr(section_config, key, _coerce(f"{section}.{key}", value, current))
            setattr(self, section, section_config)

    def validate(self) -> List[str]:
        """
        Validate configuration and return a list of validation errors.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if not self.consumer_key:
            errors.append("Missing oauth.consumerKey in credentials")
        if not self.consumer_secret:
            errors.append("Missing oauth.consumerSecret in credentials")
        if not self.access_token:
            errors.append("Missing oauth.accessToken in credentials")
        if not self.access_token_secret:
            errors.append("Missing oauth.accessTokenSecret in credentials")

        if not 1 <= self.batch_size <= MAX_LOOKUP_BATCH_SIZE:
            errors.append(f"batch_size must be between 1 and {MAX_LOOKUP_BATCH_SIZE}")
        if self.request_timeout_sec <= 0:
            errors.append("request_timeout_sec must be greater than 0")
        if self.rate_limit.sleep_buffer_sec < 0:
            errors.append("rate_limit.sleep_buffer_sec must not be negative")

        if self.proxy.enabled and not 0 < self.proxy.port < 65536:
            errors.append("http.proxyPort must be a valid port when http.proxyHost is set")

        return errors


def load_properties(path: str) -> Dict[str, Optional[str]]:
    """
    Load a Java-style ``key=value`` properties file.

    Raises:
        CredentialsError: If the file does not exist or cannot be read
    """
    if not os.path.isfile(path):
        raise CredentialsError(f"Properties file not found: {path}")
    try:
        return dict(dotenv_values(path, encoding="utf-8"))
    except OSError as e:
        raise CredentialsError(f"Failed to read {path}: {e}") from e


def load_proxy_config(path: str) -> ProxyConfig:
    """Build a ProxyConfig from a ``http.proxy*`` properties file."""
    properties = load_properties(path)
    port = properties.get("http.proxyPort") or "0"
    try:
        port_number = int(port)
    except ValueError:
        port_number = -1
    return ProxyConfig(
        host=properties.get("http.proxyHost") or "",
        port=port_number,
        user=properties.get("http.proxyUser") or "",
        password=properties.get("http.proxyPassword") or "",
    )


def load_yaml_settings(path: str) -> Dict[str, Any]:
    """
    Read the YAML settings file.

    Raises:
        ConfigurationError: If the file is not valid YAML or not a mapping
    """
    try:
        with open(path, "r", encoding="utf-8") as file:
            settings = yaml.safe_load(file)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Malformed YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Failed to read {path}: {e}") from e

    if settings is None:
        return {}
    if not isinstance(settings, dict):
        raise ConfigurationError(f"{path} must hold a mapping of settings")
    return settings


def _coerce(name: str, value: Any, current: Any) -> Any:
    """Convert a YAML value to the type of the setting's current value."""
    expected = type(current)
    if expected is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
        raise ConfigurationError(f"{name} must be true or false, got {value!r}")

    if expected is str:
        if isinstance(value, (dict, list)) or value is None:
            raise ConfigurationError(f"{name} must be a string, got {value!r}")
        return str(value)

    if isinstance(value, expected) and not isinstance(value, bool):
        return value
    try:
        # str() first so that 1.5 and True are rejected rather than truncated
        return expected(str(value).strip())
    except ValueError as e:
        raise ConfigurationError(f"{name} must be {expected.__name__}, got {value!r}") from e
