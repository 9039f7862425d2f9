from dataclasses import dataclass, field
from typing import Dict, Any, Optional, Set
import json
import os
import logging
from pathlib import Path

from models import Platform
from services.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE_TEMPLATE = '🔴 **{streamer}** is now live on {platform}!\n\n**{title}**\n{url}'


@dataclass
class MonitorSettings:
    """Options consumed by the monitor, scrapers and official clients"""
    check_interval_minutes: float = 5
    warmup_delay: float = 5.0
    max_retries: int = 3
    timeout_ms: int = 30000
    batch_size: int = 3
    retry_delay: float = 2.0
    batch_pause: float = 1.0
    enabled_platforms: Set[Platform] = field(default_factory=lambda: set(Platform))
    database_type: str = 'sqlite'
    database_path: str = 'bot_data.db'
    log_level: str = 'INFO'
    log_channel_id: Optional[int] = None
    default_template: str = DEFAULT_MESSAGE_TEMPLATE

    @property
    def check_interval_seconds(self) -> float:
        return self.check_interval_minutes * 60

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000

    def is_enabled(self, platform: Platform) -> bool:
        return platform in self.enabled_platforms


class ConfigManager:
    """Manages application configuration.

    Values come from ``config.json`` and are overridden by environment
    variables, so deployments can be configured without touching the file.
    """

    ENV_OVERRIDES = {
        'STREAM_CHECK_INTERVAL': ('check_interval_minutes', float),
        'SCRAPER_MAX_RETRIES': ('max_retries', int),
        'SCRAPER_TIMEOUT_MS': ('timeout_ms', int),
        'SCRAPER_BATCH_SIZE': ('batch_size', int),
        'DATABASE_TYPE': ('database_type', str),
        'DATABASE_PATH': ('database_path', str),
        'LOG_LEVEL': ('log_level', str),
        'LOG_CHANNEL_ID': ('log_channel_id', int),
    }

    CREDENTIAL_KEYS = {
        Platform.TWITCH: ('client_id', 'client_secret'),
        Platform.YOUTUBE: ('api_key',),
    }

    def __init__(self, config_path: str = "config.json", environ: Optional[Dict[str, str]] = None):
        self.config_path = Path(config_path)
        self.environ = os.environ if environ is None else environ
        self._config: Dict[str, Any] = {}
        self._load_config()

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value"""
        return self._config.get(key, default)

    def get_platform_credentials(self, platform: Platform) -> Dict[str, str]:
        """Get platform-specific credentials"""
        platform_config = self._config.get('platforms', {}).get(platform.value, {})

        # Also check environment variables
        env_prefix = platform.value.upper()
        env_credentials = {
            key.replace(f"{env_prefix}_", '').lower(): value
            for key, value in self.environ.items()
            if key.startswith(f"{env_prefix}_")
        }

        return {**platform_config, **env_credentials}

    def has_credentials(self, platform: Platform) -> bool:
        credentials = self.get_platform_credentials(platform)
        return all(credentials.get(key) for key in self.CREDENTIAL_KEYS.get(platform, ()))

    def monitor_settings(self) -> MonitorSettings:
        """Build validated monitor settings"""
        values = dict(self._config.get('monitor', {}))

        for env_name, (key, cast) in self.ENV_OVERRIDES.items():
            raw = self.environ.get(env_name)
            if raw is None or raw == '':
                continue
            try:
                values[key] = cast(raw)
            except ValueError:
                raise ConfigurationError(f"Invalid value for {env_name}: {raw!r}") from None

        values['enabled_platforms'] = self._enabled_platforms(values.pop('enabled_platforms', None))
        known = set(MonitorSettings.__dataclass_fields__)
        unknown = set(values) - known
        if unknown:
            logger.warning(f"Ignoring unknown monitor options: {', '.join(sorted(unknown))}")
            for key in unknown:
                values.pop(key)

        settings = MonitorSettings(**values)
        self._validate(settings)
        return settings

    def _enabled_platforms(self, configured) -> Set[Platform]:
        if configured is None:
            enabled = set(Platform)
        else:
            try:
                enabled = {Platform.from_value(name) for name in configured}
            except ValueError as e:
                raise ConfigurationError(f"Invalid enabled_platforms: {e}") from None

        for platform in Platform:
            flag = self.environ.get(f"ENABLE_{platform.value.upper()}")
            if flag is None:
                continue
            if flag.strip().lower() in ('1', 'true', 'yes', 'on'):
                enabled.add(platform)
            else:
                enabled.discard(platform)

        for platform in list(enabled):
            if platform.is_api_backed and not self.has_credentials(platform):
                logger.warning(f"Disabling {platform.display_name}: missing API credentials")
                enabled.discard(platform)

        return enabled

    @staticmethod
    def _validate(settings: MonitorSettings) -> None:
        if settings.check_interval_minutes <= 0:
            raise ConfigurationError("check_interval_minutes must be positive")
        if settings.max_retries < 1:
            raise ConfigurationError("max_retries must be at least 1")
        if settings.timeout_ms <= 0:
            raise ConfigurationError("timeout_ms must be positive")
        if settings.batch_size < 1:
            raise ConfigurationError("batch_size must be at least 1")
        if settings.database_type not in ('sqlite', 'memory'):
            raise ConfigurationError(f"Unsupported database type: {settings.database_type}")
        if not isinstance(logging.getLevelName(settings.log_level.upper()), int):
            raise ConfigurationError(f"Unknown log level: {settings.log_level}")

    def _load_config(self) -> None:
        """Load configuration from file"""
        if not self.config_path.exists():
            self._config = self._get_default_config()
            return
        try:
            with open(self.config_path, 'r') as f:
                self._config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading config: {e}")
            self._config = self._get_default_config()

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration"""
        return {
            'monitor': {},
            'platforms': {
                'twitch': {},
                'youtube': {}
            }
        }
