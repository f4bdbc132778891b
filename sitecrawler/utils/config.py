"""
Configuration management for the web crawler system.
"""

import yaml
import logging
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse
from dataclasses import dataclass, field


@dataclass
class CrawlerConfig:
    """Configuration for crawler behavior."""
    root_url: str
    worker_count: int = 4
    user_agent: str = "sitecrawler/1.0"
    request_timeout: Optional[float] = None
    max_content_size: Optional[int] = None
    stats_interval: float = 30.0

    @property
    def base_prefix(self) -> str:
        """Prefix every crawled URL must start with."""
        return self.root_url


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"
    file: str = "logs/crawler.log"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    json: bool = False


@dataclass
class MonitoringConfig:
    """Configuration for monitoring."""
    prometheus_port: int = 8000
    metrics_enabled: bool = False


@dataclass
class Config:
    """Main configuration class."""
    crawler: CrawlerConfig
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    @classmethod
    def from_dict(cls, config_data: Dict[str, Any]) -> 'Config':
        """Build configuration from a parsed YAML mapping."""
        if not config_data or 'crawler' not in config_data:
            raise ValueError("Configuration must contain a 'crawler' section")

        return cls(
            crawler=CrawlerConfig(**config_data['crawler']),
            logging=LoggingConfig(**(config_data.get('logging') or {})),
            monitoring=MonitoringConfig(**(config_data.get('monitoring') or {}))
        )

    @classmethod
    def for_root(cls, root_url: str, worker_count: int = 4) -> 'Config':
        """Build a default configuration for a single root URL."""
        config = cls(crawler=CrawlerConfig(root_url=root_url, worker_count=worker_count))
        validate_config(config)
        return config


def validate_config(config: Config):
    """Validate configuration values."""
    root_url = config.crawler.root_url
    if not root_url:
        raise ValueError("A root URL must be provided")

    parsed = urlparse(root_url)
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise ValueError(f"Root URL must be an absolute http(s) URL: {root_url}")

    if config.crawler.worker_count < 1:
        raise ValueError("worker_count must be at least 1")

    if config.crawler.request_timeout is not None and config.crawler.request_timeout <= 0:
        raise ValueError("request_timeout must be positive")

    if config.crawler.max_content_size is not None and config.crawler.max_content_size <= 0:
        raise ValueError("max_content_size must be positive")

    if config.crawler.stats_interval <= 0:
        raise ValueError("stats_interval must be positive")


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_path: str = "config.yaml"):
        self.config_path = Path(config_path)
        self._config: Optional[Config] = None

    def load_config(self, overrides: Optional[Dict[str, Any]] = None) -> Config:
        """
        Load configuration from YAML file.

        Args:
            overrides: crawler settings that take precedence over the file
                (None values are ignored)
        """
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, 'r') as file:
            config_data = yaml.safe_load(file) or {}

        if overrides:
            crawler_data = config_data.setdefault('crawler', {})
            crawler_data.update({k: v for k, v in overrides.items() if v is not None})

        self._config = Config.from_dict(config_data)
        validate_config(self._config)

        logging.getLogger(__name__).debug("Configuration validation passed")
        return self._config

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            raise ValueError("Configuration not loaded. Call load_config() first.")
        return self._config


def load_config(config_path: str = "config.yaml",
                overrides: Optional[Dict[str, Any]] = None) -> Config:
    """Load configuration from file."""
    return ConfigManager(config_path).load_config(overrides)
