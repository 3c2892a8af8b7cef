"""Configuration loader with YAML support and environment variable substitution."""

import copy
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict
from urllib.parse import urlparse

import yaml

SIDES = ('source', 'destination')


@dataclass(frozen=True)
class InstanceConfig:
    """Base URL and API token pair for one BookStack instance."""

    base_url: str
    token_id: str
    token_secret: str = field(repr=False)

    def auth_header(self) -> str:
        """Value for the Authorization header."""
        return f'Token {self.token_id}:{self.token_secret}'

    @classmethod
    def from_config(cls, config: Dict[str, Any], side: str) -> 'InstanceConfig':
        """
        Build the credential context for one side of the sync.

        Args:
            config: Loaded configuration dictionary
            side: 'source' or 'destination'

        Returns:
            InstanceConfig for that side
        """
        if side not in SIDES:
            raise ValueError(f"side must be one of {SIDES}, got '{side}'")

        section = config.get(side, {})
        return cls(
            base_url=(section.get('base_url') or '').rstrip('/'),
            token_id=section.get('token_id') or '',
            token_secret=section.get('token_secret') or ''
        )


class ConfigLoader:
    """Handles loading and validation of configuration files."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from YAML file with environment variable substitution.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If YAML parsing fails
        """
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f)

        if not isinstance(config_data, dict):
            raise ValueError("Configuration file must contain a dictionary")

        return cls._substitute_env_vars_recursive(config_data)

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> None:
        """
        Validate configuration for required fields and correct values.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ValueError: If validation fails
        """
        for side in SIDES:
            cls._validate_required_field(config, f'{side}.base_url')
            cls._validate_required_field(config, f'{side}.token_id')
            cls._validate_required_field(config, f'{side}.token_secret')
            cls._validate_url(get_nested(config, f'{side}.base_url'), f'{side}.base_url')

        source_url = get_nested(config, 'source.base_url', '').rstrip('/')
        destination_url = get_nested(config, 'destination.base_url', '').rstrip('/')
        if (source_url == destination_url
                and get_nested(config, 'source.token_id') == get_nested(config, 'destination.token_id')):
            raise ValueError(
                "source and destination point at the same instance with the same token"
            )

        book_id = get_nested(config, 'sync.book_id')
        if book_id is not None and (not isinstance(book_id, int) or book_id < 1):
            raise ValueError("sync.book_id must be a positive integer")

        page_workers = get_nested(config, 'sync.page_workers', 1)
        if not isinstance(page_workers, int) or page_workers < 1:
            raise ValueError("sync.page_workers must be a positive integer")

        timeout = get_nested(config, 'advanced.request_timeout', 30)
        if not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ValueError("advanced.request_timeout must be a positive number")

        max_retries = get_nested(config, 'advanced.max_retries', 3)
        if not isinstance(max_retries, int) or max_retries < 0:
            raise ValueError("advanced.max_retries must be a non-negative integer")

        rate_limit = get_nested(config, 'advanced.rate_limit', 0.0)
        if not isinstance(rate_limit, (int, float)) or rate_limit < 0:
            raise ValueError("advanced.rate_limit must be a non-negative number")

    @classmethod
    def merge_with_args(cls, config: Dict[str, Any], args) -> Dict[str, Any]:
        """
        Merge configuration file with CLI arguments.
        CLI arguments take precedence over config file values.

        Args:
            config: Base configuration dictionary
            args: CLI arguments with attributes matching config keys

        Returns:
            Merged configuration dictionary
        """
        merged = copy.deepcopy(config)

        for section in ('sync', 'logging'):
            if section not in merged:
                merged[section] = {}

        if getattr(args, 'book_id', None) is not None:
            merged['sync']['book_id'] = args.book_id

        if getattr(args, 'page_workers', None) is not None:
            merged['sync']['page_workers'] = args.page_workers

        if getattr(args, 'report_path', None):
            merged['sync']['report_path'] = args.report_path

        if getattr(args, 'log_file', None):
            merged['logging']['file'] = args.log_file

        verbose = getattr(args, 'verbose', 0)
        if verbose >= 2:
            merged['logging']['level'] = 'DEBUG'
        elif verbose == 1:
            merged['logging']['level'] = 'INFO'

        return merged

    @classmethod
    def _substitute_env_vars_recursive(cls, data: Any) -> Any:
        """Recursively substitute environment variables in data structure."""
        if isinstance(data, dict):
            return {key: cls._substitute_env_vars_recursive(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [cls._substitute_env_vars_recursive(item) for item in data]
        elif isinstance(data, str):
            return cls._substitute_env_vars(data)
        else:
            return data

    @classmethod
    def _substitute_env_vars(cls, value: str) -> str:
        """Substitute environment variables in a string value."""
        def replace_match(match):
            env_value = os.getenv(match.group(1))
            return env_value if env_value is not None else match.group(0)

        return cls.ENV_VAR_PATTERN.sub(replace_match, value)

    @staticmethod
    def _validate_required_field(config_section: dict, field_path: str) -> None:
        """Validate that a required field exists and has a value."""
        value = get_nested(config_section, field_path)
        if value is None or value == '':
            raise ValueError(f"Missing required configuration: {field_path}")

        if isinstance(value, str) and '${' in value:
            match = ConfigLoader.ENV_VAR_PATTERN.search(value)
            var_name = match.group(1) if match else value
            raise ValueError(
                f"Configuration field '{field_path}' contains unsubstituted environment variable: {value}. "
                f"Please set the {var_name} environment variable or provide a value in config file."
            )

    @staticmethod
    def _validate_url(url: str, field_name: str) -> None:
        """Validate URL format."""
        parsed = urlparse(url)
        if not parsed.scheme or parsed.scheme not in ['http', 'https']:
            raise ValueError(f"{field_name} must use http or https scheme: {url}")
        if not parsed.netloc:
            raise ValueError(f"{field_name} missing hostname: {url}")


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Safely retrieve nested configuration values using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "source.base_url")
        default: Default value if path doesn't exist

    Returns:
        Value at the nested path or default
    """
    value = config

    for key in path.split('.'):
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value


__all__ = ['ConfigLoader', 'InstanceConfig', 'get_nested']
