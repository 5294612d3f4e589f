"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a dedicated
configuration file (~/.promptlens/config.yaml). ``load_analysis_settings``
collects everything the analysis pipeline needs into one immutable object.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Dict, List, Tuple

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".promptlens"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"

DEFAULT_MODEL = "gpt-4o"
DEFAULT_TEMPERATURE = 0.4
DEFAULT_OPTIMAL_TOKEN_LEN = 4820
DEFAULT_MAX_OPTIMAL_TOKEN_LEN = 9820
DEFAULT_MAX_TOTAL_TOKENS = 128000
DEFAULT_REQUEST_TIMEOUT_SECONDS = 60.0
DEFAULT_RATE_LIMIT_WINDOW_SECONDS = 1.0
DEFAULT_RATE_LIMIT_MAX_CALLERS = 10000
DEFAULT_ALLOWED_ORIGIN_REGEX = r"^chrome-extension://.*"

# --- Global Configuration Store (Simple Approach) ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}  # For testing purposes
_loaded = False

def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Default values

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
    """
    global _config, _loaded
    if _loaded:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    # 1. Load from YAML file (Lowest priority)
    if config_file.exists():
        try:
            with open(config_file, 'r') as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(_flatten(yaml_config))
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. Load from .env file (Medium priority)
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        # override=False: ENV VARS take precedence
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("Skipping .env file loading (no .env found at or above current directory).")

    # 3. Environment Variables (Highest priority) are handled in get_config

    _loaded = True
    logger.info("Configuration loading process completed.")

def _flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Flattens nested YAML mappings into dotted keys ('analysis.model')."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, dict):
            flat.update(_flatten(value, dotted))
        else:
            flat[dotted] = value
    return flat

def _env_name(key: str) -> str:
    return key.upper().replace('.', '_')

def _coerce(value: str) -> Any:
    if value.lower() == 'true':
        return True
    if value.lower() == 'false':
        return False
    try:
        if '.' in value:
            return float(value)
        return int(value)
    except (ValueError, TypeError):
        return value

def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by key.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable (key upper-cased, dots replaced by underscores)
    3. YAML config
    4. Default value

    Args:
        key: The configuration key, e.g. 'analysis.optimal_token_len'
        default: Default value if the key is not found

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = _env_name(key)
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    if key in _config:
        return _config[key]

    logger.debug(f"Config key '{key}' not found in environment or loaded config. Returning default: {default}")
    return default

def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None

# --- Convenience Functions ---

def get_openai_api_key() -> Optional[str]:
    """Convenience function to get the OpenAI API key."""
    # Checks ENV OPENAI_API_KEY first, then yaml openai.api_key
    key = get_config('OPENAI_API_KEY') or get_config('openai.api_key')
    return str(key) if key is not None else None

def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(',') if item.strip()]
    return [str(item) for item in value]

@dataclass(frozen=True)
class AnalysisSettings:
    """Immutable snapshot of the analysis configuration for one process."""
    model: str = DEFAULT_MODEL
    openai_api_key: Optional[str] = None
    temperature: float = DEFAULT_TEMPERATURE
    optimal_token_len: int = DEFAULT_OPTIMAL_TOKEN_LEN
    max_optimal_token_len: int = DEFAULT_MAX_OPTIMAL_TOKEN_LEN
    max_total_tokens: int = DEFAULT_MAX_TOTAL_TOKENS
    request_timeout_seconds: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    tokenizer_encoding: Optional[str] = None
    rate_limit_window_seconds: float = DEFAULT_RATE_LIMIT_WINDOW_SECONDS
    rate_limit_max_callers: int = DEFAULT_RATE_LIMIT_MAX_CALLERS
    allowed_origins: Tuple[str, ...] = field(default_factory=tuple)
    allowed_origin_regex: str = DEFAULT_ALLOWED_ORIGIN_REGEX
    weight_by_token_share: bool = False

    def __post_init__(self):
        if self.optimal_token_len <= 0 or self.max_optimal_token_len <= 0:
            raise ValueError("Token lengths must be positive.")
        if self.max_total_tokens <= 0:
            raise ValueError("max_total_tokens must be positive.")

def load_analysis_settings() -> AnalysisSettings:
    """Builds AnalysisSettings from the layered configuration."""
    load_configuration()
    settings = AnalysisSettings(
        model=str(get_config('analysis.model', DEFAULT_MODEL)),
        openai_api_key=get_openai_api_key(),
        temperature=float(get_config('analysis.temperature', DEFAULT_TEMPERATURE)),
        optimal_token_len=int(get_config('analysis.optimal_token_len', DEFAULT_OPTIMAL_TOKEN_LEN)),
        max_optimal_token_len=int(get_config('analysis.max_optimal_token_len', DEFAULT_MAX_OPTIMAL_TOKEN_LEN)),
        max_total_tokens=int(get_config('analysis.max_total_tokens', DEFAULT_MAX_TOTAL_TOKENS)),
        request_timeout_seconds=float(get_config('analysis.request_timeout_seconds', DEFAULT_REQUEST_TIMEOUT_SECONDS)),
        tokenizer_encoding=get_config('tokenizer.encoding'),
        rate_limit_window_seconds=float(get_config('rate_limit.window_seconds', DEFAULT_RATE_LIMIT_WINDOW_SECONDS)),
        rate_limit_max_callers=int(get_config('rate_limit.max_callers', DEFAULT_RATE_LIMIT_MAX_CALLERS)),
        allowed_origins=tuple(_as_list(get_config('http.allowed_origins'))),
        allowed_origin_regex=str(get_config('http.allowed_origin_regex', DEFAULT_ALLOWED_ORIGIN_REGEX)),
        weight_by_token_share=bool(get_config('aggregation.weight_by_token_share', False)),
    )
    logger.debug(
        f"Analysis settings: model={settings.model}, optimal={settings.optimal_token_len}, "
        f"max_optimal={settings.max_optimal_token_len}, max_total={settings.max_total_tokens}"
    )
    return settings

def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.

    Args:
        config_dict: Dictionary of configuration values to set
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")

def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")
