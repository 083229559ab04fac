"""
Configuration loader utility
"""
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

from railway.utils.structured_logger import RunTracer

logger = logging.getLogger(__name__)

LOG_LEVEL_ENV = "RAILWAY_LOG_LEVEL"

LOG_FORMATS = {
    "text": '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    "short": '%(levelname)s %(name)s: %(message)s',
}


def load_config(config_path: str = "config/config.yaml", optional: bool = False) -> Dict[str, Any]:
    """
    Load the runtime YAML configuration (logging, tracing)

    Args:
        config_path: Path to config.yaml
        optional: Return {} instead of raising when the file doesn't exist

    Returns:
        Configuration dictionary; an empty file gives {}

    Raises:
        FileNotFoundError: file missing and not optional
        ValueError: the file is not YAML or its top level is not a mapping
    """
    path = Path(config_path)
    if not path.exists():
        if optional:
            logger.debug(f"No config at {config_path}, using defaults")
            return {}
        logger.error(f"Config file not found: {config_path}")
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path, 'r') as f:
        try:
            config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"Config {config_path} is not valid YAML: {e}")
            raise ValueError(f"Config {config_path} is not valid YAML: {e}") from e

    if not isinstance(config, dict):
        raise ValueError(f"Config {config_path} must be a mapping, got {type(config).__name__}")

    logger.info(f"Runtime config loaded from {config_path}")
    return config


def setup_logging(config: Dict[str, Any]):
    """
    Setup logging based on configuration

    RAILWAY_LOG_LEVEL in the environment overrides logging.level, which
    makes the DEBUG trace lines of pipeline runs easy to switch on.

    Args:
        config: Configuration dictionary
    """
    log_config = config.get("logging", {}) or {}
    level = (os.getenv(LOG_LEVEL_ENV) or log_config.get("level", "INFO")).upper()
    log_format = log_config.get("format", "text")

    # Configure root logger
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=LOG_FORMATS.get(log_format, LOG_FORMATS["text"])
    )

    logger.info(f"Logging configured: level={level}, format={log_format}")


def build_tracer(config: Dict[str, Any]) -> Optional[RunTracer]:
    """
    Create the JSON Lines run tracer when tracing is enabled

    Args:
        config: Configuration dictionary

    Returns:
        RunTracer writing to tracing.log_file, or None
    """
    tracing = config.get("tracing", {}) or {}
    if not tracing.get("enabled", False):
        return None

    log_file = tracing.get("log_file", "logs/runs.jsonl")
    logger.info(f"Run tracing enabled: {log_file}")
    return RunTracer(log_file)
