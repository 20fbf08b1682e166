import logging
from typing import Any, Dict, Optional

import yaml

# An optional config.yaml looks like this (every key may be left out):
# rolls: 6
# dictionary: '/usr/share/diceware/eff_large_wordlist.txt'
# separator: '-'
# passphrase: true
# source: 'tpm'
# device: '/dev/tpmrm0'
# format: 'text'
# logging:
#   level: 'INFO'

DEFAULTS: Dict[str, Any] = {
    "rolls": 10,
    "dictionary": None,
    "separator": " ",
    "passphrase": False,
    "source": None,
    "device": None,
    "format": "text",
    "logging": {"level": "WARNING"},
}

logger = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class ConfigError(Exception):
    """Raised when the configuration file is unreadable or malformed."""


def load_config(config_file: Optional[str] = None) -> Dict[str, Any]:
    """Load a YAML config file on top of the defaults. No file means defaults only."""
    config = dict(DEFAULTS)
    config["logging"] = dict(DEFAULTS["logging"])
    if not config_file:
        return config

    try:
        with open(config_file, "r") as f:
            loaded = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not read config file {config_file}: {e}") from e

    if loaded is None:
        return config
    if not isinstance(loaded, dict):
        raise ConfigError(f"Config file {config_file} must contain a mapping")

    for key, value in loaded.items():
        if key == "logging":
            if not isinstance(value, dict):
                raise ConfigError("'logging' must be a mapping with a 'level' key")
            config["logging"].update(value)
        elif key in DEFAULTS:
            config[key] = value
        else:
            logger.warning(f"Ignoring unknown config key: {key}")
    return config


def setup_logging(log_level: str) -> None:
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
