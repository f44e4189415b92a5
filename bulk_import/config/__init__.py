from .entities import ENTITY_SCHEMAS, get_entity_schema
from .loader import DEFAULT_CONFIG_PATH, ConfigError, config_from_dict, load_config

__all__ = [
    "ENTITY_SCHEMAS",
    "get_entity_schema",
    "DEFAULT_CONFIG_PATH",
    "ConfigError",
    "config_from_dict",
    "load_config",
]
