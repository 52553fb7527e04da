"""設定管理モジュール"""

from phasechat.config.loader import (
    ConfigError,
    ConfigValidationError,
    EnvironmentVariableError,
    expand_env_vars,
    load_config,
)
from phasechat.config.models import (
    Config,
    LLMConfig,
    LoggingConfig,
    MemoryConfig,
    PersonaConfig,
)

__all__ = [
    "Config",
    "ConfigError",
    "ConfigValidationError",
    "EnvironmentVariableError",
    "LLMConfig",
    "LoggingConfig",
    "MemoryConfig",
    "PersonaConfig",
    "expand_env_vars",
    "load_config",
]
