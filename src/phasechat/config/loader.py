"""YAML設定ファイルの読み込みと環境変数展開"""

import os
import re
from pathlib import Path
from typing import Any

import yaml

from phasechat.config.models import (
    DEFAULT_LOG_FORMAT,
    DEFAULT_SYSTEM_PROMPT,
    Config,
    LLMConfig,
    LoggingConfig,
    MemoryConfig,
    PersonaConfig,
)


class ConfigError(Exception):
    """設定関連の基底例外"""


class ConfigValidationError(ConfigError):
    """設定値のバリデーションエラー"""


class EnvironmentVariableError(ConfigError):
    """環境変数が見つからないエラー"""


# 環境変数パターン: ${VAR_NAME}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def expand_env_vars(value: str) -> str:
    """文字列中の ${VAR_NAME} を環境変数の値に置換する

    Args:
        value: 置換対象の文字列

    Returns:
        環境変数が展開された文字列

    Raises:
        EnvironmentVariableError: 環境変数が未設定
    """
    if not value:
        return value

    def replace_var(match: re.Match[str]) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            raise EnvironmentVariableError(
                f"Environment variable '{var_name}' is not set"
            )
        return env_value

    return ENV_VAR_PATTERN.sub(replace_var, value)


def _expand_recursive(data: Any) -> Any:
    """データ構造を再帰的に走査し、文字列中の環境変数を展開する"""
    if isinstance(data, dict):
        return {key: _expand_recursive(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_expand_recursive(item) for item in data]
    elif isinstance(data, str):
        return expand_env_vars(data)
    else:
        return data


def _validate_required_field(data: dict[str, Any], field: str, parent: str = "") -> Any:
    """必須フィールドの存在を検証する

    Args:
        data: 検証対象のdict
        field: フィールド名
        parent: 親フィールド名（エラーメッセージ用）

    Returns:
        フィールドの値

    Raises:
        ConfigValidationError: フィールドが存在しない
    """
    if not isinstance(data, dict) or field not in data or data[field] is None:
        full_path = f"{parent}.{field}" if parent else field
        raise ConfigValidationError(f"Required field '{full_path}' is missing")
    return data[field]


def _load_llm_config(key: str, llm_item: dict[str, Any]) -> LLMConfig:
    """llm セクションの1エントリを LLMConfig に変換する"""
    model = _validate_required_field(llm_item, "model", f"llm.{key}")
    timeout_seconds = float(llm_item.get("timeout_seconds", 60.0))
    if timeout_seconds <= 0:
        raise ConfigValidationError(
            f"'llm.{key}.timeout_seconds' must be positive: {timeout_seconds}"
        )
    return LLMConfig(
        model=model,
        temperature=llm_item.get("temperature", 0.7),
        max_tokens=llm_item.get("max_tokens", 1000),
        timeout_seconds=timeout_seconds,
        json_mode=bool(llm_item.get("json_mode", True)),
    )


def load_config(path: str | Path) -> Config:
    """設定ファイルを読み込む

    Args:
        path: config.yaml のパス

    Returns:
        Config オブジェクト

    Raises:
        FileNotFoundError: ファイルが存在しない
        ConfigValidationError: 必須項目が欠落
        EnvironmentVariableError: 環境変数が未設定
        yaml.YAMLError: YAML構文エラー
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        raw_data = yaml.safe_load(f)

    if not isinstance(raw_data, dict):
        raise ConfigValidationError(f"Config file is empty or malformed: {path}")

    # 環境変数を展開
    data = _expand_recursive(raw_data)

    # LLMConfig (defaultは必須)
    llm_data = _validate_required_field(data, "llm")
    _validate_required_field(llm_data, "default", "llm")
    llm = {key: _load_llm_config(key, item) for key, item in llm_data.items()}

    # PersonaConfig (optional)
    persona_data = data.get("persona") or {}
    persona = PersonaConfig(
        name=persona_data.get("name", "negotiator"),
        system_prompt=persona_data.get("system_prompt", DEFAULT_SYSTEM_PROMPT),
    )

    # MemoryConfig
    memory_data = _validate_required_field(data, "memory")
    memory = MemoryConfig(
        database_path=_validate_required_field(memory_data, "database_path", "memory"),
    )

    # LoggingConfig (optional)
    logging_config: LoggingConfig | None = None
    logging_data = data.get("logging")
    if logging_data:
        logging_config = LoggingConfig(
            level=logging_data.get("level", "INFO"),
            format=logging_data.get("format", DEFAULT_LOG_FORMAT),
            loggers=logging_data.get("loggers"),
            debug_llm_messages=logging_data.get("debug_llm_messages", False),
        )

    return Config(llm=llm, persona=persona, memory=memory, logging=logging_config)
