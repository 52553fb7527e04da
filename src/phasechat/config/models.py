"""設定データクラス"""

from dataclasses import dataclass

DEFAULT_SYSTEM_PROMPT = "You are an elite Crisis Negotiator."
DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class LLMConfig:
    """LLM設定（LiteLLMのcompletionに渡すdict）

    Attributes:
        model: LiteLLM のモデル名（例: "gemini/gemini-2.5-flash"）
        temperature: サンプリング温度
        max_tokens: 最大生成トークン数
        timeout_seconds: 1ターンあたりの生成タイムアウト（秒）
        json_mode: JSON 出力モードを要求するか
    """

    model: str
    temperature: float = 0.7
    max_tokens: int = 1000
    timeout_seconds: float = 60.0
    json_mode: bool = True


@dataclass
class PersonaConfig:
    """ペルソナ設定"""

    name: str = "negotiator"
    system_prompt: str = DEFAULT_SYSTEM_PROMPT


@dataclass
class MemoryConfig:
    """記憶設定"""

    database_path: str


@dataclass
class LoggingConfig:
    """ログ設定"""

    level: str = "INFO"
    format: str = DEFAULT_LOG_FORMAT
    loggers: dict[str, str] | None = None
    debug_llm_messages: bool = False


@dataclass
class Config:
    """アプリケーション設定"""

    llm: dict[str, LLMConfig]
    persona: PersonaConfig
    memory: MemoryConfig
    logging: LoggingConfig | None = None
