"""SkillTrust configuration management."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from skilltrust.exceptions import ConfigError
from skilltrust.rules.engine import Rule, load_rules

ENV_PREFIX = "SKILLTRUST_"

DEFAULT_LLM_API_BASE = "https://api.anthropic.com/v1"
DEFAULT_LLM_MODEL = "claude-sonnet-4-6"
DEFAULT_LLM_TIMEOUT_S = 30
DEFAULT_LLM_MAX_OUTPUT_TOKENS = 1600

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Config:
    """Runtime configuration for SkillTrust.

    Every field has a default so tests can build a ``Config`` directly;
    :meth:`load` is the normal entry point.
    """

    rules: list[Rule] = field(default_factory=list)
    rules_path: Path | None = None
    log_level: str = "INFO"
    llm_api_key: str | None = None
    llm_api_base: str = DEFAULT_LLM_API_BASE
    llm_model: str = DEFAULT_LLM_MODEL
    llm_timeout_s: int = DEFAULT_LLM_TIMEOUT_S
    llm_max_output_tokens: int = DEFAULT_LLM_MAX_OUTPUT_TOKENS

    @property
    def semantic_available(self) -> bool:
        return bool(self.llm_api_key)

    @classmethod
    def load(cls, rules_path: Path | None = None) -> "Config":
        """Build configuration from the environment and load the rule set.

        Raises:
            ConfigError: If ``SKILLTRUST_LOG_LEVEL`` is not a logging level.
            RuleLoadError: If the rules file is missing or malformed.
        """
        log_level = _env("LOG_LEVEL", "INFO").upper()
        if log_level not in _LOG_LEVELS:
            raise ConfigError(
                f"Invalid {ENV_PREFIX}LOG_LEVEL {log_level!r}; expected one of {', '.join(_LOG_LEVELS)}"
            )
        logging.basicConfig(level=log_level, format="%(levelname)s: %(message)s")

        resolved_rules_path = rules_path or _env_path("RULES_PATH")
        return cls(
            rules=load_rules(resolved_rules_path),
            rules_path=resolved_rules_path,
            log_level=log_level,
            # The generic Anthropic variable is honored when no SkillTrust key is set.
            llm_api_key=_env("LLM_API_KEY") or os.environ.get("ANTHROPIC_API_KEY") or None,
            llm_api_base=_env("LLM_API_BASE", DEFAULT_LLM_API_BASE),
            llm_model=_env("LLM_MODEL", DEFAULT_LLM_MODEL),
            llm_timeout_s=_int_env("LLM_TIMEOUT_S", DEFAULT_LLM_TIMEOUT_S),
            llm_max_output_tokens=_int_env("LLM_MAX_OUTPUT_TOKENS", DEFAULT_LLM_MAX_OUTPUT_TOKENS),
        )


def _env(name: str, default: str = "") -> str:
    return os.environ.get(ENV_PREFIX + name, "").strip() or default


def _env_path(name: str) -> Path | None:
    raw = _env(name)
    return Path(raw) if raw else None


def _int_env(name: str, default: int) -> int:
    """Positive integer from the environment; anything else means the default."""
    try:
        value = int(_env(name, str(default)))
    except ValueError:
        return default
    return value if value > 0 else default
