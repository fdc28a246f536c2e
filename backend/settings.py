"""Service configuration read from the environment (after ``.env`` loading)."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from env_loader import load_env_once

logger = logging.getLogger(__name__)

_TRUTHY = ("1", "true", "yes", "on")


def _env_int(name: str, default: int, *, minimum: int, maximum: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        parsed = int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r; using %d", name, raw, default)
        return default
    return max(minimum, min(parsed, maximum))


@dataclass(frozen=True)
class Settings:
    provider: str = "openrouter"
    model: str | None = None
    max_turns: int = 12
    max_fix_rounds: int = 2
    max_output_tokens: int = 8000
    stream_preview: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Settings:
        load_env_once()
        provider = os.getenv("LLM_PROVIDER", cls.provider).lower().strip()
        model_var = "OPENAI_MODEL" if provider == "openai" else "OPENROUTER_MODEL"
        return cls(
            provider=provider,
            model=os.getenv(model_var) or None,
            max_turns=_env_int("S2E_MAX_TURNS", cls.max_turns, minimum=1, maximum=50),
            max_fix_rounds=_env_int(
                "S2E_MAX_FIX_ROUNDS", cls.max_fix_rounds, minimum=0, maximum=10
            ),
            max_output_tokens=_env_int(
                "S2E_MAX_OUTPUT_TOKENS",
                cls.max_output_tokens,
                minimum=256,
                maximum=64_000,
            ),
            stream_preview=os.getenv("S2E_STREAM_PREVIEW", "true").lower().strip()
            in _TRUTHY,
            log_level=os.getenv("S2E_LOG_LEVEL", cls.log_level).upper().strip(),
        )
