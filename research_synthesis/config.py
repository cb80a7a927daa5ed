"""Settings loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from research_synthesis.agents.prompts import SYNTHESIS_SYSTEM
from research_synthesis.contracts import GapPriority


def _load_env() -> None:
    """Load .env from project root if it exists."""
    env_path = Path(__file__).resolve().parent.parent / ".env"
    if env_path.exists():
        load_dotenv(env_path)


_load_env()

DEFAULT_MAX_GAPS_TO_ADDRESS = 3
DEFAULT_MIN_CONFIDENCE_TO_COMPLETE = 0.8
DEFAULT_GAP_PRIORITY_WEIGHTS: dict[GapPriority, float] = {
    GapPriority.HIGH: 3.0,
    GapPriority.MEDIUM: 2.0,
    GapPriority.LOW: 1.0,
}


def parse_priority_weights(raw: str) -> dict[GapPriority, float]:
    """Parse "high=3,medium=2,low=1". Unlisted priorities keep their default."""
    weights = dict(DEFAULT_GAP_PRIORITY_WEIGHTS)
    for pair in raw.split(","):
        if not pair.strip():
            continue
        name, _, value = pair.partition("=")
        weights[GapPriority(name.strip().lower())] = float(value)
    return weights


@dataclass(frozen=True)
class SynthesisConfig:
    """Per-session engine configuration, passed explicitly into each call."""

    max_gaps_to_address: int = DEFAULT_MAX_GAPS_TO_ADDRESS
    min_confidence_to_complete: float = DEFAULT_MIN_CONFIDENCE_TO_COMPLETE
    gap_priority_weights: dict[GapPriority, float] = field(
        default_factory=lambda: dict(DEFAULT_GAP_PRIORITY_WEIGHTS)
    )
    system_prompt: str = SYNTHESIS_SYSTEM
    progress_interval_s: float = 0.5
    progress_target_chars: int = 3000
    max_rounds: int = 2


@dataclass(frozen=True)
class Settings:
    # API Keys
    anthropic_api_key: str = field(default_factory=lambda: os.environ.get("ANTHROPIC_API_KEY", ""))

    # Models
    synthesis_model: str = field(
        default_factory=lambda: os.environ.get("SYNTHESIS_MODEL", "claude-sonnet-4-6")
    )
    synthesis_max_tokens: int = field(
        default_factory=lambda: int(os.environ.get("SYNTHESIS_MAX_TOKENS", "4000"))
    )
    max_concurrent_requests: int = field(
        default_factory=lambda: int(os.environ.get("MAX_CONCURRENT_REQUESTS", "5"))
    )

    # Gap analysis
    max_gaps_to_address: int = field(
        default_factory=lambda: int(
            os.environ.get("MAX_GAPS_TO_ADDRESS", str(DEFAULT_MAX_GAPS_TO_ADDRESS))
        )
    )
    min_confidence_to_complete: float = field(
        default_factory=lambda: float(
            os.environ.get("MIN_CONFIDENCE_TO_COMPLETE", str(DEFAULT_MIN_CONFIDENCE_TO_COMPLETE))
        )
    )
    gap_priority_weights: str = field(
        default_factory=lambda: os.environ.get("GAP_PRIORITY_WEIGHTS", "high=3,medium=2,low=1")
    )

    # Rounds
    max_rounds: int = field(default_factory=lambda: int(os.environ.get("MAX_ROUNDS", "2")))

    # Progress reporting
    progress_interval_s: float = field(
        default_factory=lambda: float(os.environ.get("PROGRESS_INTERVAL_S", "0.5"))
    )
    progress_target_chars: int = field(
        default_factory=lambda: int(os.environ.get("PROGRESS_TARGET_CHARS", "3000"))
    )

    # Run event log
    run_log_dir: str = field(default_factory=lambda: os.environ.get("RUN_LOG_DIR", "runs/"))

    def validate(self) -> list[str]:
        """Return list of validation errors. Empty list means valid."""
        errors = []
        if not self.anthropic_api_key:
            errors.append("ANTHROPIC_API_KEY is required")
        if self.synthesis_max_tokens < 256:
            errors.append("SYNTHESIS_MAX_TOKENS must be >= 256")
        if self.max_gaps_to_address < 1:
            errors.append("MAX_GAPS_TO_ADDRESS must be >= 1")
        if not 0.0 <= self.min_confidence_to_complete <= 1.0:
            errors.append(
                f"MIN_CONFIDENCE_TO_COMPLETE must be in [0, 1], got {self.min_confidence_to_complete}"
            )
        if self.max_rounds not in (1, 2):
            errors.append(f"MAX_ROUNDS must be 1 or 2, got {self.max_rounds}")
        if self.progress_target_chars < 1:
            errors.append("PROGRESS_TARGET_CHARS must be >= 1")
        try:
            weights = parse_priority_weights(self.gap_priority_weights)
        except ValueError as e:
            errors.append(f"GAP_PRIORITY_WEIGHTS is malformed: {e}")
        else:
            ordered = [weights[p] for p in (GapPriority.HIGH, GapPriority.MEDIUM, GapPriority.LOW)]
            if ordered != sorted(ordered, reverse=True):
                errors.append("GAP_PRIORITY_WEIGHTS must satisfy high >= medium >= low")
        return errors

    def warnings(self) -> list[str]:
        """Return list of non-fatal configuration warnings."""
        warns: list[str] = []
        if self.min_confidence_to_complete > 0.95:
            warns.append(
                f"MIN_CONFIDENCE_TO_COMPLETE={self.min_confidence_to_complete} is above the "
                "0.95 confidence ceiling. Every session will run a second round."
            )
        if self.progress_interval_s <= 0:
            warns.append("PROGRESS_INTERVAL_S <= 0 disables progress throttling.")
        return warns

    def synthesis_config(self) -> SynthesisConfig:
        """Build the engine configuration from these settings."""
        return SynthesisConfig(
            max_gaps_to_address=self.max_gaps_to_address,
            min_confidence_to_complete=self.min_confidence_to_complete,
            gap_priority_weights=parse_priority_weights(self.gap_priority_weights),
            progress_interval_s=self.progress_interval_s,
            progress_target_chars=self.progress_target_chars,
            max_rounds=self.max_rounds,
        )


def get_settings() -> Settings:
    """Create Settings from current environment."""
    return Settings()
