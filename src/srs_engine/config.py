from __future__ import annotations

from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError


class SRSConfig(BaseSettings):
    """Scheduling parameters for one engine instance.

    環境変数（接頭辞 ``SRS_``）または ``.env`` から読み込まれ、コンストラクタ引数で
    個別に上書きできる。エンジンはインスタンスごとに設定を受け取るため、
    テストでは複数の構成を並べて検証できる。
    - min/max_ease_factor: ease の下限と上限
    - mastery_*: 習熟判定（strength と復習回数）の閾値
    """

    min_ease_factor: float = Field(default=1.3, description="Lower bound of the ease factor / ease の下限")
    max_ease_factor: float = Field(default=3.5, description="Upper bound of the ease factor / ease の上限")
    initial_ease_factor: float = Field(default=2.5, description="Ease of a newly created card / 新規カードの ease")
    ease_bonus: float = Field(
        default=0.1,
        description="Constant term of the SM-2 ease delta on success / 成功時の ease 増分の定数項",
    )
    ease_penalty: float = Field(default=0.2, description="Ease subtracted on a lapse / 失敗時に差し引く ease")
    initial_interval: int = Field(
        default=1,
        description="Interval (days) after a lapse and first due offset of a new card / 失敗後および新規カードの間隔(日)",
    )
    graduating_interval: int = Field(
        default=1,
        description="Interval (days) after the first successful review / 初回成功後の間隔(日)",
    )
    easy_interval: int = Field(
        default=4,
        description="Recognised for compatibility; not consumed by the scheduler / 互換のため保持（未使用）",
    )
    max_interval: int = Field(
        default=36500,
        description="Upper bound of any scheduled interval in days / 間隔(日)の上限",
    )

    mastery_strength_threshold: float = Field(
        default=0.9,
        description="Memory strength a card must exceed to count as mastered / mastered 判定の strength 閾値",
    )
    mastery_min_repetitions: int = Field(
        default=5,
        description="Consecutive successes required for mastered / mastered 判定に必要な連続成功回数",
    )
    history_size: int = Field(
        default=10,
        description="Length of the accuracy / response-time history rings / 正誤・応答時間履歴の保持件数",
    )

    model_config = SettingsConfigDict(
        env_prefix="SRS_",
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    def with_overrides(self, **overrides: Any) -> "SRSConfig":
        """Return a copy of this config with ``overrides`` applied (validated)."""

        return SRSConfig(**{**self.model_dump(), **overrides})


class AnalysisConfig(BaseSettings):
    """Thresholds for performance analysis across a learner's cards."""

    weak_pattern_threshold: float = Field(default=0.6, description="Accuracy below which a pattern is weak")
    strong_pattern_threshold: float = Field(default=0.8, description="Accuracy above which a pattern is strong")
    min_sample_size: int = Field(default=3, description="Minimum attempts before a pattern is judged")
    slow_response_threshold_ms: int = Field(default=10000, description="Average latency considered slow")
    fast_response_threshold_ms: int = Field(default=5000, description="Average latency considered fast")
    avg_reviews_needed: int = Field(default=6, description="Reviews a card typically needs to be mastered")
    avg_days_per_review: int = Field(default=1, description="Average days between reviews")

    model_config = SettingsConfigDict(
        env_prefix="SRS_ANALYSIS_",
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Process-level settings (logging) loaded from environment variables."""

    log_level: str = Field(default="INFO", description="stdlib logging level name / ログレベル")
    log_json: bool = Field(
        default=True,
        description="Render logs as JSON (False: human readable console) / JSON 形式で出力するか",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )


# 学習者レベル別のプリセット。初級は ease を低めにして失敗の罰を緩め、
# 上級は ease と成功時の増分を大きくして間隔を早く伸ばす。
LEVEL_PRESETS: dict[int, dict[str, float]] = {
    1: {"initial_ease_factor": 2.2, "ease_penalty": 0.15},
    2: {"initial_ease_factor": 2.3},
    3: {"initial_ease_factor": 2.5},
    4: {"initial_ease_factor": 2.7, "ease_bonus": 0.20},
    5: {"initial_ease_factor": 2.8, "ease_bonus": 0.25},
}


def config_for_level(level: int, base: SRSConfig | None = None) -> SRSConfig:
    """Return ``base`` adjusted with the preset for learner ``level``.

    Unknown levels return ``base`` unchanged.
    """

    base = base or SRSConfig()
    preset = LEVEL_PRESETS.get(level)
    if not preset:
        return base
    return base.with_overrides(**preset)


def validate_config(config: SRSConfig) -> SRSConfig:
    """Check ``config`` for inconsistent bounds; raise ``ConfigurationError``.

    エンジン構築時に一度だけ呼ばれる。レビュー毎の呼び出しでは検証しない。
    """

    problems: list[str] = []
    if config.min_ease_factor <= 0 or config.max_ease_factor <= 0:
        problems.append("ease bounds must be positive")
    if config.min_ease_factor > config.max_ease_factor:
        problems.append(
            f"min_ease_factor ({config.min_ease_factor}) exceeds max_ease_factor ({config.max_ease_factor})"
        )
    elif not config.min_ease_factor <= config.initial_ease_factor <= config.max_ease_factor:
        problems.append(
            f"initial_ease_factor ({config.initial_ease_factor}) must lie within "
            f"[{config.min_ease_factor}, {config.max_ease_factor}]"
        )
    if config.ease_bonus < 0:
        problems.append("ease_bonus must not be negative")
    if config.ease_penalty < 0:
        problems.append("ease_penalty must not be negative")
    for name in ("initial_interval", "graduating_interval", "easy_interval"):
        if getattr(config, name) < 0:
            problems.append(f"{name} must not be negative")
    if config.max_interval < 1:
        problems.append("max_interval must be at least 1")
    if config.history_size < 1:
        problems.append("history_size must be at least 1")
    if config.mastery_min_repetitions < 1:
        problems.append("mastery_min_repetitions must be at least 1")
    if not 0.0 <= config.mastery_strength_threshold <= 1.0:
        problems.append("mastery_strength_threshold must lie within [0, 1]")
    if problems:
        raise ConfigurationError("; ".join(problems))
    return config


settings = Settings()
