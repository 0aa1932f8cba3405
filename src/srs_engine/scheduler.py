"""SM-2 scheduling with response-time and difficulty weighting.

1 回のレビュー結果（quality 0..5、応答時間、難易度）から次のメモリ状態を計算する。
副作用は時計の読み取りのみで、同じ入力と ``now`` からは常に同じ結果が得られる。

- quality >= 3: 成功。間隔は 1 回目 ``graduating_interval``、2 回目 6 日、
  以降は「前回間隔 × 前回 ease」。ease は SM-2 の式で更新した後、応答時間と
  難易度による倍率をそれぞれ範囲内に丸めながら適用する。
- quality < 3: 失敗。repetition を 0、間隔を ``initial_interval`` に戻し、
  ease から ``ease_penalty`` を差し引く。応答時間・難易度の補正は行わない。
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Callable, Optional

from .config import SRSConfig, validate_config
from .errors import ConfigurationError
from .logging import logger
from .models import Difficulty, MemoryState, ReviewSession
from .normalize import clamp, ensure_utc, normalize_non_negative_int, normalize_quality, round_half_up

Clock = Callable[[], datetime]

PASSING_QUALITY = 3
SECOND_INTERVAL_DAYS = 6

# (上限ミリ秒, 倍率)。最後の要素に当てはまらない遅い応答は SLOW_RESPONSE_MULTIPLIER。
RESPONSE_TIME_MULTIPLIERS: tuple[tuple[int, float], ...] = (
    (2000, 1.05),
    (5000, 1.0),
    (10000, 0.98),
)
SLOW_RESPONSE_MULTIPLIER = 0.95

DIFFICULTY_MULTIPLIERS: dict[Difficulty, float] = {
    Difficulty.easy: 1.02,
    Difficulty.medium: 1.0,
    Difficulty.hard: 0.98,
}


def utcnow() -> datetime:
    return datetime.now(UTC)


def response_time_multiplier(response_time_ms: int) -> float:
    for upper_ms, multiplier in RESPONSE_TIME_MULTIPLIERS:
        if response_time_ms <= upper_ms:
            return multiplier
    return SLOW_RESPONSE_MULTIPLIER


class SM2Scheduler:
    """Stateless SM-2 scheduler bound to one ``SRSConfig``.

    The configuration is validated once here; ``advance`` itself never raises.
    """

    def __init__(self, config: Optional[SRSConfig] = None, clock: Optional[Clock] = None) -> None:
        config = config or SRSConfig()
        try:
            self.config = validate_config(config)
        except ConfigurationError as exc:
            logger.warning("srs_config_invalid", error=str(exc))
            raise
        self._clock = clock or utcnow

    def now(self) -> datetime:
        return ensure_utc(self._clock())

    def _clamp_ease(self, ease: float) -> float:
        return clamp(ease, self.config.min_ease_factor, self.config.max_ease_factor)

    def create_new(self, now: Optional[datetime] = None) -> MemoryState:
        """Return the memory state for an item the learner sees for the first time."""

        now = ensure_utc(now) if now else self.now()
        return MemoryState(
            interval=0,
            ease_factor=self.config.initial_ease_factor,
            repetition=0,
            last_reviewed=now,
            next_review=now + timedelta(days=self.config.initial_interval),
        )

    def is_due(self, state: MemoryState, now: Optional[datetime] = None) -> bool:
        return (ensure_utc(now) if now else self.now()) >= state.next_review

    def advance(self, state: MemoryState, session: ReviewSession, now: Optional[datetime] = None) -> MemoryState:
        """Compute the next memory state after one review.

        Args:
            state: Current memory state of the card.
            session: Review outcome. ``quality`` is re-normalised to 0..5 here as well,
                which also covers sessions built with ``model_construct``.
            now: Review time. Falls back to ``session.timestamp`` and then to one
                clock read. Naive values are taken as UTC.

        Returns:
            A new ``MemoryState``; ``state`` is not modified.
        """
        cfg = self.config
        now = now or session.timestamp
        now = ensure_utc(now) if now else self.now()
        quality = normalize_quality(session.quality)

        if quality >= PASSING_QUALITY:
            repetition = state.repetition + 1
            if repetition == 1:
                interval = cfg.graduating_interval
            elif repetition == 2:
                interval = SECOND_INTERVAL_DAYS
            else:
                interval = max(1, round_half_up(state.interval * state.ease_factor))

            miss = 5 - quality
            ease = max(cfg.min_ease_factor, state.ease_factor + (cfg.ease_bonus - miss * (0.08 + miss * 0.02)))
            response_time_ms = normalize_non_negative_int(session.response_time_ms)
            ease = self._clamp_ease(ease * response_time_multiplier(response_time_ms))
            ease = self._clamp_ease(ease * DIFFICULTY_MULTIPLIERS.get(session.difficulty, 1.0))
        else:
            repetition = 0
            interval = cfg.initial_interval
            ease = max(cfg.min_ease_factor, state.ease_factor - cfg.ease_penalty)

        ease = self._clamp_ease(ease)
        # keeps next_review representable as a datetime
        interval = min(interval, cfg.max_interval)

        return MemoryState(
            interval=interval,
            ease_factor=ease,
            repetition=repetition,
            last_reviewed=now,
            next_review=now + timedelta(days=interval),
        )


def advance(
    state: MemoryState,
    session: ReviewSession,
    config: Optional[SRSConfig] = None,
    *,
    now: Optional[datetime] = None,
) -> MemoryState:
    """Functional form of ``SM2Scheduler.advance``."""

    return SM2Scheduler(config).advance(state, session, now=now)


def is_due(state: MemoryState, now: Optional[datetime] = None) -> bool:
    return (ensure_utc(now) if now else utcnow()) >= state.next_review


def create_new(config: Optional[SRSConfig] = None, *, now: Optional[datetime] = None) -> MemoryState:
    return SM2Scheduler(config).create_new(now=now)
