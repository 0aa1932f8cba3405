from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .normalize import ensure_utc, normalize_non_negative_int, normalize_quality, normalize_unit_interval


class Difficulty(str, Enum):
    easy = "easy"
    medium = "medium"
    hard = "hard"


class MasteryLevel(str, Enum):
    """Coarse mastery classification, ordered learning < reviewing < mastered."""

    learning = "learning"
    reviewing = "reviewing"
    mastered = "mastered"

    @property
    def rank(self) -> int:
        return _MASTERY_RANK[self]


_MASTERY_RANK = {MasteryLevel.learning: 0, MasteryLevel.reviewing: 1, MasteryLevel.mastered: 2}


class StudyFocus(str, Enum):
    accuracy = "accuracy"
    speed = "speed"
    retention = "retention"


class MemoryState(BaseModel):
    """SM-2 memory state of one card for one learner.

    - interval: 次回復習までの日数（0 は即時 due）
    - ease_factor: 間隔の伸び率。上下限は設定に依存するためスケジューラが保証する
    - repetition: 連続成功回数（失敗で 0 に戻る）
    """

    model_config = ConfigDict(frozen=True)

    interval: int = Field(ge=0)
    ease_factor: float
    repetition: int = Field(ge=0)
    last_reviewed: datetime
    next_review: datetime

    @field_validator("last_reviewed", "next_review")
    @classmethod
    def _as_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class ReviewSession(BaseModel):
    """One review attempt as reported by the caller.

    採点結果はノイズを含むため、範囲外の値は例外にせず正規化して受け付ける。
    confidence は表示用に保持するだけで、スケジューリングには使わない。
    timestamp があれば、明示的な now が渡されない限りレビュー時刻として使う。
    """

    model_config = ConfigDict(frozen=True)

    quality: int = 0
    response_time_ms: int = 0
    difficulty: Difficulty = Difficulty.medium
    confidence: float = 0.0
    timestamp: Optional[datetime] = None

    @field_validator("timestamp")
    @classmethod
    def _timestamp_as_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None

    @field_validator("quality", mode="before")
    @classmethod
    def _clamp_quality(cls, v: Any) -> int:
        return normalize_quality(v)

    @field_validator("response_time_ms", mode="before")
    @classmethod
    def _clamp_response_time(cls, v: Any) -> int:
        return normalize_non_negative_int(v)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, v: Any) -> float:
        return normalize_unit_interval(v)

    @field_validator("difficulty", mode="before")
    @classmethod
    def _coerce_difficulty(cls, v: Any) -> Difficulty:
        if isinstance(v, Difficulty):
            return v
        try:
            return Difficulty(str(v).strip().lower())
        except ValueError:
            return Difficulty.medium

    @property
    def is_correct(self) -> bool:
        return self.quality >= 3


class ContentRef(BaseModel):
    """Reference to an item owned by the external content store.

    key 以外は表示用のフィールドで、エンジンは中身を解釈しない
    （pattern のみ成績分析のグループ化に使う）。
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    key: str
    front: str = ""
    back: str = ""
    level: Optional[int] = None
    pattern: Optional[str] = None
    extra: dict[str, Any] = Field(default_factory=dict)


class PerformanceHistory(BaseModel):
    model_config = ConfigDict(frozen=True)

    accuracy: list[int] = Field(default_factory=list)
    response_times_ms: list[int] = Field(default_factory=list)
    streak: int = Field(default=0, ge=0)
    mistakes: int = Field(default=0, ge=0)

    def mean_accuracy(self, last: int | None = None) -> float | None:
        return _mean(_tail(self.accuracy, last))

    def mean_response_time(self, last: int | None = None) -> float | None:
        return _mean(_tail(self.response_times_ms, last))


def _tail(values: list[int], last: int | None) -> list[int]:
    if last is None:
        return values
    return values[-last:] if last > 0 else []


def _mean(values: list[int]) -> float | None:
    if not values:
        return None
    return sum(values) / len(values)


class ReviewCard(BaseModel):
    """One learner's relationship to one content item.

    mastery_level は memory から毎回再計算される派生値で、単独では更新しない。
    version は永続化層の楽観的排他制御に使う。
    """

    model_config = ConfigDict(frozen=True)

    id: str
    owner_id: str
    content: Optional[ContentRef] = None
    memory: MemoryState
    performance: PerformanceHistory = Field(default_factory=PerformanceHistory)
    mastery_level: MasteryLevel = MasteryLevel.learning
    created_at: datetime
    updated_at: datetime
    version: int = Field(default=0, ge=0)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _as_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class AggregateStats(BaseModel):
    """Read-only learning metrics derived from a collection of cards."""

    total_cards: int = 0
    learning_cards: int = 0
    reviewing_cards: int = 0
    mastered_cards: int = 0
    due_for_review: int = 0
    average_ease_factor: float = 0.0
    average_memory_strength: float = 0.0
    average_accuracy: float = 0.0
    average_response_time_ms: float = 0.0
    max_streak: int = 0


class PerformanceAnalysis(BaseModel):
    weak_patterns: list[str] = Field(default_factory=list)
    strong_patterns: list[str] = Field(default_factory=list)
    recommended_focus: StudyFocus = StudyFocus.accuracy
    estimated_mastery_days: int = 0
