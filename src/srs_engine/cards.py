"""Review card aggregate: fold review outcomes into a card.

スケジューラの結果と成績履歴をまとめて新しいカードを返す。入力カードは
変更しない（値として置き換える）ため、同一カードへの並行レビューの調停は
呼び出し側（永続化層）の責務となる。
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from .config import SRSConfig
from .errors import InvalidCardState
from .events import ReviewEvent, ReviewEventBus, ReviewEventType
from .logging import logger
from .models import ContentRef, MasteryLevel, MemoryState, PerformanceHistory, ReviewCard, ReviewSession
from .normalize import clamp, ensure_utc
from .scheduler import Clock, SM2Scheduler


def generate_card_id() -> str:
    return f"card:{uuid.uuid4().hex}"


def normalized_ease(ease_factor: float, config: SRSConfig) -> float:
    span = config.max_ease_factor - config.min_ease_factor
    if span <= 0:
        return 1.0
    return clamp((ease_factor - config.min_ease_factor) / span, 0.0, 1.0)


def memory_strength(memory: MemoryState, config: SRSConfig) -> float:
    """Display-facing strength in [0, 1].

    ``normalized_ease * min(1, repetition / mastery_min_repetitions)``: the ease
    position within the configured bounds, scaled down until the card has
    accumulated enough consecutive successes.
    """

    progress = min(1.0, memory.repetition / config.mastery_min_repetitions)
    return normalized_ease(memory.ease_factor, config) * progress


def classify(memory: MemoryState, config: SRSConfig) -> MasteryLevel:
    if memory.repetition == 0:
        return MasteryLevel.learning
    if (
        memory_strength(memory, config) > config.mastery_strength_threshold
        and memory.repetition >= config.mastery_min_repetitions
    ):
        return MasteryLevel.mastered
    return MasteryLevel.reviewing


class ReviewCardEngine:
    """Create cards and record reviews against them.

    Configuration and the optional event bus are injected per instance; there
    is no module-level engine.
    """

    def __init__(
        self,
        config: Optional[SRSConfig] = None,
        *,
        scheduler: Optional[SM2Scheduler] = None,
        events: Optional[ReviewEventBus] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.scheduler = scheduler or SM2Scheduler(config, clock=clock)
        self.config = self.scheduler.config
        self.events = events

    def memory_strength(self, memory: MemoryState) -> float:
        return memory_strength(memory, self.config)

    def classify(self, memory: MemoryState) -> MasteryLevel:
        return classify(memory, self.config)

    def create_card(
        self,
        owner_id: str,
        content: ContentRef,
        *,
        card_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ReviewCard:
        now = ensure_utc(now) if now else self.scheduler.now()
        memory = self.scheduler.create_new(now=now)
        card = ReviewCard(
            id=card_id or generate_card_id(),
            owner_id=owner_id,
            content=content,
            memory=memory,
            performance=PerformanceHistory(),
            mastery_level=self.classify(memory),
            created_at=now,
            updated_at=now,
        )
        logger.info("card_created", card_id=card.id, owner_id=owner_id, content_key=content.key)
        self._emit(ReviewEventType.card_created, card, now)
        return card

    def record_review(self, card: ReviewCard, session: ReviewSession, *, now: Optional[datetime] = None) -> ReviewCard:
        """Apply one review to ``card`` and return the updated card.

        Raises:
            InvalidCardState: the card has no content reference.
        """
        if card.content is None or not card.content.key.strip():
            logger.warning("card_review_rejected", card_id=card.id, owner_id=card.owner_id, reason="missing_content")
            raise InvalidCardState(card.id, "content reference is missing")

        now = now or session.timestamp
        now = ensure_utc(now) if now else self.scheduler.now()
        memory = self.scheduler.advance(card.memory, session, now=now)
        performance = self._fold_performance(card.performance, session)
        mastery_level = self.classify(memory)

        updated = card.model_copy(
            update={
                "memory": memory,
                "performance": performance,
                "mastery_level": mastery_level,
                "updated_at": now,
                "version": card.version + 1,
            }
        )

        logger.info(
            "card_reviewed",
            card_id=card.id,
            owner_id=card.owner_id,
            quality=session.quality,
            response_time_ms=session.response_time_ms,
            difficulty=session.difficulty.value,
            interval=memory.interval,
            ease_factor=round(memory.ease_factor, 4),
            repetition=memory.repetition,
            mastery_level=mastery_level.value,
        )
        self._emit(
            ReviewEventType.card_reviewed,
            updated,
            now,
            quality=session.quality,
            correct=session.is_correct,
            confidence=session.confidence,
        )
        if not session.is_correct:
            logger.info("card_lapsed", card_id=card.id, owner_id=card.owner_id, mistakes=performance.mistakes)
            self._emit(ReviewEventType.card_lapsed, updated, now, mistakes=performance.mistakes)
        if mastery_level is MasteryLevel.mastered and card.mastery_level is not MasteryLevel.mastered:
            logger.info("card_mastered", card_id=card.id, owner_id=card.owner_id, repetition=memory.repetition)
            self._emit(ReviewEventType.card_mastered, updated, now)
        return updated

    def _fold_performance(self, performance: PerformanceHistory, session: ReviewSession) -> PerformanceHistory:
        size = self.config.history_size
        correct = session.is_correct
        return PerformanceHistory(
            accuracy=[*performance.accuracy, 1 if correct else 0][-size:],
            response_times_ms=[*performance.response_times_ms, session.response_time_ms][-size:],
            streak=performance.streak + 1 if correct else 0,
            mistakes=performance.mistakes if correct else performance.mistakes + 1,
        )

    def _emit(self, event_type: ReviewEventType, card: ReviewCard, now: datetime, **data: object) -> None:
        if self.events is None:
            return
        self.events.emit(
            ReviewEvent(type=event_type, card_id=card.id, owner_id=card.owner_id, timestamp=now, data=dict(data))
        )
