from __future__ import annotations

import threading
from collections import defaultdict, deque
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Callable, Deque, Dict, List

from pydantic import BaseModel, Field

from .logging import logger


class ReviewEventType(str, Enum):
    card_created = "card_created"
    card_reviewed = "card_reviewed"
    card_mastered = "card_mastered"
    card_lapsed = "card_lapsed"


class ReviewEvent(BaseModel):
    type: ReviewEventType
    card_id: str
    owner_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    data: Dict[str, Any] = Field(default_factory=dict)


Handler = Callable[[ReviewEvent], None]


class ReviewEventBus:
    """In-process publish/subscribe for card lifecycle events.

    - 型ごとのハンドラ登録と解除
    - 直近イベントを固定長で保持（表示・デバッグ用）
    - ハンドラの例外はログに残して握りつぶし、レビュー処理自体は継続する
    """

    def __init__(self, history_size: int = 100) -> None:
        self._lock = threading.Lock()
        self._handlers: Dict[ReviewEventType, List[Handler]] = defaultdict(list)
        self._history: Deque[ReviewEvent] = deque(maxlen=history_size)

    def on(self, event_type: ReviewEventType, handler: Handler) -> None:
        with self._lock:
            self._handlers[event_type].append(handler)

    def off(self, event_type: ReviewEventType, handler: Handler) -> None:
        with self._lock:
            handlers = self._handlers.get(event_type)
            if handlers and handler in handlers:
                handlers.remove(handler)

    def emit(self, event: ReviewEvent) -> None:
        with self._lock:
            self._history.append(event)
            handlers = list(self._handlers.get(event.type, ()))
        for handler in handlers:
            try:
                handler(event)
            except Exception as exc:
                logger.warning(
                    "review_event_handler_failed",
                    event_type=event.type.value,
                    card_id=event.card_id,
                    error=repr(exc),
                )

    def history(self, limit: int | None = None) -> list[ReviewEvent]:
        with self._lock:
            events = list(self._history)
        if limit is None:
            return events
        return events[-limit:] if limit > 0 else []
