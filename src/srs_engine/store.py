from __future__ import annotations

import threading
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from .cards import ReviewCardEngine
from .errors import CardNotFoundError, ConcurrentUpdateError, DuplicateCardError
from .logging import bind_card_context, logger
from .models import AggregateStats, ReviewCard, ReviewSession
from .queries import due_cards, stats

CardKey = Tuple[str, str]


class InMemoryCardStore:
    """Thread-safe in-memory card repository.

    - (owner_id, card_id) 単位のロックで「読み込み→更新→保存」を直列化する
    - save は version を比較する楽観的排他制御で、不一致なら ConcurrentUpdateError
    - 外部 DB を使う実装でも同じ契約（version 比較）を守ること
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cards: Dict[CardKey, ReviewCard] = {}
        self._key_locks: Dict[CardKey, threading.Lock] = {}

    def _key_lock(self, key: CardKey) -> threading.Lock:
        with self._lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.Lock()
            return lock

    def add(self, card: ReviewCard) -> ReviewCard:
        key = (card.owner_id, card.id)
        with self._lock:
            if key in self._cards:
                raise DuplicateCardError(card.owner_id, card.id)
            self._cards[key] = card
        return card

    def get(self, owner_id: str, card_id: str) -> ReviewCard:
        with self._lock:
            card = self._cards.get((owner_id, card_id))
        if card is None:
            raise CardNotFoundError(owner_id, card_id)
        return card

    def list(self, owner_id: str) -> List[ReviewCard]:
        with self._lock:
            return [card for (owner, _), card in self._cards.items() if owner == owner_id]

    def save(self, card: ReviewCard, expected_version: int) -> ReviewCard:
        """Store ``card`` if the stored version still equals ``expected_version``."""

        key = (card.owner_id, card.id)
        with self._lock:
            current = self._cards.get(key)
            if current is None:
                raise CardNotFoundError(card.owner_id, card.id)
            if current.version != expected_version:
                logger.warning(
                    "card_store_conflict",
                    card_id=card.id,
                    owner_id=card.owner_id,
                    expected_version=expected_version,
                    actual_version=current.version,
                )
                raise ConcurrentUpdateError(card.id, expected_version, current.version)
            self._cards[key] = card
        return card

    def review(
        self,
        owner_id: str,
        card_id: str,
        session: ReviewSession,
        engine: ReviewCardEngine,
        *,
        now: Optional[datetime] = None,
    ) -> ReviewCard:
        """Load, fold one review and save, serialised per card."""

        with self._key_lock((owner_id, card_id)), bind_card_context(owner_id, card_id):
            card = self.get(owner_id, card_id)
            updated = engine.record_review(card, session, now=now)
            return self.save(updated, expected_version=card.version)

    def due(self, owner_id: str, now: Optional[datetime] = None, *, limit: Optional[int] = None) -> List[ReviewCard]:
        return due_cards(self.list(owner_id), now, limit=limit)

    def stats(self, owner_id: str, engine: ReviewCardEngine, now: Optional[datetime] = None) -> AggregateStats:
        return stats(self.list(owner_id), now, config=engine.config)
