from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from srs_engine import (
    CardNotFoundError,
    ConcurrentUpdateError,
    DuplicateCardError,
    InMemoryCardStore,
    ReviewCardEngine,
    ReviewSession,
    SRSConfig,
)


@pytest.fixture
def store() -> InMemoryCardStore:
    return InMemoryCardStore()


def test_add_get_and_list(store, engine, content):
    mine = store.add(engine.create_card("user-1", content, card_id="card:1"))
    store.add(engine.create_card("user-2", content, card_id="card:1"))

    assert store.get("user-1", "card:1") == mine
    assert [c.owner_id for c in store.list("user-1")] == ["user-1"]


def test_add_rejects_duplicate_key(store, engine, content):
    card = store.add(engine.create_card("user-1", content))

    with pytest.raises(DuplicateCardError):
        store.add(card)


def test_get_missing_card(store):
    with pytest.raises(CardNotFoundError, match="card:nope"):
        store.get("user-1", "card:nope")


def test_review_persists_the_folded_card(store, engine, content, now):
    card = store.add(engine.create_card("user-1", content))

    updated = store.review("user-1", card.id, ReviewSession(quality=4), engine, now=now + timedelta(days=1))

    assert updated.version == 1
    assert store.get("user-1", card.id) == updated


def test_save_with_stale_version_is_rejected(store, engine, content):
    card = store.add(engine.create_card("user-1", content))
    first = engine.record_review(card, ReviewSession(quality=5))
    second = engine.record_review(card, ReviewSession(quality=1))
    store.save(first, expected_version=card.version)

    with pytest.raises(ConcurrentUpdateError) as excinfo:
        store.save(second, expected_version=card.version)

    assert excinfo.value.expected_version == 0
    assert excinfo.value.actual_version == 1
    assert store.get("user-1", card.id) == first


def test_concurrent_reviews_of_one_card_are_serialised(store, content):
    engine = ReviewCardEngine(SRSConfig(history_size=100))
    card = store.add(engine.create_card("user-1", content))

    def review(_):
        return store.review("user-1", card.id, ReviewSession(quality=5, response_time_ms=3000), engine)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(review, range(40)))

    final = store.get("user-1", card.id)
    assert final.version == 40
    assert final.performance.streak == 40
    assert len(final.performance.accuracy) == 40


def test_due_and_stats_delegate_to_queries(store, engine, content, now):
    card = store.add(engine.create_card("user-1", content))
    store.add(engine.create_card("user-1", content))

    assert store.due("user-1", now) == []
    due_later = store.due("user-1", card.memory.next_review)
    assert len(due_later) == 2
    assert store.stats("user-1", engine, now).total_cards == 2
