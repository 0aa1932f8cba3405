from datetime import timedelta

import pytest

from srs_engine import (
    ContentRef,
    InvalidCardState,
    MasteryLevel,
    MemoryState,
    ReviewCardEngine,
    ReviewEventType,
    ReviewSession,
    SRSConfig,
    classify,
    memory_strength,
)


def _memory(now, *, ease, repetition, interval=1):
    return MemoryState(
        interval=interval,
        ease_factor=ease,
        repetition=repetition,
        last_reviewed=now,
        next_review=now + timedelta(days=interval),
    )


def test_create_card_starts_in_learning(engine, content, now, events):
    card = engine.create_card("user-1", content)

    assert card.id.startswith("card:")
    assert card.owner_id == "user-1"
    assert card.content == content
    assert card.mastery_level is MasteryLevel.learning
    assert card.version == 0
    assert card.created_at == card.updated_at == now
    assert card.performance.accuracy == []
    assert [e.type for e in events.history()] == [ReviewEventType.card_created]


def test_create_card_accepts_explicit_id(engine, content):
    card = engine.create_card("user-1", content, card_id="card:fixed")

    assert card.id == "card:fixed"


def test_record_review_returns_new_card(engine, content, now):
    card = engine.create_card("user-1", content)
    later = now + timedelta(days=1)

    updated = engine.record_review(card, ReviewSession(quality=5, response_time_ms=1800), now=later)

    assert updated is not card
    assert card.version == 0
    assert card.memory.repetition == 0
    assert updated.version == 1
    assert updated.updated_at == later
    assert updated.created_at == card.created_at
    assert updated.memory.repetition == 1
    assert updated.mastery_level is MasteryLevel.reviewing
    assert updated.performance.accuracy == [1]
    assert updated.performance.response_times_ms == [1800]


def test_record_review_uses_session_timestamp(engine, content, now):
    card = engine.create_card("user-1", content)
    reviewed_at = now + timedelta(days=2, hours=3)

    updated = engine.record_review(card, ReviewSession(quality=4, timestamp=reviewed_at.replace(tzinfo=None)))

    assert updated.updated_at == reviewed_at
    assert updated.memory.last_reviewed == reviewed_at
    assert updated.memory.next_review == reviewed_at + timedelta(days=1)


def test_streak_and_mistakes_bookkeeping(engine, content):
    card = engine.create_card("user-1", content)
    for quality in (5, 4, 1, 3, 5):
        card = engine.record_review(card, ReviewSession(quality=quality))

    assert card.performance.accuracy == [1, 1, 0, 1, 1]
    assert card.performance.streak == 2
    assert card.performance.mistakes == 1


def test_history_is_a_bounded_ring(content):
    engine = ReviewCardEngine(SRSConfig(history_size=3))
    card = engine.create_card("user-1", content)
    for i, quality in enumerate((0, 5, 5, 1, 5)):
        card = engine.record_review(card, ReviewSession(quality=quality, response_time_ms=1000 * (i + 1)))

    assert card.performance.accuracy == [1, 0, 1]
    assert card.performance.response_times_ms == [3000, 4000, 5000]
    assert card.performance.mistakes == 2


def test_review_without_content_is_rejected(engine, content):
    card = engine.create_card("user-1", content).model_copy(update={"content": None})

    with pytest.raises(InvalidCardState, match="content reference is missing"):
        engine.record_review(card, ReviewSession(quality=5))


def test_review_with_blank_content_key_is_rejected(engine):
    card = engine.create_card("user-1", ContentRef(key="   "))

    with pytest.raises(InvalidCardState):
        engine.record_review(card, ReviewSession(quality=5))


def test_memory_strength_combines_ease_and_repetition(now, config):
    # normalised ease (2.4 - 1.3) / 2.2 = 0.5, repetition progress 2 / 5 = 0.4
    assert memory_strength(_memory(now, ease=2.4, repetition=2), config) == pytest.approx(0.2)
    assert memory_strength(_memory(now, ease=3.5, repetition=9), config) == pytest.approx(1.0)
    assert memory_strength(_memory(now, ease=1.3, repetition=9), config) == pytest.approx(0.0)


@pytest.mark.parametrize(
    "ease, repetition, expected",
    [
        (3.5, 0, MasteryLevel.learning),
        (2.5, 1, MasteryLevel.reviewing),
        (3.4, 5, MasteryLevel.mastered),
        (3.5, 4, MasteryLevel.reviewing),
        (3.2, 10, MasteryLevel.reviewing),
        (3.29, 6, MasteryLevel.mastered),
    ],
)
def test_classification(now, config, ease, repetition, expected):
    assert classify(_memory(now, ease=ease, repetition=repetition), config) is expected


def test_mastery_never_decreases_under_sustained_success(engine, content, events):
    card = engine.create_card("user-1", content)
    ranks = [card.mastery_level.rank]
    for _ in range(30):
        card = engine.record_review(
            card, ReviewSession(quality=5, response_time_ms=3000), now=card.memory.next_review
        )
        ranks.append(card.mastery_level.rank)

    assert ranks == sorted(ranks)
    assert card.mastery_level is MasteryLevel.mastered
    mastered_events = [e for e in events.history() if e.type is ReviewEventType.card_mastered]
    assert len(mastered_events) == 1


def test_lapse_emits_event(engine, content, events):
    card = engine.create_card("user-1", content)

    engine.record_review(card, ReviewSession(quality=1))

    types = [e.type for e in events.history()]
    assert types == [ReviewEventType.card_created, ReviewEventType.card_reviewed, ReviewEventType.card_lapsed]
    assert events.history(1)[0].data == {"mistakes": 1}


def test_mastery_level_is_recomputed_after_a_lapse(engine, content):
    card = engine.create_card("user-1", content)
    for _ in range(10):
        card = engine.record_review(card, ReviewSession(quality=5), now=card.memory.next_review)
    assert card.mastery_level is MasteryLevel.mastered

    card = engine.record_review(card, ReviewSession(quality=0), now=card.memory.next_review)

    assert card.mastery_level is MasteryLevel.learning
    assert card.performance.streak == 0
