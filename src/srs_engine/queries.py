"""Read-only projections over a learner's cards: due list, stats, analysis."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Iterable, List, Optional

from .cards import memory_strength
from .config import AnalysisConfig, SRSConfig
from .models import (
    AggregateStats,
    MasteryLevel,
    PerformanceAnalysis,
    ReviewCard,
    StudyFocus,
)
from .scheduler import is_due, utcnow

# 成績分析では各カードの直近 N 件の正誤だけを見る
RECENT_WINDOW = 5
HIGH_ACCURACY = 0.8


def due_cards(
    cards: Iterable[ReviewCard],
    now: Optional[datetime] = None,
    *,
    limit: Optional[int] = None,
) -> List[ReviewCard]:
    """Return the cards due at ``now``.

    Ordered by ``next_review`` ascending; ties go to the lower ``repetition``
    (less established memory first), then to input order.
    """
    now = now or utcnow()
    due = [c for c in cards if is_due(c.memory, now)]
    due.sort(key=lambda c: (c.memory.next_review, c.memory.repetition))
    if limit is not None:
        return due[: max(0, limit)]
    return due


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def stats(
    cards: Iterable[ReviewCard],
    now: Optional[datetime] = None,
    *,
    config: Optional[SRSConfig] = None,
) -> AggregateStats:
    """Aggregate learning metrics.

    正答率・応答時間の平均は、履歴を持つカードのカード別平均をさらに平均したもの
    （未レビューのカードは分母に含めない）。ease と strength は全カードで平均する。
    """
    cards = list(cards)
    if not cards:
        return AggregateStats()
    config = config or SRSConfig()
    now = now or utcnow()

    per_level = {level: 0 for level in MasteryLevel}
    for card in cards:
        per_level[card.mastery_level] += 1

    accuracies = [a for a in (c.performance.mean_accuracy() for c in cards) if a is not None]
    response_times = [t for t in (c.performance.mean_response_time() for c in cards) if t is not None]

    return AggregateStats(
        total_cards=len(cards),
        learning_cards=per_level[MasteryLevel.learning],
        reviewing_cards=per_level[MasteryLevel.reviewing],
        mastered_cards=per_level[MasteryLevel.mastered],
        due_for_review=len(due_cards(cards, now)),
        average_ease_factor=_mean([c.memory.ease_factor for c in cards]),
        average_memory_strength=_mean([memory_strength(c.memory, config) for c in cards]),
        average_accuracy=_mean(accuracies),
        average_response_time_ms=_mean(response_times),
        max_streak=max(c.performance.streak for c in cards),
    )


def estimate_mastery_days(
    cards: Iterable[ReviewCard],
    *,
    analysis: Optional[AnalysisConfig] = None,
) -> int:
    """Rough number of study days until every card is mastered."""

    analysis = analysis or AnalysisConfig()
    remaining = sum(1 for c in cards if c.mastery_level is not MasteryLevel.mastered)
    return remaining * analysis.avg_reviews_needed * analysis.avg_days_per_review


def analyze_performance(
    cards: Iterable[ReviewCard],
    *,
    analysis: Optional[AnalysisConfig] = None,
) -> PerformanceAnalysis:
    """Find weak/strong content patterns and suggest what to practise next.

    - pattern ごとに直近 5 件の正誤を集計し、試行数が ``min_sample_size`` 以上のものだけ判定
    - 全体の正答率が高く応答が遅ければ speed、速ければ retention、それ以外は accuracy
    """
    cards = list(cards)
    analysis = analysis or AnalysisConfig()
    if not cards:
        return PerformanceAnalysis()

    totals: dict[str, list[int]] = defaultdict(lambda: [0, 0])  # pattern -> [correct, total]
    for card in cards:
        pattern = (card.content.pattern if card.content else None) or "unknown"
        recent = card.performance.accuracy[-RECENT_WINDOW:]
        totals[pattern][0] += sum(recent)
        totals[pattern][1] += len(recent)

    weak: list[str] = []
    strong: list[str] = []
    for pattern, (correct, total) in sorted(totals.items()):
        if total < analysis.min_sample_size:
            continue
        ratio = correct / total
        if ratio < analysis.weak_pattern_threshold:
            weak.append(pattern)
        elif ratio > analysis.strong_pattern_threshold:
            strong.append(pattern)

    avg_accuracy = _mean([c.performance.mean_accuracy(RECENT_WINDOW) or 0.0 for c in cards])
    avg_response = _mean([c.performance.mean_response_time(RECENT_WINDOW) or 0.0 for c in cards])

    focus = StudyFocus.accuracy
    if avg_accuracy > HIGH_ACCURACY and avg_response > analysis.slow_response_threshold_ms:
        focus = StudyFocus.speed
    elif avg_accuracy > HIGH_ACCURACY and avg_response < analysis.fast_response_threshold_ms:
        focus = StudyFocus.retention

    return PerformanceAnalysis(
        weak_patterns=weak,
        strong_patterns=strong,
        recommended_focus=focus,
        estimated_mastery_days=estimate_mastery_days(cards, analysis=analysis),
    )
