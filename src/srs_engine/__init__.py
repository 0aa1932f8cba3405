from .cards import ReviewCardEngine, classify, memory_strength
from .config import AnalysisConfig, SRSConfig, config_for_level
from .errors import (
    CardNotFoundError,
    ConcurrentUpdateError,
    ConfigurationError,
    DuplicateCardError,
    InvalidCardState,
    SRSError,
)
from .events import ReviewEvent, ReviewEventBus, ReviewEventType
from .models import (
    AggregateStats,
    ContentRef,
    Difficulty,
    MasteryLevel,
    MemoryState,
    PerformanceAnalysis,
    PerformanceHistory,
    ReviewCard,
    ReviewSession,
    StudyFocus,
)
from .queries import analyze_performance, due_cards, estimate_mastery_days, stats
from .scheduler import SM2Scheduler, advance, create_new, is_due
from .store import InMemoryCardStore

__all__ = [
    "AggregateStats",
    "AnalysisConfig",
    "CardNotFoundError",
    "ConcurrentUpdateError",
    "ConfigurationError",
    "ContentRef",
    "Difficulty",
    "DuplicateCardError",
    "InMemoryCardStore",
    "InvalidCardState",
    "MasteryLevel",
    "MemoryState",
    "PerformanceAnalysis",
    "PerformanceHistory",
    "ReviewCard",
    "ReviewCardEngine",
    "ReviewEvent",
    "ReviewEventBus",
    "ReviewEventType",
    "ReviewSession",
    "SM2Scheduler",
    "SRSConfig",
    "SRSError",
    "StudyFocus",
    "advance",
    "analyze_performance",
    "classify",
    "config_for_level",
    "create_new",
    "due_cards",
    "estimate_mastery_days",
    "is_due",
    "memory_strength",
    "stats",
]
