"""Error taxonomy for the scheduling engine.

数値入力の揺れ（quality の範囲外、負の応答時間など）は例外にせず正規化で吸収する。
ここに定義する例外は、呼び出し側の契約違反と構成ミスだけを表す。
"""

from __future__ import annotations


class SRSError(Exception):
    """Base class for every error raised by ``srs_engine``."""


class InvalidCardState(SRSError):
    """A card is missing data the engine requires (e.g. its content reference)."""

    def __init__(self, card_id: str, reason: str) -> None:
        self.card_id = card_id
        self.reason = reason
        super().__init__(f"card {card_id!r} is in an invalid state: {reason}")


class ConfigurationError(SRSError):
    """Engine configuration is inconsistent (raised at construction, never per call)."""


class CardNotFoundError(SRSError):
    def __init__(self, owner_id: str, card_id: str) -> None:
        self.owner_id = owner_id
        self.card_id = card_id
        super().__init__(f"card {card_id!r} not found for owner {owner_id!r}")


class DuplicateCardError(SRSError):
    def __init__(self, owner_id: str, card_id: str) -> None:
        self.owner_id = owner_id
        self.card_id = card_id
        super().__init__(f"card {card_id!r} already exists for owner {owner_id!r}")


class ConcurrentUpdateError(SRSError):
    """The stored card changed since the caller loaded it (optimistic version check failed)."""

    def __init__(self, card_id: str, expected_version: int, actual_version: int) -> None:
        self.card_id = card_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"card {card_id!r} was modified concurrently: expected version {expected_version}, found {actual_version}"
        )
