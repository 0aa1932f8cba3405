"""Structured logging setup for the scheduling engine.

構造化ログ（structlog）の初期化と、カード単位のコンテキスト付与ヘルパーを
まとめて提供する。エンジン自体は I/O を持たないため、ログは呼び出し側が
``configure_logging`` を一度呼んだ時点の設定で出力される。
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import logging
import structlog
from structlog import contextvars as structlog_contextvars

from .config import settings


def configure_logging(level: str | None = None, json: bool | None = None) -> None:
    """Configure structlog for application-wide logging.

    標準 logging を指定レベル（既定は ``settings.log_level``）で初期化し、
    structlog で ISO タイムスタンプと JSON 形式の出力を有効化する。
    ``json=False`` の場合は開発向けのコンソール表示にする。
    """
    level_name = (level or settings.log_level or "INFO").upper()
    use_json = settings.log_json if json is None else json
    # stdlib 側のプレフィックス（"INFO:logger:" など）を付けず、既存ハンドラを上書きする
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(message)s",
        handlers=[logging.StreamHandler()],
        force=True,
    )
    renderer = structlog.processors.JSONRenderer() if use_json else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog_contextvars.merge_contextvars,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


@contextmanager
def bind_card_context(owner_id: str, card_id: str) -> Iterator[None]:
    """Bind ``owner_id``/``card_id`` to every log line emitted inside the block.

    ContextVar に保存するため、並行して処理される別カードのログには混ざらない。
    """

    tokens = structlog_contextvars.bind_contextvars(owner_id=owner_id, card_id=card_id)
    try:
        yield
    finally:
        structlog_contextvars.reset_contextvars(**tokens)


logger = structlog.get_logger()
