"""User-facing notices and structured results for operations that report failures."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Literal

logger = logging.getLogger(__name__)

NoticeLevel = Literal["success", "error"]


@dataclass(frozen=True, slots=True)
class Notice:
    level: NoticeLevel
    text: str


@dataclass(slots=True)
class MutationResult:
    success: bool
    error: str | None = None
    payload: Any = None


class Feedback:
    """Collects the notices a front-end would show as toasts.

    Only the most recent ``max_notices`` entries are kept.
    """

    def __init__(self, max_notices: int = 50) -> None:
        self._notices: deque[Notice] = deque(maxlen=max_notices)

    def success(self, text: str) -> Notice:
        logger.info("notice: %s", text)
        return self._push(Notice(level="success", text=text))

    def error(self, text: str) -> Notice:
        logger.warning("error notice: %s", text)
        return self._push(Notice(level="error", text=text))

    @property
    def notices(self) -> list[Notice]:
        return list(self._notices)

    @property
    def errors(self) -> list[Notice]:
        return [notice for notice in self._notices if notice.level == "error"]

    @property
    def last(self) -> Notice | None:
        return self._notices[-1] if self._notices else None

    def clear(self) -> None:
        self._notices.clear()

    def _push(self, notice: Notice) -> Notice:
        self._notices.append(notice)
        return notice


__all__ = ["Feedback", "MutationResult", "Notice", "NoticeLevel"]
