"""Backward-paginated, scroll-stable viewport over a transcript.

The controller only sees numbers: scroll offset, content height and
visible height come in, and decisions come out (load older entries,
where to put the scroll offset afterwards, whether to follow new
output). The widget applies them.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class ScrollMetrics:
    scroll_top: float
    scroll_height: float
    client_height: float

    @property
    def distance_from_bottom(self) -> float:
        return self.scroll_height - self.scroll_top - self.client_height


@dataclass
class ViewportWindow:
    entries: list[Any] = field(default_factory=list)
    has_more: bool = False
    hidden_count: int = 0
    next_page_size: int = 0


class ViewportController:
    """Decides which tail of the transcript is displayed."""

    def __init__(
        self,
        page_size: int = 10,
        *,
        load_threshold: float = 50,
        bottom_threshold: float = 100,
    ) -> None:
        self.page_size = max(1, page_size)
        self.load_threshold = load_threshold
        self.bottom_threshold = bottom_threshold
        self.displayed_count = self.page_size
        self.near_bottom = True
        self.loading = False
        self.session_id: str | None = None
        self._anchor: tuple[float, float] | None = None

    def has_more(self, total: int) -> bool:
        return total > self.displayed_count

    def window(self, entries: Sequence[Any]) -> ViewportWindow:
        total = len(entries)
        start = max(0, total - self.displayed_count)
        hidden = start
        return ViewportWindow(
            entries=list(entries[start:]),
            has_more=hidden > 0,
            hidden_count=hidden,
            next_page_size=min(self.page_size, hidden),
        )

    def on_scroll(self, metrics: ScrollMetrics, total: int) -> bool:
        """Track the scroll position. True when older entries should load."""
        self.near_bottom = metrics.distance_from_bottom < self.bottom_threshold
        if metrics.scroll_top < self.load_threshold:
            return self.load_more(total, metrics)
        return False

    def load_more(self, total: int, metrics: ScrollMetrics | None = None) -> bool:
        """Grow the window by one page, remembering the scroll anchor."""
        if self.loading or not self.has_more(total):
            return False
        self.loading = True
        self.displayed_count += self.page_size
        if metrics is not None:
            self._anchor = (metrics.scroll_top, metrics.scroll_height)
        logger.debug(
            "Viewport: loading older entries, displaying %d of %d",
            min(self.displayed_count, total), total,
        )
        return True

    def restore_scroll(self, new_scroll_height: float) -> float | None:
        """Scroll offset that keeps the pre-load content in place."""
        self.loading = False
        anchor, self._anchor = self._anchor, None
        if anchor is None:
            return None
        old_top, old_height = anchor
        return max(0.0, old_top + (new_scroll_height - old_height))

    def on_growth(self, previous_total: int, total: int) -> bool:
        """True when the view should follow newly appended entries."""
        return total > previous_total and self.near_bottom

    def set_session(self, session_id: str | None) -> bool:
        """Reset pagination when the displayed session changes."""
        if session_id == self.session_id:
            return False
        self.session_id = session_id
        self.displayed_count = self.page_size
        self.near_bottom = True
        self.loading = False
        self._anchor = None
        return True
