"""
View session — tracks one viewer watching one rendered video.

Each player owns its own ViewSession and drives it explicitly:

    session = ViewSession(video_url, sink=post_event)
    session.start(video_duration)
    session.update(player_time)        # on progress / pause
    session.stop(player_time)          # on end / unmount

Every call returns the ViewEvent it produced and hands it to the optional
sink (e.g. an HTTP poster owned by the caller).  Delivery failures are the
sink's concern; the session only computes the events.
"""
from __future__ import annotations

import logging
import uuid
from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel

from lessonvid.schemas.thresholds import DEFAULT_THRESHOLDS, Thresholds

logger = logging.getLogger(__name__)


class SessionStateError(RuntimeError):
    """A ViewSession method was called out of lifecycle order."""


class ViewEventType(str, Enum):
    VIEW_START = "view_start"
    VIEW_UPDATE = "view_update"
    VIEW_END = "view_end"


class ViewEvent(BaseModel):
    video_url: str
    session_id: str
    event_type: ViewEventType
    watch_duration_seconds: float
    video_duration_seconds: float
    completion_percentage: float
    is_complete_view: bool


class _State(str, Enum):
    NEW = "new"
    PLAYING = "playing"
    STOPPED = "stopped"


class ViewSession:
    """Per-viewer, per-video watch tracker with an explicit start/stop lifecycle."""

    def __init__(
        self,
        video_url: str,
        sink: Optional[Callable[[ViewEvent], None]] = None,
        session_id: Optional[str] = None,
        thresholds: Optional[Thresholds] = None,
    ) -> None:
        if not video_url:
            raise ValueError("ViewSession requires a video_url")
        self.video_url = video_url
        self.session_id = session_id or f"session_{uuid.uuid4().hex[:12]}"
        self._sink = sink
        self._thresholds = thresholds or DEFAULT_THRESHOLDS
        self._state = _State.NEW
        self._video_duration = 0.0
        self._max_progress = 0.0

    @property
    def active(self) -> bool:
        return self._state is _State.PLAYING

    @property
    def watched_seconds(self) -> float:
        return self._max_progress

    def start(self, video_duration: float) -> ViewEvent:
        if self._state is not _State.NEW:
            raise SessionStateError(f"session {self.session_id} already started")
        if video_duration < 0:
            raise ValueError(f"video_duration must be >= 0, got {video_duration}")
        self._state = _State.PLAYING
        self._video_duration = video_duration
        self._max_progress = 0.0
        return self._emit(ViewEventType.VIEW_START)

    def update(self, current_time: float) -> ViewEvent:
        self._require_playing("update")
        self._max_progress = max(self._max_progress, current_time)
        return self._emit(ViewEventType.VIEW_UPDATE)

    def stop(self, current_time: float) -> ViewEvent:
        self._require_playing("stop")
        self._max_progress = max(self._max_progress, current_time)
        self._state = _State.STOPPED
        return self._emit(ViewEventType.VIEW_END)

    def _require_playing(self, action: str) -> None:
        if self._state is not _State.PLAYING:
            raise SessionStateError(
                f"cannot {action} session {self.session_id} in state {self._state.value}"
            )

    def _emit(self, event_type: ViewEventType) -> ViewEvent:
        if self._video_duration > 0:
            completion = self._max_progress / self._video_duration * 100
        else:
            completion = 0.0
        event = ViewEvent(
            video_url=self.video_url,
            session_id=self.session_id,
            event_type=event_type,
            watch_duration_seconds=self._max_progress,
            video_duration_seconds=self._video_duration,
            completion_percentage=completion,
            is_complete_view=completion >= self._thresholds.complete_view_percentage,
        )
        logger.debug("%s %s at %.1fs", self.session_id, event_type.value, self._max_progress)
        if self._sink is not None:
            self._sink(event)
        return event
