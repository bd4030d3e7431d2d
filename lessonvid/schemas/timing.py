"""
Timing records — narration input and the derived timing analyses.

Input side (produced by the speech/render service, decoded by the caller):
  NarrationTiming  per voiced shot: audio length and optional word timestamps.

Output side (produced by lessonvid.analytics.timing):
  TimingRecord       audio pass: per-shot start/end, word counts, pace,
                     splice points, warnings and recommendations.
  VideoTimingRecord  video pass: authored shot durations that had to change
                     to fit the narration, with direction preserved.

All times are in seconds from the start of the video.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class TimingAnalysisError(ValueError):
    """Narration timing is missing or malformed; no analysis was produced."""

    def __init__(self, problems: list[str]) -> None:
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------

class WordTimestamp(BaseModel):
    """One spoken word, offsets relative to the start of its shot's audio."""
    word: str
    start: float = Field(ge=0, allow_inf_nan=False)
    end: float = Field(ge=0, allow_inf_nan=False)


class ShotNarration(BaseModel):
    """
    Narration audio for one voiced shot.
    audio_duration may be omitted when word timestamps are present; the latest
    word end time is used instead, whatever order the words arrive in.
    """
    shot_index: int = Field(ge=0)
    audio_duration: Optional[float] = Field(default=None, allow_inf_nan=False)
    words: list[WordTimestamp] = Field(default_factory=list)

    @property
    def has_timing(self) -> bool:
        return bool(self.words)

    def spoken_duration(self) -> Optional[float]:
        if self.audio_duration is not None:
            return self.audio_duration
        if self.words:
            return max(word.end for word in self.words)
        return None


class NarrationTiming(BaseModel):
    video_id: Optional[str] = None
    shots: list[ShotNarration] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Audio timing output
# ---------------------------------------------------------------------------

class PaceBand(str, Enum):
    SLOW = "slow"
    GOOD = "good"
    FAST = "fast"
    VERY_FAST = "very_fast"


class SpliceType(str, Enum):
    HARD_CUT = "hard_cut"       # both sides voiced, audio stops at the boundary
    BLEED_OVER = "bleed_over"   # previous shot's narration continues across
    SILENCE = "silence"         # at least one side has no narration


class ShotTiming(BaseModel):
    shot_index: int
    voiceover: str
    word_count: int
    has_timing: bool
    start_time: float
    end_time: float
    duration: float
    is_silent: bool
    can_bleed_over: bool


class SplicePoint(BaseModel):
    time: float
    type: SpliceType
    shot_index: int   # shot that starts at this point


class TimingRecord(BaseModel):
    video_id: str
    total_duration: float
    total_words: int
    shot_count: int
    words_per_minute: float
    pace: PaceBand
    splice_points: list[SplicePoint] = Field(default_factory=list)
    shots: list[ShotTiming] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Video timing output
# ---------------------------------------------------------------------------

class AdjustmentDirection(str, Enum):
    LENGTHENED = "lengthened"
    SHORTENED = "shortened"


class ShotAdjustment(BaseModel):
    shot_index: int
    original_duration: float
    adjusted_duration: float
    direction: AdjustmentDirection
    reason: str

    @property
    def delta(self) -> float:
        """Signed change in seconds (positive when lengthened)."""
        return self.adjusted_duration - self.original_duration


class VideoTimingRecord(BaseModel):
    video_id: str
    total_duration: float
    shot_adjustments: list[ShotAdjustment] = Field(default_factory=list)
    optimization_suggestions: list[str] = Field(default_factory=list)
