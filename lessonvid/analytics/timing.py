"""
Timing analyzer — derives timing metrics from a manifest plus narration timing.

Two passes share the same narration checks:

  analyze_audio()  per-shot start/end times, word counts, speaking pace,
                   splice points between shots, warnings and recommendations.
  analyze_video()  authored shot durations that must change to fit the
                   narration, with the direction of each change kept.

Shot length rules (used by both passes):
  - voiced shot      → length of its narration audio
  - silent, duration → the authored duration
  - silent, actions  → sum of the actions' run times (delay + duration)

Narration must cover every voiced shot and nothing else.  Any gap or malformed
entry raises TimingAnalysisError listing every problem found; no partial
record is returned.
"""
from __future__ import annotations

import logging
import math
from typing import Optional

from lessonvid.schemas.manifest import Manifest, Shot
from lessonvid.schemas.thresholds import DEFAULT_THRESHOLDS, Thresholds
from lessonvid.schemas.timing import (
    AdjustmentDirection,
    NarrationTiming,
    PaceBand,
    ShotAdjustment,
    ShotNarration,
    ShotTiming,
    SplicePoint,
    SpliceType,
    TimingAnalysisError,
    TimingRecord,
    VideoTimingRecord,
)

logger = logging.getLogger(__name__)

# Word timestamps may overshoot the reported audio length by rounding.
_WORD_END_SLACK_SECONDS = 0.01


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def count_words(text: str) -> int:
    """Whitespace-delimited word count."""
    return len(text.split())


def words_per_minute(total_words: int, total_duration: float) -> float:
    if total_duration <= 0:
        return 0.0
    return total_words / (total_duration / 60.0)


def classify_pace(wpm: float, thresholds: Optional[Thresholds] = None) -> PaceBand:
    """Map words-per-minute to a pace band; lower band edges are inclusive."""
    thresholds = thresholds or DEFAULT_THRESHOLDS
    if wpm < thresholds.pace_slow_below:
        return PaceBand.SLOW
    if wpm < thresholds.pace_good_below:
        return PaceBand.GOOD
    if wpm < thresholds.pace_fast_below:
        return PaceBand.FAST
    return PaceBand.VERY_FAST


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------

class TimingAnalyzer:
    """
    Stateless apart from its thresholds; one instance can serve many requests.

    Usage::

        analyzer = TimingAnalyzer()
        record = analyzer.analyze_audio(manifest, narration)
        print(record.model_dump_json(indent=2))
    """

    def __init__(self, thresholds: Optional[Thresholds] = None) -> None:
        self.thresholds = thresholds or DEFAULT_THRESHOLDS

    # ------------------------------------------------------------------
    # Public
    # ------------------------------------------------------------------

    def analyze_audio(self, manifest: Manifest, narration: NarrationTiming) -> TimingRecord:
        """
        Build the TimingRecord for *manifest*.

        Raises:
            TimingAnalysisError: narration is missing, extra, or malformed.
        """
        by_shot = self._index_narration(manifest, narration)
        durations = self._implied_durations(manifest, by_shot)

        shots: list[ShotTiming] = []
        cursor = 0.0
        for index, (shot, duration) in enumerate(zip(manifest.shots, durations)):
            entry = by_shot.get(index)
            shots.append(ShotTiming(
                shot_index=index,
                voiceover=shot.voiceover,
                word_count=count_words(shot.voiceover),
                has_timing=entry is not None and entry.has_timing,
                start_time=cursor,
                end_time=cursor + duration,
                duration=duration,
                is_silent=shot.is_silent,
                can_bleed_over=shot.allow_bleed_over,
            ))
            cursor += duration

        total_duration = cursor
        total_words = sum(s.word_count for s in shots)
        wpm = words_per_minute(total_words, total_duration)
        pace = classify_pace(wpm, self.thresholds)

        warnings, recommendations = self._audio_advice(manifest, shots, wpm, pace, total_words)

        record = TimingRecord(
            video_id=manifest.video_id,
            total_duration=total_duration,
            total_words=total_words,
            shot_count=len(shots),
            words_per_minute=wpm,
            pace=pace,
            splice_points=_splice_points(manifest.shots, shots),
            shots=shots,
            warnings=warnings,
            recommendations=recommendations,
        )
        logger.info(
            "Audio timing | video=%s | shots=%d | duration=%.2fs | wpm=%.1f (%s)",
            record.video_id, record.shot_count, total_duration, wpm, pace.value,
        )
        return record

    def analyze_video(self, manifest: Manifest, narration: NarrationTiming) -> VideoTimingRecord:
        """
        Compare authored shot durations with the narration and report changes.

        Only voiced shots with an authored duration can be adjusted.  A shot
        allowed to bleed over keeps its authored length when the narration is
        longer; the audio simply continues into the next shot.

        Raises:
            TimingAnalysisError: narration is missing, extra, or malformed.
        """
        by_shot = self._index_narration(manifest, narration)
        implied = self._implied_durations(manifest, by_shot)
        tolerance = self.thresholds.adjustment_tolerance_seconds

        adjustments: list[ShotAdjustment] = []
        final_durations: list[float] = []
        for index, shot in enumerate(manifest.shots):
            authored = shot.duration
            spoken = implied[index]

            if authored is None:
                final_durations.append(spoken)
                continue
            if shot.is_silent or abs(spoken - authored) <= tolerance:
                final_durations.append(authored)
                continue
            if spoken > authored and shot.allow_bleed_over:
                logger.debug("Shot %d narration bleeds %.2fs into the next shot",
                             index, spoken - authored)
                final_durations.append(authored)
                continue

            if spoken > authored:
                direction = AdjustmentDirection.LENGTHENED
                reason = (
                    f"Voiceover runs {spoken:.2f}s, longer than the authored "
                    f"{authored:.2f}s"
                )
            else:
                direction = AdjustmentDirection.SHORTENED
                reason = (
                    f"Voiceover ends at {spoken:.2f}s, {authored - spoken:.2f}s "
                    f"before the authored {authored:.2f}s"
                )
            adjustments.append(ShotAdjustment(
                shot_index=index,
                original_duration=authored,
                adjusted_duration=spoken,
                direction=direction,
                reason=reason,
            ))
            final_durations.append(spoken)

        suggestions = [
            f"Shot {adj.shot_index}: duration changed by {adj.delta:+.2f}s; "
            f"revise the voiceover or the authored duration"
            for adj in adjustments
            if abs(adj.delta) > self.thresholds.large_adjustment_seconds
        ]

        record = VideoTimingRecord(
            video_id=manifest.video_id,
            total_duration=sum(final_durations),
            shot_adjustments=adjustments,
            optimization_suggestions=suggestions,
        )
        logger.info(
            "Video timing | video=%s | adjustments=%d | duration=%.2fs",
            record.video_id, len(adjustments), record.total_duration,
        )
        return record

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _index_narration(
        self,
        manifest: Manifest,
        narration: NarrationTiming,
    ) -> dict[int, ShotNarration]:
        """Map shot index → narration, raising on any inconsistency."""
        problems: list[str] = []
        shot_count = len(manifest.shots)

        if narration.video_id is not None and narration.video_id != manifest.video_id:
            problems.append(
                f"narration is for video {narration.video_id!r}, "
                f"manifest is {manifest.video_id!r}"
            )

        by_shot: dict[int, ShotNarration] = {}
        for entry in narration.shots:
            index = entry.shot_index
            if index >= shot_count:
                problems.append(
                    f"narration for shot {index}, but the manifest has "
                    f"{shot_count} shots"
                )
                continue
            if index in by_shot:
                problems.append(f"duplicate narration for shot {index}")
                continue
            if manifest.shots[index].is_silent:
                problems.append(f"narration supplied for silent shot {index}")
                continue
            problems.extend(_narration_problems(entry))
            by_shot[index] = entry

        for index, shot in enumerate(manifest.shots):
            if not shot.is_silent and index not in by_shot:
                problems.append(f"shot {index} has voiceover but no narration timing")

        if problems:
            raise TimingAnalysisError(problems)
        return by_shot

    def _implied_durations(
        self,
        manifest: Manifest,
        by_shot: dict[int, ShotNarration],
    ) -> list[float]:
        durations: list[float] = []
        problems: list[str] = []
        for index, shot in enumerate(manifest.shots):
            duration = self._shot_length(shot, by_shot.get(index))
            if duration <= 0:
                problems.append(f"shot {index} has no way to infer its length")
            durations.append(duration)
        if problems:
            raise TimingAnalysisError(problems)
        return durations

    def _shot_length(self, shot: Shot, entry: Optional[ShotNarration]) -> float:
        if entry is not None:
            return entry.spoken_duration() or 0.0
        if shot.duration is not None:
            return shot.duration
        return sum(
            action.run_time(self.thresholds.default_action_duration)
            for action in shot.actions
        )

    def _audio_advice(
        self,
        manifest: Manifest,
        shots: list[ShotTiming],
        wpm: float,
        pace: PaceBand,
        total_words: int,
    ) -> tuple[list[str], list[str]]:
        warnings: list[str] = []
        recommendations: list[str] = []

        if total_words:
            if pace is PaceBand.VERY_FAST:
                warnings.append(
                    f"Speaking pace is very fast ({wpm:.0f} wpm); slow the "
                    f"narration or split long voiceovers"
                )
            elif pace is PaceBand.FAST:
                recommendations.append(
                    f"Speaking pace is slightly fast ({wpm:.0f} wpm); consider "
                    f"adding pauses between ideas"
                )
            elif pace is PaceBand.SLOW:
                recommendations.append(
                    f"Speaking pace is slow ({wpm:.0f} wpm); tighten the voiceover "
                    f"or shorten silent shots"
                )

        for first, last, seconds in _silent_runs(shots):
            if seconds <= self.thresholds.long_silence_seconds:
                continue
            if first == last:
                label = f"Shot {first} is"
            else:
                label = f"Shots {first}-{last} are"
            warnings.append(f"{label} silent for {seconds:.1f}s; viewers may lose focus")

        if manifest.shots[-1].allow_bleed_over:
            warnings.append(
                f"Shot {len(shots) - 1} allows bleed-over but is the last shot"
            )

        for timing in shots:
            if not timing.is_silent and not timing.has_timing:
                recommendations.append(
                    f"Shot {timing.shot_index} has no word-level timing; captions "
                    f"will span the whole shot"
                )

        return warnings, recommendations


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _narration_problems(entry: ShotNarration) -> list[str]:
    problems: list[str] = []
    index = entry.shot_index
    spoken = entry.spoken_duration()

    if spoken is None:
        problems.append(
            f"shot {index} narration has neither audio_duration nor word timestamps"
        )
    elif not math.isfinite(spoken) or spoken <= 0:
        problems.append(f"shot {index} narration duration must be positive, got {spoken:g}")

    for k, word in enumerate(entry.words):
        if not (math.isfinite(word.start) and math.isfinite(word.end)):
            problems.append(f"shot {index} word {k} ({word.word!r}) has a non-finite timestamp")
            continue
        if word.end < word.start:
            problems.append(f"shot {index} word {k} ({word.word!r}) ends before it starts")
        if (
            entry.audio_duration is not None
            and word.end > entry.audio_duration + _WORD_END_SLACK_SECONDS
        ):
            problems.append(
                f"shot {index} word {k} ({word.word!r}) ends at {word.end:g}s, "
                f"past the audio duration {entry.audio_duration:g}s"
            )
    return problems


def _splice_points(manifest_shots: list[Shot], shots: list[ShotTiming]) -> list[SplicePoint]:
    points: list[SplicePoint] = []
    for index in range(1, len(shots)):
        previous = manifest_shots[index - 1]
        if not previous.is_silent and previous.allow_bleed_over:
            kind = SpliceType.BLEED_OVER
        elif previous.is_silent or manifest_shots[index].is_silent:
            kind = SpliceType.SILENCE
        else:
            kind = SpliceType.HARD_CUT
        points.append(SplicePoint(
            time=shots[index].start_time,
            type=kind,
            shot_index=index,
        ))
    return points


def _silent_runs(shots: list[ShotTiming]) -> list[tuple[int, int, float]]:
    """(first_index, last_index, seconds) for each run of consecutive silent shots."""
    runs: list[tuple[int, int, float]] = []
    start: Optional[int] = None
    seconds = 0.0
    for timing in shots:
        if timing.is_silent:
            if start is None:
                start, seconds = timing.shot_index, 0.0
            seconds += timing.duration
        elif start is not None:
            runs.append((start, timing.shot_index - 1, seconds))
            start = None
    if start is not None:
        runs.append((start, shots[-1].shot_index, seconds))
    return runs
