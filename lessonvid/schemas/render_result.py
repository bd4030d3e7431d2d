"""
RenderResult — the decoded payload the rendering service returns.

Only the fields the analytics need are modelled; anything else in the payload
is ignored.  Transport (HTTP, streaming download) is the caller's business.
"""
from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, ValidationError

from lessonvid.schemas.timing import NarrationTiming, ShotNarration, TimingAnalysisError


class RenderResult(BaseModel):
    status: Literal["completed", "failed"]
    message: str = ""
    video_id: Optional[str] = None
    video_path: Optional[str] = None
    download_url: Optional[str] = None
    duration: Optional[float] = None        # rendered length, seconds
    audio_timing: list[ShotNarration] = Field(default_factory=list)


def narration_from_render_payload(payload: Any) -> NarrationTiming:
    """
    Extract NarrationTiming from a raw renderer payload.

    Raises:
        TimingAnalysisError: payload is malformed, reports a failed render, or
            carries no narration timing.
    """
    try:
        result = RenderResult.model_validate(payload)
    except ValidationError as exc:
        raise TimingAnalysisError([
            f"render payload {'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in exc.errors()
        ]) from exc

    if result.status != "completed":
        raise TimingAnalysisError(
            [f"render did not complete: {result.message or 'no message'}"]
        )
    if not result.audio_timing:
        raise TimingAnalysisError(["render payload has no audio_timing entries"])

    return NarrationTiming(video_id=result.video_id, shots=result.audio_timing)
