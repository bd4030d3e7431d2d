"""
Manifest — the declarative description of one lesson video.

A manifest is an ordered list of shots (playback order) plus the templates
(visual elements) that the shots' actions animate.  It is authored in the
editor, validated, and submitted to the renderer as-is; once a render has been
requested the manifest attached to that generation is never edited again.

Wire names follow the renderer's JSON contract: enum values keep their
renderer spelling (``MathTex_term``, ``ShowPassingFlash``) and template style
uses camelCase keys (``fontSize``, ``fontWeight``).

Scalars are not coerced (a string is never a number, an integer is never a
boolean) and NaN / infinity are rejected everywhere.

These models only enforce the *structural* schema.  Cross-references,
content-vs-type rules and the silent-shot rule live in
``lessonvid.validator.manifest_validator``.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
)


class TemplateType(str, Enum):
    TEXT = "Text"
    MATH_TEX = "MathTex"
    MATH_TEX_TERM = "MathTex_term"
    CIRCLE = "circle"
    CIRCLE_SET = "circle_set"
    RECTANGLE = "rectangle"
    ARROW = "arrow"
    LINE = "line"
    IMAGE = "image"
    VIDEO_CLIP = "video_clip"


class ActionType(str, Enum):
    FADE_IN = "FadeIn"
    FADE_OUT = "FadeOut"
    WRITE = "Write"
    UNWRITE = "Unwrite"
    TRANSFORM = "Transform"
    MORPH = "Morph"
    MOVE = "Move"
    SCALE = "Scale"
    ROTATE = "Rotate"
    HIGHLIGHT = "Highlight"
    INDICATE = "Indicate"
    CIRCUMSCRIBE = "Circumscribe"
    SHOW_PASSING_FLASH = "ShowPassingFlash"
    WIGGLE = "Wiggle"
    WAIT = "Wait"


class ContentKind(str, Enum):
    """Shape of Template.content once narrowed."""
    NONE = "none"
    TEXT = "text"
    SEQUENCE = "sequence"
    MAPPING = "mapping"


# Content shape each template type demands.  Every TemplateType has an entry;
# None means the type accepts any shape (or no content at all).
REQUIRED_CONTENT: dict[TemplateType, Optional[ContentKind]] = {
    TemplateType.TEXT: ContentKind.TEXT,
    TemplateType.MATH_TEX: ContentKind.TEXT,
    TemplateType.MATH_TEX_TERM: ContentKind.TEXT,
    TemplateType.CIRCLE: None,
    TemplateType.CIRCLE_SET: ContentKind.SEQUENCE,
    TemplateType.RECTANGLE: None,
    TemplateType.ARROW: None,
    TemplateType.LINE: None,
    TemplateType.IMAGE: None,
    TemplateType.VIDEO_CLIP: None,
}

# Actions that morph one template into another.
TARGETED_ACTIONS: frozenset[ActionType] = frozenset({
    ActionType.TRANSFORM,
    ActionType.MORPH,
})

TemplateContent = Union[
    StrictStr,
    list[Union[StrictStr, StrictInt, StrictFloat]],
    dict[str, Any],
]


class _WireModel(BaseModel):
    # Scalar fields use the Strict* types: "3" is not a duration and "yes" is
    # not a boolean.  Enum fields stay lax so their wire strings parse.
    model_config = ConfigDict(allow_inf_nan=False)


class TemplateStyle(_WireModel):
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    color: Optional[StrictStr] = None
    font_size: Optional[StrictFloat] = Field(default=None, alias="fontSize")
    font_weight: Optional[StrictStr] = Field(default=None, alias="fontWeight")
    opacity: Optional[StrictFloat] = Field(default=None, ge=0, le=1)


class Position(_WireModel):
    x: StrictFloat
    y: StrictFloat


class Size(_WireModel):
    width: StrictFloat
    height: StrictFloat


class Template(_WireModel):
    """
    A reusable visual element.  ``id`` must be unique within its manifest.

    ``content`` is a string, a list of string/number primitives, or a mapping;
    which shape is legal depends on ``type`` (see REQUIRED_CONTENT).
    """
    id: StrictStr = Field(min_length=1)
    type: TemplateType
    content: Optional[TemplateContent] = None
    style: Optional[TemplateStyle] = None
    position: Optional[Position] = None
    size: Optional[Size] = None

    @property
    def content_kind(self) -> ContentKind:
        # Empty strings count as missing text; the renderer cannot draw them.
        if self.content is None or self.content == "":
            return ContentKind.NONE
        if isinstance(self.content, str):
            return ContentKind.TEXT
        if isinstance(self.content, list):
            return ContentKind.SEQUENCE
        return ContentKind.MAPPING


class Action(_WireModel):
    """A timed operation on one template (or from one template to another)."""
    type: ActionType
    template_id: Optional[StrictStr] = None
    target_template_id: Optional[StrictStr] = None
    duration: Optional[StrictFloat] = Field(default=None, gt=0)   # seconds
    delay: Optional[StrictFloat] = Field(default=None, ge=0)      # seconds
    params: Optional[dict[str, Any]] = None

    def run_time(self, default_duration: float) -> float:
        """Seconds this action occupies: delay plus duration (or the default)."""
        duration = self.duration if self.duration is not None else default_duration
        return (self.delay or 0.0) + duration


class Shot(_WireModel):
    """
    One playback segment.

    ``duration`` is optional: voiced shots take their length from narration and
    silent shots with actions from the actions' run time.  ``allow_bleed_over``
    lets this shot's narration keep playing into the next shot.
    """
    voiceover: StrictStr = ""
    actions: list[Action] = Field(default_factory=list)
    duration: Optional[StrictFloat] = Field(default=None, gt=0)   # seconds
    allow_bleed_over: StrictBool = False
    contained: Optional[StrictBool] = None   # renderer layout hint, passed through

    @property
    def is_silent(self) -> bool:
        return not self.voiceover.strip()


class ManifestStats(BaseModel):
    """Summary counts shown next to a manifest in the editor."""
    template_count: int
    shot_count: int
    total_duration: float   # sum of authored shot durations only


class Manifest(_WireModel):
    """
    A renderable video manifest.  ``shots`` order is playback order.

    Round-trip through ``to_wire()`` and ``Manifest.model_validate`` is
    lossless for every defined field.
    """
    video_id: StrictStr = Field(min_length=1)
    templates: list[Template] = Field(default_factory=list)
    shots: list[Shot] = Field(min_length=1)

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict in the renderer's wire format."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def stats(self) -> ManifestStats:
        return ManifestStats(
            template_count=len(self.templates),
            shot_count=len(self.shots),
            total_duration=sum(shot.duration or 0.0 for shot in self.shots),
        )


class PartialManifest(_WireModel):
    """
    Work-in-progress manifest: every top-level field may be missing.

    Fields that *are* present keep their full constraints, so a draft can be
    stored and displayed without hiding malformed parts.
    """
    video_id: Optional[StrictStr] = Field(default=None, min_length=1)
    templates: Optional[list[Template]] = None
    shots: Optional[list[Shot]] = Field(default=None, min_length=1)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
