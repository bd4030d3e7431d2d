"""
Manifest validator — decides whether a manifest can be submitted for rendering.

Validation runs in two phases:

  1. Structural — the input is parsed against the pydantic schema in
     lessonvid.schemas.manifest (closed enums, numeric ranges, required fields,
     defaults, no type coercion).  Every bad field is reported once, at
     its dotted path in the input.
  2. Semantic — only on structurally valid input: duplicate template ids,
     content shape vs. template type, action references, Transform/Morph
     targets, and silent shots with no way to infer their length.

Both phases collect every violation in one pass.  Advisory warnings (long
videos, long voiceovers, busy shots) are only computed when there are no
errors and never block submission.

Bad input is reported through the returned ValidationReport; nothing here
raises for it.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from lessonvid.schemas.manifest import (
    REQUIRED_CONTENT,
    TARGETED_ACTIONS,
    ContentKind,
    Manifest,
    PartialManifest,
    Shot,
    Template,
)
from lessonvid.schemas.thresholds import DEFAULT_THRESHOLDS, Thresholds

logger = logging.getLogger(__name__)

_CONTENT_LABELS: dict[ContentKind, str] = {
    ContentKind.TEXT: "string",
    ContentKind.SEQUENCE: "array",
    ContentKind.MAPPING: "object",
    ContentKind.NONE: "no",
}


class IssueCategory(str, Enum):
    STRUCTURAL = "structural"     # schema shape, types, ranges
    REFERENTIAL = "referential"   # dangling or missing template references
    CONTENT = "content"           # duplicate ids, content/type mismatch, silent shots


class ValidationIssue(BaseModel):
    message: str
    path: Optional[str] = None    # e.g. "shots.2.actions.0"
    category: IssueCategory


class ValidationReport(BaseModel):
    """
    Outcome of validating one manifest.
    manifest is set whenever the structural phase passed, even if semantic
    errors were found, so editors can still display the parsed draft.
    """
    manifest: Optional[Union[Manifest, PartialManifest]] = None
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def blocking(self) -> bool:
        """True when the manifest cannot be submitted for rendering."""
        return bool(self.errors)

    def messages(self) -> list[str]:
        return [issue.message for issue in self.errors]

    def summary(self) -> dict[str, Any]:
        """JSON-ready view used by the CLI and API layers."""
        return {
            "valid": self.success,
            "errors": [issue.model_dump(mode="json") for issue in self.errors],
            "warnings": list(self.warnings),
        }


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------

def validate_manifest(
    data: Any,
    thresholds: Optional[Thresholds] = None,
) -> ValidationReport:
    """
    Validate untrusted manifest data (typically decoded JSON) in both phases.

    Args:
        data:       Anything; usually a dict loaded from storage or a request.
        thresholds: Warning limits; DEFAULT_THRESHOLDS when omitted.

    Returns:
        ValidationReport.  On structural failure only structural issues are
        reported and ``manifest`` is None.
    """
    thresholds = thresholds or DEFAULT_THRESHOLDS
    try:
        manifest = Manifest.model_validate(data)
    except ValidationError as exc:
        errors = _structural_issues(exc, data)
        logger.debug("Manifest failed structural validation: %d errors", len(errors))
        return ValidationReport(errors=errors)

    errors = get_template_errors(manifest.templates)
    errors.extend(get_shot_errors(manifest.shots, manifest.templates))
    warnings = [] if errors else get_manifest_warnings(manifest.shots, thresholds)

    logger.debug(
        "Validated manifest %s: %d errors, %d warnings",
        manifest.video_id, len(errors), len(warnings),
    )
    return ValidationReport(manifest=manifest, errors=errors, warnings=warnings)


def validate_partial_manifest(data: Any) -> ValidationReport:
    """
    Structural validation for a work-in-progress manifest.

    Top-level fields may be absent; fields that are present must be well
    formed.  Use get_manifest_validation_issues() on the result to see what
    still blocks submission.
    """
    try:
        partial = PartialManifest.model_validate(data)
    except ValidationError as exc:
        return ValidationReport(errors=_structural_issues(exc, data))
    return ValidationReport(manifest=partial)


def get_manifest_validation_issues(
    manifest: Union[Manifest, PartialManifest],
    thresholds: Optional[Thresholds] = None,
) -> ValidationReport:
    """
    Everything standing between a (possibly partial) manifest and submission.

    Missing video id or shots are reported alongside the semantic checks, so
    a draft shows its full to-do list at once.
    """
    thresholds = thresholds or DEFAULT_THRESHOLDS
    errors: list[ValidationIssue] = []

    if not manifest.video_id:
        errors.append(ValidationIssue(
            message="Video ID is required",
            path="video_id",
            category=IssueCategory.STRUCTURAL,
        ))
    if not manifest.shots:
        errors.append(ValidationIssue(
            message="At least one shot is required",
            path="shots",
            category=IssueCategory.STRUCTURAL,
        ))

    templates = manifest.templates or []
    shots = manifest.shots or []
    errors.extend(get_template_errors(templates))
    errors.extend(get_shot_errors(shots, templates))

    warnings = [] if errors else get_manifest_warnings(shots, thresholds)
    return ValidationReport(manifest=manifest, errors=errors, warnings=warnings)


# ---------------------------------------------------------------------------
# Semantic checks
# ---------------------------------------------------------------------------

def get_template_errors(templates: list[Template]) -> list[ValidationIssue]:
    """Duplicate ids (one issue per occurrence) and content/type mismatches."""
    errors: list[ValidationIssue] = []

    positions: dict[str, list[int]] = {}
    for index, template in enumerate(templates):
        positions.setdefault(template.id, []).append(index)

    for index, template in enumerate(templates):
        seen_at = positions[template.id]
        if len(seen_at) > 1:
            others = ", ".join(str(i) for i in seen_at if i != index)
            errors.append(ValidationIssue(
                message=(
                    f'Duplicate template ID "{template.id}" at index {index} '
                    f"(also at index {others})"
                ),
                path=f"templates.{index}.id",
                category=IssueCategory.CONTENT,
            ))

        required = REQUIRED_CONTENT[template.type]
        if required is not None and template.content_kind is not required:
            errors.append(ValidationIssue(
                message=(
                    f'Template "{template.id}" of type {template.type.value} '
                    f"requires {_CONTENT_LABELS[required]} content"
                ),
                path=f"templates.{index}.content",
                category=IssueCategory.CONTENT,
            ))

    return errors


def get_shot_errors(
    shots: list[Shot],
    templates: list[Template],
) -> list[ValidationIssue]:
    """Action references, Transform/Morph targets and the silent-shot rule."""
    errors: list[ValidationIssue] = []
    template_ids = {template.id for template in templates}

    for shot_index, shot in enumerate(shots):
        for action_index, action in enumerate(shot.actions):
            prefix = f"Shot {shot_index}, Action {action_index}"
            path = f"shots.{shot_index}.actions.{action_index}"

            if action.template_id is not None and action.template_id not in template_ids:
                errors.append(ValidationIssue(
                    message=f'{prefix}: Template "{action.template_id}" not found',
                    path=f"{path}.template_id",
                    category=IssueCategory.REFERENTIAL,
                ))

            if (
                action.target_template_id is not None
                and action.target_template_id not in template_ids
            ):
                errors.append(ValidationIssue(
                    message=(
                        f'{prefix}: Target template "{action.target_template_id}" '
                        f"not found"
                    ),
                    path=f"{path}.target_template_id",
                    category=IssueCategory.REFERENTIAL,
                ))

            if action.type in TARGETED_ACTIONS and not action.target_template_id:
                errors.append(ValidationIssue(
                    message=(
                        f"{prefix}: {action.type.value} action requires "
                        f"target_template_id"
                    ),
                    path=f"{path}.target_template_id",
                    category=IssueCategory.REFERENTIAL,
                ))

        if shot.is_silent and not shot.actions and shot.duration is None:
            errors.append(ValidationIssue(
                message=(
                    f"Shot {shot_index}: Silent shot without actions requires "
                    f"explicit duration"
                ),
                path=f"shots.{shot_index}.duration",
                category=IssueCategory.CONTENT,
            ))

    return errors


def get_manifest_warnings(
    shots: list[Shot],
    thresholds: Optional[Thresholds] = None,
) -> list[str]:
    """Advisory, non-blocking notes about length and complexity."""
    thresholds = thresholds or DEFAULT_THRESHOLDS
    warnings: list[str] = []

    total_duration = sum(shot.duration or 0.0 for shot in shots)
    if total_duration > thresholds.max_total_duration_seconds:
        warnings.append(
            f"Total video duration ({total_duration:g}s) exceeds "
            f"{thresholds.max_total_duration_seconds:g}s, consider breaking "
            f"into smaller segments"
        )

    for index, shot in enumerate(shots):
        if len(shot.voiceover) > thresholds.max_voiceover_chars:
            warnings.append(
                f"Shot {index}: Very long voiceover text "
                f"({len(shot.voiceover)} chars), consider splitting"
            )
        if len(shot.actions) > thresholds.max_actions_per_shot:
            warnings.append(
                f"Shot {index}: Many actions ({len(shot.actions)}), "
                f"may be complex to render"
            )

    return warnings


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

_MISSING = object()


def _structural_issues(exc: ValidationError, data: Any) -> list[ValidationIssue]:
    """One issue per location in *data*, carrying every distinct message for it."""
    by_path: dict[str, list[str]] = {}
    for err in exc.errors():
        messages = by_path.setdefault(_data_path(err["loc"], data), [])
        if err["msg"] not in messages:
            messages.append(err["msg"])

    issues: list[ValidationIssue] = []
    for path, messages in by_path.items():
        text = "; ".join(messages)
        issues.append(ValidationIssue(
            message=f"{path}: {text}" if path else text,
            path=path or None,
            category=IssueCategory.STRUCTURAL,
        ))
    return issues


def _data_path(loc: tuple, data: Any) -> str:
    """
    Dotted path of an error location, walked against the input.

    Union validation adds one loc segment per member type (``str``,
    ``list[...]``); those segments name no field or index in the input and
    are skipped.
    """
    parts: list[str] = []
    node = data
    for part in loc:
        if isinstance(node, dict):
            parts.append(str(part))
            node = node.get(part, _MISSING)
        elif isinstance(node, (list, tuple)) and isinstance(part, int):
            parts.append(str(part))
            node = node[part] if 0 <= part < len(node) else _MISSING
    return ".".join(parts)
