"""
Unit tests for lessonvid.validator.manifest_validator.

Each test starts from the canonical fixture and breaks one thing, so the
expected messages can be asserted exactly.
"""
from __future__ import annotations

import copy

import pytest

from lessonvid.schemas.manifest import Manifest, Shot
from lessonvid.schemas.thresholds import Thresholds
from lessonvid.validator.manifest_validator import (
    IssueCategory,
    get_manifest_validation_issues,
    get_manifest_warnings,
    get_shot_errors,
    get_template_errors,
    validate_manifest,
    validate_partial_manifest,
)


def _messages(report):
    return report.messages()


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------

class TestValidManifest:

    def test_fixture_is_valid(self, manifest_data):
        report = validate_manifest(manifest_data)
        assert report.success
        assert report.errors == []
        assert report.warnings == []
        assert report.manifest.video_id == "verify-fractions-001"

    def test_idempotent(self, manifest_data):
        first = validate_manifest(copy.deepcopy(manifest_data))
        second = validate_manifest(copy.deepcopy(manifest_data))
        assert first.summary() == second.summary()
        assert first.manifest == second.manifest

    def test_input_not_mutated(self, manifest_data):
        before = copy.deepcopy(manifest_data)
        validate_manifest(manifest_data)
        assert manifest_data == before

    def test_summary_shape(self, manifest_data):
        assert validate_manifest(manifest_data).summary() == {
            "valid": True, "errors": [], "warnings": [],
        }


# ---------------------------------------------------------------------------
# Structural phase
# ---------------------------------------------------------------------------

class TestStructural:

    def test_not_a_mapping(self):
        report = validate_manifest(["not", "a", "manifest"])
        assert not report.success
        assert report.manifest is None
        assert all(i.category is IssueCategory.STRUCTURAL for i in report.errors)

    def test_every_field_error_reported(self, manifest_data):
        manifest_data["shots"][0]["duration"] = -1
        manifest_data["templates"][3]["style"]["opacity"] = 2
        manifest_data["shots"][1]["actions"][0]["type"] = "Explode"
        report = validate_manifest(manifest_data)
        paths = {issue.path for issue in report.errors}
        assert "shots.0.duration" in paths
        assert "templates.3.style.opacity" in paths
        assert "shots.1.actions.0.type" in paths

    def test_message_prefixed_with_path(self, manifest_data):
        manifest_data["shots"][0]["duration"] = 0
        report = validate_manifest(manifest_data)
        assert len(report.errors) == 1
        assert report.errors[0].message.startswith("shots.0.duration: ")

    def test_structural_errors_hide_semantic_ones(self, manifest_data):
        manifest_data["video_id"] = ""
        manifest_data["shots"][0]["actions"][0]["template_id"] = "missing"
        report = validate_manifest(manifest_data)
        assert [i.path for i in report.errors] == ["video_id"]
        assert not any("not found" in m for m in _messages(report))

    def test_empty_shots(self, manifest_data):
        manifest_data["shots"] = []
        report = validate_manifest(manifest_data)
        assert [i.path for i in report.errors] == ["shots"]

    def test_strings_and_truthy_values_not_coerced(self):
        report = validate_manifest({
            "video_id": "v",
            "shots": [{
                "duration": "3",
                "allow_bleed_over": "yes",
                "actions": [{"type": "Wait", "delay": "0.5"}],
            }],
        })
        assert report.manifest is None
        assert {i.path for i in report.errors} == {
            "shots.0.duration",
            "shots.0.allow_bleed_over",
            "shots.0.actions.0.delay",
        }

    def test_boolean_is_not_a_duration(self, manifest_data):
        manifest_data["shots"][0]["duration"] = True
        report = validate_manifest(manifest_data)
        assert [i.path for i in report.errors] == ["shots.0.duration"]

    def test_boolean_content_items_rejected(self, manifest_data):
        manifest_data["templates"][3]["content"] = [True, False]
        report = validate_manifest(manifest_data)
        assert not report.success
        assert report.manifest is None
        assert all(i.path.startswith("templates.3.content") for i in report.errors)

    def test_integer_numbers_accepted(self, manifest_data):
        manifest_data["shots"][0]["duration"] = 4
        manifest_data["templates"][0]["position"] = {"x": 10, "y": -5}
        report = validate_manifest(manifest_data)
        assert report.success
        assert report.manifest.shots[0].duration == 4.0

    @pytest.mark.parametrize("value", [float("inf"), float("nan")])
    def test_non_finite_numbers_rejected(self, manifest_data, value):
        manifest_data["shots"][0]["duration"] = value
        report = validate_manifest(manifest_data)
        assert [i.path for i in report.errors] == ["shots.0.duration"]
        assert report.warnings == []

    def test_union_content_error_reported_once(self, manifest_data):
        manifest_data["templates"][0]["content"] = 5
        report = validate_manifest(manifest_data)
        assert len(report.errors) == 1
        issue = report.errors[0]
        assert issue.path == "templates.0.content"
        assert issue.message.startswith("templates.0.content: ")
        assert issue.category is IssueCategory.STRUCTURAL

    def test_missing_field_path(self, manifest_data):
        del manifest_data["templates"][1]["type"]
        report = validate_manifest(manifest_data)
        assert [i.path for i in report.errors] == ["templates.1.type"]


# ---------------------------------------------------------------------------
# Template checks
# ---------------------------------------------------------------------------

class TestTemplateErrors:

    def test_duplicate_ids_reported_per_occurrence(self, manifest_data):
        manifest_data["templates"][1]["id"] = "title"
        report = validate_manifest(manifest_data)
        dupes = [i for i in report.errors if "Duplicate" in i.message]
        assert [i.message for i in dupes] == [
            'Duplicate template ID "title" at index 0 (also at index 1)',
            'Duplicate template ID "title" at index 1 (also at index 0)',
        ]
        assert [i.path for i in dupes] == ["templates.0.id", "templates.1.id"]
        assert all(i.category is IssueCategory.CONTENT for i in dupes)

    def test_text_requires_string(self, manifest_data):
        manifest_data["templates"][0]["content"] = ["Adding", "fractions"]
        report = validate_manifest(manifest_data)
        assert _messages(report) == ['Template "title" of type Text requires string content']
        assert report.errors[0].path == "templates.0.content"

    def test_mathtex_empty_string_is_missing(self, manifest_data):
        manifest_data["templates"][1]["content"] = ""
        report = validate_manifest(manifest_data)
        assert _messages(report) == ['Template "eq1" of type MathTex requires string content']

    def test_circle_set_requires_array(self, manifest_data):
        manifest_data["templates"][3]["content"] = "1,2,3,4"
        report = validate_manifest(manifest_data)
        assert _messages(report) == ['Template "dots" of type circle_set requires array content']

    @pytest.mark.parametrize("content", [None, "label", [1, 2], {"radius": 2}])
    def test_unconstrained_types_accept_any_content(self, content):
        manifest = Manifest.model_validate({
            "video_id": "v",
            "templates": [{"id": "c", "type": "circle", "content": content}],
            "shots": [{"duration": 1}],
        })
        assert get_template_errors(manifest.templates) == []


# ---------------------------------------------------------------------------
# Shot checks
# ---------------------------------------------------------------------------

class TestShotErrors:

    def test_missing_template_reference(self, manifest_data):
        manifest_data["shots"][2]["actions"][0]["template_id"] = "missing"
        report = validate_manifest(manifest_data)
        assert _messages(report) == ['Shot 2, Action 0: Template "missing" not found']
        issue = report.errors[0]
        assert issue.path == "shots.2.actions.0.template_id"
        assert issue.category is IssueCategory.REFERENTIAL

    def test_missing_target_reference(self, manifest_data):
        manifest_data["shots"][1]["actions"][1]["target_template_id"] = "eq9"
        report = validate_manifest(manifest_data)
        assert _messages(report) == ['Shot 1, Action 1: Target template "eq9" not found']

    def test_transform_requires_target(self, manifest_data):
        del manifest_data["shots"][1]["actions"][1]["target_template_id"]
        report = validate_manifest(manifest_data)
        assert _messages(report) == [
            "Shot 1, Action 1: Transform action requires target_template_id",
        ]

    def test_morph_requires_target(self):
        manifest = Manifest.model_validate({
            "video_id": "v",
            "templates": [{"id": "a", "type": "circle"}],
            "shots": [{"actions": [{"type": "Morph", "template_id": "a"}]}],
        })
        errors = get_shot_errors(manifest.shots, manifest.templates)
        assert [e.message for e in errors] == [
            "Shot 0, Action 0: Morph action requires target_template_id",
        ]

    def test_silent_shot_without_actions_needs_duration(self, manifest_data):
        manifest_data["shots"].append({"voiceover": "  "})
        report = validate_manifest(manifest_data)
        assert _messages(report) == [
            "Shot 3: Silent shot without actions requires explicit duration",
        ]
        assert report.errors[0].path == "shots.3.duration"

    def test_silent_shot_with_duration_ok(self, manifest_data):
        manifest_data["shots"].append({"duration": 2.0})
        assert validate_manifest(manifest_data).success

    def test_all_errors_collected_in_one_pass(self, manifest_data):
        manifest_data["templates"][1]["id"] = "title"
        manifest_data["shots"][0]["actions"][0]["template_id"] = "missing"
        manifest_data["shots"].append({})
        report = validate_manifest(manifest_data)
        messages = _messages(report)
        assert len(messages) == 5
        assert sum("Duplicate" in m for m in messages) == 2
        assert 'Shot 0, Action 0: Template "missing" not found' in messages
        # eq1 no longer exists, so the Transform source dangles
        assert 'Shot 1, Action 1: Template "eq1" not found' in messages
        assert "Shot 3: Silent shot without actions requires explicit duration" in messages
        assert report.warnings == []


# ---------------------------------------------------------------------------
# Warnings
# ---------------------------------------------------------------------------

class TestWarnings:

    def test_long_total_duration(self):
        shots = [Shot(duration=200.0), Shot(duration=150.0)]
        assert get_manifest_warnings(shots) == [
            "Total video duration (350s) exceeds 300s, consider breaking into smaller segments",
        ]

    def test_exactly_at_limit_is_fine(self):
        assert get_manifest_warnings([Shot(duration=300.0)]) == []

    def test_long_voiceover(self):
        shots = [Shot(voiceover="a" * 501)]
        assert get_manifest_warnings(shots) == [
            "Shot 0: Very long voiceover text (501 chars), consider splitting",
        ]

    def test_many_actions(self, manifest_data):
        manifest_data["shots"][0]["actions"] = [
            {"type": "Indicate", "template_id": "title"} for _ in range(11)
        ]
        report = validate_manifest(manifest_data)
        assert report.success
        assert report.warnings == ["Shot 0: Many actions (11), may be complex to render"]

    def test_custom_thresholds(self, manifest_data):
        report = validate_manifest(manifest_data, Thresholds(max_actions_per_shot=1))
        assert report.warnings == ["Shot 1: Many actions (2), may be complex to render"]

    def test_warnings_suppressed_when_errors(self, manifest_data):
        manifest_data["shots"][0]["voiceover"] = "a" * 600
        manifest_data["shots"][2]["actions"][0]["template_id"] = "missing"
        report = validate_manifest(manifest_data)
        assert not report.success
        assert report.warnings == []

    def test_warnings_never_block(self, manifest_data):
        manifest_data["shots"][0]["voiceover"] = "a" * 600
        report = validate_manifest(manifest_data)
        assert report.warnings
        assert not report.blocking


# ---------------------------------------------------------------------------
# Partial manifests
# ---------------------------------------------------------------------------

class TestPartial:

    def test_empty_draft_parses(self):
        report = validate_partial_manifest({})
        assert report.success
        assert report.manifest is not None

    def test_empty_draft_issues(self):
        draft = validate_partial_manifest({}).manifest
        report = get_manifest_validation_issues(draft)
        assert _messages(report) == ["Video ID is required", "At least one shot is required"]

    def test_malformed_draft_field(self):
        report = validate_partial_manifest({"shots": [{"actions": [{"type": "Zoom"}]}]})
        assert not report.success
        assert report.errors[0].path == "shots.0.actions.0.type"

    def test_draft_issues_include_semantic_errors(self):
        draft = validate_partial_manifest({
            "templates": [{"id": "t", "type": "Text", "content": "hi"}],
            "shots": [{"actions": [{"type": "FadeIn", "template_id": "nope"}]}],
        }).manifest
        report = get_manifest_validation_issues(draft)
        assert _messages(report) == [
            "Video ID is required",
            'Shot 0, Action 0: Template "nope" not found',
        ]

    def test_complete_manifest_has_no_issues(self, manifest):
        report = get_manifest_validation_issues(manifest)
        assert report.success
        assert report.warnings == []
