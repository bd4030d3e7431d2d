"""
Shared pytest fixtures for lessonvid/tests/.

Provides:
  - the canonical three-shot manifest (raw dict and parsed Manifest)
  - matching narration timing
  - a small set of generation records spanning two partners and three days
"""
from __future__ import annotations

import datetime
import json
from pathlib import Path

import pytest

from lessonvid.schemas.generation import GenerationRecord
from lessonvid.schemas.manifest import Manifest
from lessonvid.schemas.timing import NarrationTiming
from lessonvid.tests._fixture_builders import (
    build_minimal_manifest_data,
    build_minimal_narration,
)

_UTC = datetime.timezone.utc


@pytest.fixture()
def manifest_data() -> dict:
    return build_minimal_manifest_data()


@pytest.fixture()
def manifest(manifest_data) -> Manifest:
    return Manifest.model_validate(manifest_data)


@pytest.fixture()
def narration() -> NarrationTiming:
    return build_minimal_narration()


def build_records() -> list[GenerationRecord]:
    """
    Six records:
      acme    3 records on 2025-09-01 / 09-02, one failure, one beyond SLA
      globex  2 records on 2025-09-02 / 09-03
      (none)  1 record on 2025-09-03 without partner or timings
    """
    def rec(req, partner, seat, day, hour, ok, minutes, hours):
        return GenerationRecord(
            request_id=req,
            partner_id=partner,
            api_key_id=seat,
            render_success=ok,
            created_at=datetime.datetime(2025, 9, day, hour, 0, tzinfo=_UTC),
            manifest_to_mp4_minutes=minutes,
            script_to_completion_hours=hours,
        )

    return [
        rec("r1", "acme", "k1", 1, 9, True, 4.0, 2.0),
        rec("r2", "acme", "k1", 1, 15, False, 10.0, 30.0),
        rec("r3", "acme", "k2", 2, 8, True, 6.0, 5.0),
        rec("r4", "globex", "k3", 2, 23, True, 3.0, 1.0),
        rec("r5", "globex", "k3", 3, 1, True, 8.0, 24.0),
        rec("r6", None, None, 3, 12, None, None, None),
    ]


@pytest.fixture()
def records() -> list[GenerationRecord]:
    return build_records()


@pytest.fixture()
def write_json(tmp_path: Path):
    """Return a helper that writes *data* as JSON under tmp_path."""
    def _write(name: str, data) -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        return path
    return _write
