import json

import pytest

from tonewatch.detection.types import Tone, ToneSequence, ToneSet, ToneSpec
from tonewatch.errors import ToneSetParseError
from tonewatch.io.tone_sets import (
    load_tone_sets,
    parse_tone_sequence,
    parse_tone_sets,
    serialize_tone_sequence,
    serialize_tone_sets,
)

CONFIG = """
[
  {"id": "fire-1", "label": "Fire Dept",
   "aTone": {"frequency": 350.0, "minDuration": 0.6, "maxDuration": 0},
   "bTone": {"frequency": 1050.0, "minDuration": 0.6, "maxDuration": 3.0},
   "longTone": null, "tolerance": 0.02, "minDuration": 1.0},
  {"id": "ems-long", "label": "EMS", "longTone": {"frequency": 1000.0, "minDuration": 2.0},
   "tolerance": 15}
]
"""


def test_parse_reads_camel_case_fields() -> None:
    fire, ems = parse_tone_sets(CONFIG)
    assert fire.id == "fire-1"
    assert fire.label == "Fire Dept"
    assert fire.a_tone == ToneSpec(frequency=350.0, min_duration=0.6, max_duration=0.0)
    assert fire.b_tone.max_duration == 3.0
    assert fire.long_tone is None
    assert fire.tolerance == 0.02
    assert fire.min_duration == 1.0
    assert ems.is_long_only
    assert ems.long_tone.max_duration == 0.0


def test_round_trip_reproduces_every_field() -> None:
    sets = parse_tone_sets(CONFIG)
    assert parse_tone_sets(serialize_tone_sets(sets)) == sets


def test_serialize_writes_null_for_absent_specs() -> None:
    payload = json.loads(serialize_tone_sets([ToneSet(id="x", a_tone=ToneSpec(frequency=500.0), tolerance=10)]))
    assert payload[0]["bTone"] is None
    assert payload[0]["longTone"] is None
    assert payload[0]["aTone"] == {"frequency": 500.0, "minDuration": 0.0, "maxDuration": 0.0}


def test_empty_inputs() -> None:
    assert parse_tone_sets("") == []
    assert parse_tone_sets("[]") == []
    assert parse_tone_sets(None) == []
    assert serialize_tone_sets([]) == "[]"


def test_already_decoded_list_is_accepted() -> None:
    (tone_set,) = parse_tone_sets([{"id": "a", "aTone": {"frequency": 400}}])
    assert tone_set.a_tone.frequency == 400.0


@pytest.mark.parametrize(
    "payload",
    [
        "not json",
        '{"id": "x"}',
        '[{"id": "x", "aTone": {"minDuration": 1}}]',
        '[{"id": "x", "aTone": {"frequency": "high"}}]',
        "[42]",
    ],
)
def test_invalid_payloads_raise(payload: str) -> None:
    with pytest.raises(ToneSetParseError):
        parse_tone_sets(payload)


def test_load_tone_sets_from_file(tmp_path) -> None:
    path = tmp_path / "tone_sets.json"
    path.write_text(CONFIG, encoding="utf-8")
    assert [ts.id for ts in load_tone_sets(path)] == ["fire-1", "ems-long"]
    with pytest.raises(ToneSetParseError):
        load_tone_sets(tmp_path / "missing.json")


def test_sequence_serialization() -> None:
    assert serialize_tone_sequence(None) == "{}"
    fire = ToneSet(id="fire", a_tone=ToneSpec(frequency=350.0), tolerance=10)
    tone = Tone(frequency=351.0, start_time=0.5, end_time=1.7, duration=1.2, tone_type="A")
    seq = ToneSequence(
        tones=[tone],
        duration=6.2,
        a_tone=tone,
        has_tones=True,
        matched_tone_set=fire,
        matched_tone_sets=[fire],
    )
    payload = json.loads(serialize_tone_sequence(seq))
    assert payload["hasTones"] is True
    assert payload["aTone"] == {"frequency": 351.0, "startTime": 0.5, "endTime": 1.7, "duration": 1.2, "toneType": "A"}
    assert payload["bTone"] is None
    assert payload["matchedToneSet"]["id"] == "fire"
    assert [ts["id"] for ts in payload["matchedToneSets"]] == ["fire"]
    assert parse_tone_sequence(serialize_tone_sequence(seq)) == seq
    assert parse_tone_sequence("{}") is None
