"""JSON (de)serialization for tone sets and detected tone sequences.

Wire keys are camelCase so payloads interoperate with existing talkgroup
configuration: ``aTone``, ``bTone``, ``longTone``, ``minDuration`` and so on.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from tonewatch.detection.types import Tone, ToneSequence, ToneSet, ToneSpec
from tonewatch.errors import ToneSetParseError


def _number(value: Any, field_name: str) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ToneSetParseError(f"'{field_name}' must be a number, got {value!r}")
    return float(value)


def tone_spec_from_dict(data: Any, field_name: str) -> Optional[ToneSpec]:
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ToneSetParseError(f"'{field_name}' must be an object or null")
    if "frequency" not in data:
        raise ToneSetParseError(f"'{field_name}' is missing 'frequency'")
    return ToneSpec(
        frequency=_number(data.get("frequency"), f"{field_name}.frequency"),
        min_duration=_number(data.get("minDuration"), f"{field_name}.minDuration"),
        max_duration=_number(data.get("maxDuration"), f"{field_name}.maxDuration"),
    )


def tone_spec_to_dict(spec: Optional[ToneSpec]) -> Optional[Dict[str, float]]:
    if spec is None:
        return None
    return {"frequency": spec.frequency, "minDuration": spec.min_duration, "maxDuration": spec.max_duration}


def tone_set_from_dict(data: Any) -> ToneSet:
    if not isinstance(data, dict):
        raise ToneSetParseError(f"tone set must be an object, got {type(data).__name__}")
    return ToneSet(
        id=str(data.get("id", "")),
        label=str(data.get("label", "") or ""),
        a_tone=tone_spec_from_dict(data.get("aTone"), "aTone"),
        b_tone=tone_spec_from_dict(data.get("bTone"), "bTone"),
        long_tone=tone_spec_from_dict(data.get("longTone"), "longTone"),
        tolerance=_number(data.get("tolerance"), "tolerance"),
        min_duration=_number(data.get("minDuration"), "minDuration"),
    )


def tone_set_to_dict(tone_set: ToneSet) -> Dict[str, Any]:
    return {
        "id": tone_set.id,
        "label": tone_set.label,
        "aTone": tone_spec_to_dict(tone_set.a_tone),
        "bTone": tone_spec_to_dict(tone_set.b_tone),
        "longTone": tone_spec_to_dict(tone_set.long_tone),
        "tolerance": tone_set.tolerance,
        "minDuration": tone_set.min_duration,
    }


def parse_tone_sets(data: Union[str, bytes, Sequence[Any], None]) -> List[ToneSet]:
    """Parse tone sets from a JSON string or an already-decoded list.

    Empty input (``None``, ``""``, ``"[]"``) yields an empty list.
    """
    if data is None:
        return []
    if isinstance(data, (str, bytes)):
        text = data.decode("utf-8") if isinstance(data, bytes) else data
        if not text.strip():
            return []
        try:
            data = json.loads(text)
        except ValueError as exc:
            raise ToneSetParseError(f"invalid tone set JSON: {exc}") from exc
    if not isinstance(data, list):
        raise ToneSetParseError("tone sets must be a JSON array")
    return [tone_set_from_dict(item) for item in data]


def serialize_tone_sets(tone_sets: Sequence[ToneSet]) -> str:
    if not tone_sets:
        return "[]"
    return json.dumps([tone_set_to_dict(ts) for ts in tone_sets])


def load_tone_sets(path: Union[str, Path]) -> List[ToneSet]:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ToneSetParseError(f"unable to read tone sets from {path}: {exc}") from exc
    return parse_tone_sets(text)


def tone_to_dict(tone: Optional[Tone]) -> Optional[Dict[str, Any]]:
    if tone is None:
        return None
    return {
        "frequency": tone.frequency,
        "startTime": tone.start_time,
        "endTime": tone.end_time,
        "duration": tone.duration,
        "toneType": tone.tone_type,
    }


def tone_from_dict(data: Dict[str, Any]) -> Tone:
    return Tone(
        frequency=float(data["frequency"]),
        start_time=float(data["startTime"]),
        end_time=float(data["endTime"]),
        duration=float(data.get("duration", float(data["endTime"]) - float(data["startTime"]))),
        tone_type=str(data.get("toneType", "") or ""),
    )


def tone_sequence_to_dict(sequence: ToneSequence) -> Dict[str, Any]:
    return {
        "tones": [tone_to_dict(t) for t in sequence.tones],
        "duration": sequence.duration,
        "aTone": tone_to_dict(sequence.a_tone),
        "bTone": tone_to_dict(sequence.b_tone),
        "longTone": tone_to_dict(sequence.long_tone),
        "hasTones": sequence.has_tones,
        "matchedToneSet": tone_set_to_dict(sequence.matched_tone_set) if sequence.matched_tone_set else None,
        "matchedToneSets": [tone_set_to_dict(ts) for ts in sequence.matched_tone_sets],
    }


def serialize_tone_sequence(sequence: Optional[ToneSequence], *, indent: Optional[int] = None) -> str:
    if sequence is None:
        return "{}"
    return json.dumps(tone_sequence_to_dict(sequence), indent=indent)


def parse_tone_sequence(text: str) -> Optional[ToneSequence]:
    """Inverse of ``serialize_tone_sequence``; ``"{}"`` or blank gives None."""
    if not text or not text.strip():
        return None
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise ToneSetParseError(f"invalid tone sequence JSON: {exc}") from exc
    if not data:
        return None
    matched = [tone_set_from_dict(item) for item in data.get("matchedToneSets") or []]
    primary = data.get("matchedToneSet")
    return ToneSequence(
        tones=[tone_from_dict(t) for t in data.get("tones") or []],
        duration=float(data.get("duration", 0.0)),
        a_tone=tone_from_dict(data["aTone"]) if data.get("aTone") else None,
        b_tone=tone_from_dict(data["bTone"]) if data.get("bTone") else None,
        long_tone=tone_from_dict(data["longTone"]) if data.get("longTone") else None,
        has_tones=bool(data.get("hasTones", False)),
        matched_tone_set=tone_set_from_dict(primary) if primary else None,
        matched_tone_sets=matched,
    )
