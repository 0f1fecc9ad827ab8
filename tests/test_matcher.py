from tonewatch.detection.types import Tone, ToneSequence, ToneSet, ToneSpec
from tonewatch.matching.matcher import (
    classify_detection,
    closest_configured,
    closest_following,
    match_tone_set,
    match_tone_sets,
    resolve_tolerance_hz,
)


def _tone(freq: float, start: float, end: float, tone_type: str = "") -> Tone:
    return Tone(frequency=freq, start_time=start, end_time=end, duration=end - start, tone_type=tone_type)


def _sequence(*tones: Tone) -> ToneSequence:
    return ToneSequence(tones=list(tones), duration=10.0, has_tones=bool(tones))


def _ab_set(set_id: str, a_hz: float, b_hz: float, tolerance: float = 10.0) -> ToneSet:
    return ToneSet(
        id=set_id,
        label=set_id.upper(),
        a_tone=ToneSpec(frequency=a_hz, min_duration=0.6),
        b_tone=ToneSpec(frequency=b_hz, min_duration=0.6),
        tolerance=tolerance,
    )


def test_tolerance_below_one_is_a_ratio_of_500_hz() -> None:
    assert resolve_tolerance_hz(0.02) == 10.0
    assert resolve_tolerance_hz(15) == 15.0
    assert resolve_tolerance_hz(1.0) == 1.0


def test_single_type_match_tags_the_tone() -> None:
    sets = [_ab_set("fire", 350.0, 1050.0)]
    tone_type, matches = classify_detection(355.0, 1.0, sets)
    assert tone_type == "A"
    assert [(m.tone_set_id, m.tone_type) for m in matches] == [("fire", "A")]
    assert matches[0].diff_hz == 5.0


def test_matching_different_types_across_sets_leaves_type_empty() -> None:
    sets = [_ab_set("fire", 350.0, 1050.0), _ab_set("ems", 700.0, 352.0)]
    tone_type, matches = classify_detection(351.0, 1.0, sets)
    assert tone_type == ""
    assert {(m.tone_set_id, m.tone_type) for m in matches} == {("fire", "A"), ("ems", "B")}


def test_same_type_in_several_sets_keeps_the_type() -> None:
    sets = [_ab_set("fire", 350.0, 1050.0), _ab_set("ems", 352.0, 900.0)]
    tone_type, matches = classify_detection(351.0, 1.0, sets)
    assert tone_type == "A"
    assert len(matches) == 2


def test_duration_limits_are_respected() -> None:
    long_set = ToneSet(id="long", long_tone=ToneSpec(frequency=1000.0, min_duration=2.0, max_duration=4.0), tolerance=10)
    assert classify_detection(1000.0, 1.5, [long_set])[1] == []
    assert classify_detection(1000.0, 5.0, [long_set])[1] == []
    assert classify_detection(1000.0, 3.0, [long_set])[0] == "Long"


def test_closest_configured_reports_the_nearest_slot() -> None:
    sets = [_ab_set("fire", 350.0, 1050.0)]
    closest = closest_configured(400.0, sets)
    assert closest is not None
    assert (closest.tone_type, closest.diff_hz, closest.tolerance_hz) == ("A", 50.0, 10.0)
    assert closest_configured(400.0, []) is None


def test_closest_following_prefers_smallest_gap_and_allows_overlap() -> None:
    a = _tone(350.0, 0.0, 1.0)
    early = _tone(1050.0, 0.2, 0.9)
    overlap = _tone(1050.0, 0.9, 2.0)
    late = _tone(1050.0, 1.3, 2.3)
    assert closest_following(a, [late, overlap, early]) is overlap
    assert closest_following(a, [late]) is late
    assert closest_following(a, [_tone(1050.0, 1.6, 2.6)]) is None
    assert closest_following(a, [early]) is None


def test_ab_set_matches_when_b_follows_a() -> None:
    tone_set = _ab_set("fire", 350.0, 1050.0)
    seq = _sequence(_tone(350.0, 0.0, 1.0, "A"), _tone(1051.0, 1.2, 2.2, "B"))
    assert match_tone_sets(seq, [tone_set]) == [tone_set]
    assert match_tone_set(seq, [tone_set]) is tone_set


def test_ab_set_does_not_match_with_long_gap() -> None:
    tone_set = _ab_set("fire", 350.0, 1050.0)
    seq = _sequence(_tone(350.0, 0.0, 1.0, "A"), _tone(1050.0, 3.0, 4.0, "B"))
    assert match_tone_sets(seq, [tone_set]) == []
    assert match_tone_set(seq, [tone_set]) is None


def test_ab_set_needs_both_tones() -> None:
    tone_set = _ab_set("fire", 350.0, 1050.0)
    assert match_tone_sets(_sequence(_tone(350.0, 0.0, 1.0, "A")), [tone_set]) == []


def test_a_only_and_long_only_sets() -> None:
    a_only = ToneSet(id="a", a_tone=ToneSpec(frequency=350.0), tolerance=10)
    long_only = ToneSet(id="l", long_tone=ToneSpec(frequency=1000.0, min_duration=2.0), tolerance=0.02)
    seq = _sequence(_tone(350.0, 0.0, 1.0, "A"), _tone(1008.0, 2.0, 5.0, "Long"))
    assert match_tone_sets(seq, [a_only, long_only]) == [a_only, long_only]


def test_empty_tone_set_matches_nothing() -> None:
    seq = _sequence(_tone(350.0, 0.0, 1.0))
    assert match_tone_sets(seq, [ToneSet(id="empty", tolerance=10)]) == []


def test_every_matching_set_is_reported_in_configuration_order() -> None:
    first = _ab_set("first", 350.0, 1050.0)
    second = _ab_set("second", 352.0, 1048.0)
    other = _ab_set("other", 600.0, 800.0)
    seq = _sequence(_tone(351.0, 0.0, 1.0), _tone(1049.0, 1.1, 2.1))
    assert match_tone_sets(seq, [first, other, second]) == [first, second]
    assert match_tone_set(seq, [first, other, second]) is first


def test_nothing_matches_without_tones_or_sets() -> None:
    tone_set = _ab_set("fire", 350.0, 1050.0)
    assert match_tone_sets(None, [tone_set]) == []
    assert match_tone_sets(ToneSequence.empty(), [tone_set]) == []
    assert match_tone_sets(_sequence(_tone(350.0, 0.0, 1.0)), []) == []
