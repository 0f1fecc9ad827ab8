#!/usr/bin/env python3
"""tonewatch CLI entrypoint (package module)."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, List, Optional, Set

from tonewatch import config
from tonewatch.audio.decoder import read_wav_file
from tonewatch.batch.runner import BatchJob, BatchRunner, JsonlResultSink
from tonewatch.detection.engine import ToneDetector
from tonewatch.detection.types import ToneSet
from tonewatch.errors import AudioDecodeError, ToneSetParseError, UnknownProfileError
from tonewatch.io.profiles import PEAK_MODES, DetectionProfile, get_profile, serialize_profiles
from tonewatch.io.tone_sets import load_tone_sets, parse_tone_sets, serialize_tone_sequence
from tonewatch.util.event_log import JsonlEventLogger
from tonewatch.util.exit_codes import ExitCode
from tonewatch.util.logging import call_context, configure_logging, get_logger

# CLI attribute -> DetectionProfile field
PROFILE_FLAGS = {
    "band_low_hz": "band_low_hz",
    "band_high_hz": "band_high_hz",
    "min_duration": "min_tone_duration",
    "track_tolerance_hz": "track_tolerance_hz",
    "merge_tolerance_hz": "merge_tolerance_hz",
    "peak_mode": "peak_mode",
    "sample_rate": "sample_rate",
}


def run(args: argparse.Namespace) -> int:
    """Top-level CLI dispatcher; returns an ExitCode value."""
    if getattr(args, "list_profiles", False):
        _emit_profiles_json()
        return ExitCode.SUCCESS

    logger = get_logger(__name__)
    try:
        tone_sets = _load_tone_sets_arg(args.tone_sets)
    except ToneSetParseError as exc:
        logger.error("%s: %s", ExitCode.message(ExitCode.TONE_SET_INVALID), exc)
        return ExitCode.for_exception(exc)

    event_logger = None
    if args.events:
        primary, *mirrors = [Path(p) for p in args.events]
        event_logger = JsonlEventLogger(primary, mirror_paths=mirrors)
    detector = ToneDetector(args.detection_profile, event_logger=event_logger)

    paths = [Path(p) for p in args.files]
    if len(paths) == 1 and not args.jsonl:
        return _run_single(detector, paths[0], tone_sets, args, event_logger)

    runner = BatchRunner(
        detector,
        workers=args.workers,
        sink=JsonlResultSink(Path(args.jsonl)) if args.jsonl else None,
        strip_dir=Path(args.strip_dir) if args.strip_dir else None,
    )
    jobs = [
        BatchJob(call_id=f"{i:05d}-{path.stem}", path=path, tone_sets=tone_sets, raw_wav=args.raw_wav)
        for i, path in enumerate(paths)
    ]
    summary = runner.run(jobs)
    print(
        json.dumps(
            {
                "total": summary.total,
                "analyzed": summary.analyzed,
                "with_tones": summary.with_tones,
                "stripped": summary.stripped,
                "failed": summary.failed,
            }
        )
    )
    return ExitCode.GENERAL_ERROR if summary.failed else ExitCode.SUCCESS


def _run_single(
    detector: ToneDetector,
    path: Path,
    tone_sets: List[ToneSet],
    args: argparse.Namespace,
    event_logger: Optional[JsonlEventLogger],
) -> int:
    logger = get_logger(__name__)
    if event_logger is not None:
        event_logger.start_call(path.stem, path=str(path))
    try:
        with call_context(path.stem):
            if args.raw_wav:
                samples, sample_rate = read_wav_file(path)
                sequence = detector.analyze(samples, sample_rate, tone_sets)
            else:
                audio = path.read_bytes()
                sequence = detector.detect(audio, tone_sets)
                if args.strip_dir:
                    _strip_to_dir(detector, audio, path, Path(args.strip_dir))
    except (AudioDecodeError, OSError) as exc:
        code = ExitCode.for_exception(exc)
        logger.error("%s for %s: %s", ExitCode.message(code), path, exc)
        return code
    print(serialize_tone_sequence(sequence, indent=2))
    return ExitCode.SUCCESS


def _strip_to_dir(detector: ToneDetector, audio: bytes, path: Path, strip_dir: Path) -> None:
    tones = detector.detect_all_tones_for_transcription(audio)
    stripped = detector.remove_tones_from_audio(audio, tones)
    if stripped is audio:
        return
    strip_dir.mkdir(parents=True, exist_ok=True)
    (strip_dir / f"{path.stem}.opus").write_bytes(stripped)


def _load_tone_sets_arg(value: Optional[str]) -> List[ToneSet]:
    if not value:
        return []
    text = value.strip()
    if text.startswith("["):
        return parse_tone_sets(text)
    return load_tone_sets(Path(text))


def _emit_profiles_json() -> None:
    json.dump(serialize_profiles(), sys.stdout, indent=2)
    sys.stdout.write("\n")
    sys.stdout.flush()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    if argv is None:
        argv = sys.argv[1:]

    p = argparse.ArgumentParser(
        description="Detect sustained dispatch tones in call recordings and match them to tone sets",
        argument_default=argparse.SUPPRESS,
    )
    p.add_argument("files", nargs="*", default=[], help="Encoded call recordings (or WAV files with --raw-wav)")
    p.add_argument("--tone-sets", dest="tone_sets", type=str, help="Tone sets as a JSON array or a path to a JSON file")
    p.add_argument("--profile", type=str, help="Detection profile name (default tone_match)")
    p.add_argument("--list-profiles", dest="list_profiles", action="store_true", help="Print built-in detection profiles as JSON and exit")
    p.add_argument("--raw-wav", dest="raw_wav", action="store_true", help="Inputs are WAV files; skip ffmpeg decoding")

    p.add_argument("--band-low-hz", dest="band_low_hz", type=float, help="Lower edge of the tone band [Hz] (profile default)")
    p.add_argument("--band-high-hz", dest="band_high_hz", type=float, help="Upper edge of the tone band [Hz] (profile default)")
    p.add_argument("--min-duration", dest="min_duration", type=float, help="Minimum tone duration [s] (profile default)")
    p.add_argument("--track-tolerance-hz", dest="track_tolerance_hz", type=float, help="Peak-to-track frequency tolerance [Hz]")
    p.add_argument("--merge-tolerance-hz", dest="merge_tolerance_hz", type=float, help="Detection merge frequency tolerance [Hz]")
    p.add_argument("--peak-mode", dest="peak_mode", choices=list(PEAK_MODES), help="Spectral peak picking mode (default local_max)")
    p.add_argument("--sample-rate", dest="sample_rate", type=int, help="Decode sample rate [Hz] (default 16000)")

    p.add_argument("--strip-dir", dest="strip_dir", type=str, help="Write tone-stripped Opus audio into this directory")
    p.add_argument("--jsonl", type=str, help="Append per-file results as JSON lines to this path")
    p.add_argument("--events", action="append", type=str, help="Append detection events as JSON lines to this path; repeat to mirror into several files")
    p.add_argument("--workers", type=int, help="Worker threads for multi-file runs (default TONEWATCH_WORKERS or 4)")
    p.add_argument("--log-level", dest="log_level", type=str, help="Log level (DEBUG, INFO, WARNING, ERROR)")
    p.add_argument("--log-json", dest="log_json", type=str, help="Also write JSON-formatted logs to this path")

    args = p.parse_args(argv)
    args._cli_overrides = set()

    _set_default(args, args._cli_overrides, "files", [])
    _set_default(args, args._cli_overrides, "tone_sets", None)
    _set_default(args, args._cli_overrides, "profile", "tone_match")
    _set_default(args, args._cli_overrides, "list_profiles", False)
    _set_default(args, args._cli_overrides, "raw_wav", False)
    _set_default(args, args._cli_overrides, "strip_dir", None)
    _set_default(args, args._cli_overrides, "jsonl", None)
    _set_default(args, args._cli_overrides, "events", None)
    _set_default(args, args._cli_overrides, "workers", None)
    _set_default(args, args._cli_overrides, "log_level", None)
    _set_default(args, args._cli_overrides, "log_json", None)
    for attr in PROFILE_FLAGS:
        _set_default(args, args._cli_overrides, attr, None)

    if not args.list_profiles and not args.files:
        p.error("at least one input file is required unless --list-profiles is used")
    if args.workers is not None and args.workers < 1:
        p.error("--workers must be >= 1")

    if not args.list_profiles:
        _apply_detection_profile(args, p)

    if hasattr(args, "_cli_overrides"):
        delattr(args, "_cli_overrides")
    if args.workers is None:
        args.workers = config.WORKERS
    return args


def _set_default(args: argparse.Namespace, overrides: Set[str], attr: str, value: Any) -> None:
    if hasattr(args, attr):
        overrides.add(attr)
    else:
        setattr(args, attr, value)


def _apply_detection_profile(args: argparse.Namespace, parser: argparse.ArgumentParser) -> None:
    try:
        profile: DetectionProfile = get_profile(args.profile)
    except UnknownProfileError:
        parser.error(f"Unknown detection profile '{args.profile}'. Use --list-profiles to inspect options.")

    overrides: Set[str] = getattr(args, "_cli_overrides", set())
    values = {field: getattr(args, attr) for attr, field in PROFILE_FLAGS.items() if attr in overrides}
    if values:
        profile = profile.with_overrides(**values)
    if profile.band_high_hz <= profile.band_low_hz:
        parser.error("--band-high-hz must be > --band-low-hz")
    args.detection_profile = profile


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(level=args.log_level, json_file=args.log_json)
    try:
        return run(args)
    except KeyboardInterrupt:
        return ExitCode.GENERAL_ERROR


if __name__ == "__main__":
    sys.exit(main())
