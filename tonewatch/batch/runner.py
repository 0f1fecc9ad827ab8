"""Analyse many recordings on a bounded worker pool.

Each job is isolated: an exception while decoding or analysing one recording
is captured on its result and never stops the batch. Results are written back
to the sink in batches rather than one at a time.
"""

from __future__ import annotations

import json
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from tonewatch import config
from tonewatch.audio.decoder import read_wav_file
from tonewatch.detection.engine import ToneDetector
from tonewatch.detection.types import ToneSequence, ToneSet
from tonewatch.io.tone_sets import tone_sequence_to_dict
from tonewatch.util.logging import call_context, get_logger, log_exception
from tonewatch.util.time import utc_now_str


@dataclass
class BatchJob:
    call_id: str
    path: Path
    tone_sets: Sequence[ToneSet] = ()
    raw_wav: bool = False


@dataclass
class BatchResult:
    call_id: str
    path: Path
    sequence: Optional[ToneSequence] = None
    stripped_path: Optional[Path] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ts": utc_now_str(),
            "call_id": self.call_id,
            "path": str(self.path),
            "ok": self.ok,
            "error": self.error,
            "sequence": tone_sequence_to_dict(self.sequence) if self.sequence else None,
            "stripped_path": str(self.stripped_path) if self.stripped_path else None,
        }


@dataclass
class BatchSummary:
    total: int = 0
    analyzed: int = 0
    with_tones: int = 0
    failed: int = 0
    stripped: int = 0
    results: List[BatchResult] = field(default_factory=list)

    def add(self, result: BatchResult) -> None:
        self.total += 1
        self.results.append(result)
        if not result.ok:
            self.failed += 1
            return
        self.analyzed += 1
        if result.sequence is not None and result.sequence.has_tones:
            self.with_tones += 1
        if result.stripped_path is not None:
            self.stripped += 1


class JsonlResultSink:
    """Append batch results to a JSON lines file."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def write(self, results: Sequence[BatchResult]) -> None:
        with self.path.open("a", encoding="utf-8") as fh:
            for result in results:
                fh.write(json.dumps(result.to_dict()) + "\n")


class BatchRunner:
    def __init__(
        self,
        detector: ToneDetector,
        *,
        workers: int = config.WORKERS,
        write_batch_size: int = config.WRITE_BATCH_SIZE,
        sink: Optional[Any] = None,
        strip_dir: Optional[Path] = None,
    ):
        self.detector = detector
        self.workers = max(1, int(workers))
        self.write_batch_size = max(1, int(write_batch_size))
        self.sink = sink
        self.strip_dir = Path(strip_dir) if strip_dir else None
        self.logger = get_logger(__name__)
        self._pending: List[BatchResult] = []
        self._lock = threading.Lock()

    def process(self, job: BatchJob) -> BatchResult:
        result = BatchResult(call_id=job.call_id, path=job.path)
        with call_context(job.call_id):
            events = getattr(self.detector, "event_logger", None)
            if events is not None:
                events.log("call_start", path=str(job.path))
            self._process(job, result)
        return result

    def _process(self, job: BatchJob, result: BatchResult) -> None:
        try:
            if job.raw_wav:
                samples, sample_rate = read_wav_file(job.path)
                result.sequence = self.detector.analyze(samples, sample_rate, job.tone_sets)
            else:
                audio = job.path.read_bytes()
                result.sequence = self.detector.detect(audio, job.tone_sets)
                if self.strip_dir is not None:
                    result.stripped_path = self._strip(job, audio)
        except Exception as exc:
            log_exception(
                self.logger,
                f"analysis failed for {job.path}",
                error_type=type(exc).__name__,
            )
            result.error = f"{type(exc).__name__}: {exc}"

    def _strip(self, job: BatchJob, audio: bytes) -> Optional[Path]:
        tones = self.detector.detect_all_tones_for_transcription(audio)
        if not tones:
            return None
        stripped = self.detector.remove_tones_from_audio(audio, tones)
        if stripped is audio:
            return None
        self.strip_dir.mkdir(parents=True, exist_ok=True)
        out_path = self.strip_dir / f"{job.path.stem}.opus"
        out_path.write_bytes(stripped)
        return out_path

    def _collect(self, result: BatchResult) -> None:
        with self._lock:
            self._pending.append(result)
            if len(self._pending) >= self.write_batch_size:
                self._flush_locked()

    def _flush_locked(self) -> None:
        if not self._pending:
            return
        batch, self._pending = self._pending, []
        if self.sink is None:
            return
        try:
            self.sink.write(batch)
        except OSError:
            log_exception(self.logger, f"failed to write {len(batch)} result(s)", error_type="sink")

    def run(self, jobs: Iterable[BatchJob]) -> BatchSummary:
        summary = BatchSummary()
        jobs = list(jobs)
        if not jobs:
            return summary
        self.logger.info("analyzing %d recording(s) with %d worker(s)", len(jobs), self.workers)
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            futures = {pool.submit(self.process, job): job for job in jobs}
            for future in as_completed(futures):
                result = future.result()
                summary.add(result)
                self._collect(result)
        with self._lock:
            self._flush_locked()
        summary.results.sort(key=lambda r: r.call_id)
        self.logger.info(
            "batch complete: %d analyzed, %d with tones, %d stripped, %d failed",
            summary.analyzed,
            summary.with_tones,
            summary.stripped,
            summary.failed,
        )
        return summary
