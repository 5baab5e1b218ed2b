from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from .utils import append_jsonl, ensure_dir, utc_now_iso, write_json


@dataclass
class JobPaths:
    job_dir: Path
    segments_dir: Path
    result_json: Path
    metrics_json: Path
    errors_jsonl: Path


def create_job_dirs(workspace: str | Path, job_id: str) -> JobPaths:
    job_dir = Path(workspace) / "jobs" / job_id
    segments_dir = job_dir / "segments"
    ensure_dir(segments_dir)

    return JobPaths(
        job_dir=job_dir,
        segments_dir=segments_dir,
        result_json=job_dir / "result.json",
        metrics_json=job_dir / "metrics.json",
        errors_jsonl=job_dir / "errors.jsonl",
    )


def new_job_id() -> str:
    """Timeline job id: YYYY-MM-DD/HH-MM-SS__<shortid>."""
    now = datetime.now(timezone.utc)
    return f"{now.strftime('%Y-%m-%d')}/{now.strftime('%H-%M-%S')}__{uuid.uuid4().hex[:8]}"


def record_error(paths: JobPaths, page_index: int | None, stage: str, message: str) -> None:
    append_jsonl(paths.errors_jsonl, {"page_index": page_index, "stage": stage, "message": message})


def init_job_outputs(paths: JobPaths) -> None:
    # Output contract files exist even if the run dies early.
    write_json(paths.result_json, {"job": {}, "segments": []})
    write_json(paths.metrics_json, {"created_at": utc_now_iso(), "finished": False, "completed_at": None})
    paths.errors_jsonl.parent.mkdir(parents=True, exist_ok=True)
    paths.errors_jsonl.touch(exist_ok=True)
