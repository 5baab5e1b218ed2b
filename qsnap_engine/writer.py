from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .job import JobPaths
from .types import Segment
from .utils import slugify, utc_now_iso, write_json


@dataclass
class JobWriter:
    paths: JobPaths
    _counts: dict[int, int] = field(default_factory=dict)

    def write_segment(self, seg: Segment) -> dict[str, Any]:
        """Save one crop as PNG and return its result.json entry."""
        n = self._counts.get(seg.page_index, 0)
        self._counts[seg.page_index] = n + 1

        page_num = seg.page_index + 1
        rel = f"segments/page_{page_num:03d}/seg_{n:03d}_{slugify(seg.label, max_len=40)}.png"
        abs_path = self.paths.job_dir / rel
        abs_path.parent.mkdir(parents=True, exist_ok=True)
        seg.image.save(abs_path, format="PNG")

        return {
            "page_index": seg.page_index,
            "ques_number": seg.label,
            "top": seg.top,
            "bottom": seg.bottom,
            "image_path": rel,
        }

    def write_final(self, job_meta: dict[str, Any], segments: list[dict[str, Any]], metrics: dict[str, Any]) -> None:
        now = utc_now_iso()

        # Mark completion only when final outputs are successfully written.
        metrics_out = dict(metrics)
        metrics_out["finished"] = True
        metrics_out["completed_at"] = now

        job_out = dict(job_meta)
        job_out["finished"] = True
        job_out["completed_at"] = now

        write_json(self.paths.result_json, {"job": job_out, "segments": segments})
        write_json(self.paths.metrics_json, metrics_out)
