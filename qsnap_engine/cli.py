from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, TextIO

from .config import load_config
from .events import ERROR, encode_sse
from .job import create_job_dirs, init_job_outputs, new_job_id, record_error
from .ocr import LabelDetector, OCRNotReady, build_engine
from .page_provider import PageProvider
from .pipeline import QuestionPipeline, RunStats
from .session import Session
from .types import Zone
from .utils import load_json, utc_now_iso
from .writer import JobWriter

logger = logging.getLogger(__name__)


def _parse_log_level(value: str) -> int:
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    level = getattr(logging, str(value).upper(), None)
    if not isinstance(level, int):
        raise argparse.ArgumentTypeError(f"Unknown log level: {value}")
    return level


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="qsnap_engine")
    p.add_argument("--log-level", type=_parse_log_level, default=logging.INFO, help="DEBUG, INFO, WARNING, ...")
    sub = p.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Split scanned pages into per-question crops")
    run.add_argument("--input", required=True, help="Input path (pdf file or images folder)")
    run.add_argument("--type", required=True, choices=["pdf", "images"], help="Input type")
    run.add_argument("--x1", required=True, type=float, help="Label zone left edge (page px)")
    run.add_argument("--x2", required=True, type=float, help="Label zone right edge (page px, exclusive)")
    run.add_argument(
        "--style",
        action="append",
        required=True,
        help='Question number style, e.g. "Q.1" or "1)". Repeatable.',
    )
    run.add_argument("--ban", action="append", default=[], help="Token to never treat as a label. Repeatable.")
    run.add_argument("--engine", default=None, choices=["tesseract", "easyocr"], help="OCR engine (overrides config)")
    run.add_argument("--lang", default=None, help="OCR language (tesseract: eng, easyocr: en)")
    run.add_argument("--dpi", type=int, default=200, help="DPI for PDF rendering (pdf only)")
    run.add_argument("--workspace", default="./workspace", help="Workspace root")
    run.add_argument("--config", default=None, help="Config path (e.g. config/default.json)")
    run.add_argument("--format", default="files", choices=["files", "sse"], help="Write a job dir, or SSE to stdout")

    validate = sub.add_parser("validate", help="Validate job outputs + referenced segment images")
    validate.add_argument("--job-dir", required=True, help="Job directory (workspace/jobs/<job_id>)")

    return p


def _load_session(args: argparse.Namespace, session_id: str) -> Session:
    session = Session(session_id=session_id)
    provider = PageProvider(input_path=args.input, input_type=args.type, dpi=args.dpi)
    for source_ref, data in provider.iter_pages():
        session.add_page(data, source_ref=source_ref)
    session.configure(Zone(x1=args.x1, x2=args.x2), args.style, args.ban or [])
    return session


def _build_pipeline(args: argparse.Namespace) -> QuestionPipeline:
    cfg = load_config(args.config).with_ocr(engine=args.engine, lang=args.lang)
    engine = build_engine(
        str(cfg.ocr.get("engine", "tesseract")),
        lang=cfg.ocr.get("lang"),
        tesseract_config=str(cfg.ocr.get("tesseract_config", "")),
    )
    detector = LabelDetector(engine=engine, preprocess_cfg=cfg.preprocess, timeout_s=cfg.ocr_timeout)
    detector.start()
    return QuestionPipeline(detector, cfg)


def cmd_run(args: argparse.Namespace, out: TextIO | None = None) -> int:
    out = out or sys.stdout
    try:
        pipeline = _build_pipeline(args)
    except (OCRNotReady, ValueError) as e:
        print(f"run_failed: {e}", file=out)
        return 1

    if args.format == "sse":
        try:
            session = _load_session(args, session_id="cli")
        except (OSError, ValueError, RuntimeError) as e:
            print(f"run_failed: {e}", file=out)
            return 1
        for ev in pipeline.stream(session):
            out.write(encode_sse(ev))
            out.flush()
        return 0

    job_id = new_job_id()
    try:
        session = _load_session(args, session_id=job_id)
    except (OSError, ValueError, RuntimeError) as e:
        # nothing on disk yet
        print(f"run_failed: {e}", file=out)
        return 1

    paths = create_job_dirs(args.workspace, job_id)
    init_job_outputs(paths)
    writer = JobWriter(paths=paths)

    stats = RunStats()
    segments: list[dict[str, Any]] = []
    job_meta = {
        "job_id": job_id,
        "input": {"type": args.type, "path": args.input},
        "zone": {"x1": args.x1, "x2": args.x2},
        "styles": list(args.style),
        "banned": list(args.ban or []),
        "pages": session.page_count,
        "created_at": utc_now_iso(),
    }

    failed = False
    for ev in pipeline.stream(session, stats):
        if ev.kind == ERROR:
            record_error(paths, page_index=None, stage="config", message=ev.data)
            failed = True
        elif ev.segment is not None:
            segments.append(writer.write_segment(ev.segment))

    for err in stats.page_errors:
        record_error(paths, page_index=err.get("page_index"), stage="page", message=str(err.get("message")))

    writer.write_final(job_meta=job_meta, segments=segments, metrics=stats.to_dict())
    print(str(paths.job_dir), file=out)
    return 1 if failed else 0


def _validate_segments(job_dir: Path, obj: Any, errors: list[str]) -> tuple[int, int]:
    missing = 0
    invalid = 0
    items = (obj or {}).get("segments", []) if isinstance(obj, dict) else []
    for idx, s in enumerate(items):
        if not isinstance(s, dict):
            errors.append(f"invalid segment[{idx}]: not an object")
            invalid += 1
            continue

        absent = [k for k in ("page_index", "ques_number", "top", "bottom", "image_path") if k not in s]
        if absent:
            errors.append(f"invalid segment[{idx}]: missing fields {absent}")
            invalid += 1
            continue

        if not (isinstance(s["top"], int) and isinstance(s["bottom"], int) and s["bottom"] > s["top"]):
            errors.append(f"invalid segment[{idx}]: empty or malformed span")
            invalid += 1

        if not (job_dir / str(s["image_path"])).exists():
            errors.append(f"missing segment image: {s['image_path']}")
            missing += 1
    return missing, invalid


def cmd_validate(args: argparse.Namespace, out: TextIO | None = None) -> int:
    out = out or sys.stdout
    job_dir = Path(args.job_dir)
    errors: list[str] = []

    missing_contract_files = 0
    missing_images = 0
    invalid_segments = 0

    for f in ("result.json", "metrics.json", "errors.jsonl"):
        p = job_dir / f
        if not p.exists():
            missing_contract_files += 1
            errors.append(f"missing: {p}")

    try:
        result = load_json(job_dir / "result.json")
        missing_images, invalid_segments = _validate_segments(job_dir, result, errors)
    except Exception as e:
        errors.append(f"failed to read result.json: {e}")
        invalid_segments += 1

    print(f"missing_contract_files={missing_contract_files}", file=out)
    print(f"missing_images={missing_images}", file=out)
    print(f"invalid_segments={invalid_segments}", file=out)

    if errors:
        for m in errors:
            print(m, file=out)
        return 1

    print("OK", file=out)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if args.command == "run":
        return cmd_run(args)

    if args.command == "validate":
        return cmd_validate(args)

    raise SystemExit(2)


if __name__ == "__main__":
    raise SystemExit(main())
