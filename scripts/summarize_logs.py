#!/usr/bin/env python3
"""Summarize ftl-mapper API JSON line logs for ops/CI usage."""

from __future__ import annotations

import argparse
import json
import math
from collections import Counter
from pathlib import Path
from typing import Any


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Summarize ftl-mapper structured logs.")
    parser.add_argument("files", nargs="+", help="One or more JSONL log files.")
    parser.add_argument("--json", action="store_true", help="Output JSON.")
    return parser.parse_args()


def _percentile(values: list[int], p: float) -> int | None:
    if not values:
        return None
    ordered = sorted(values)
    index = min(len(ordered) - 1, max(0, math.ceil((p / 100) * len(ordered)) - 1))
    return ordered[index]


def _extract_payload(line: str) -> Any:
    # Tolerate a logging prefix such as "INFO:ftlmap.api:{...}".
    start = line.find("{")
    if start < 0:
        raise ValueError("no JSON object in line")
    return json.loads(line[start:])


def summarize_log_files(paths: list[Path]) -> dict[str, Any]:
    event_counts: Counter[str] = Counter()
    status_counts: Counter[str] = Counter()
    endpoint_counts: Counter[str] = Counter()
    error_code_counts: Counter[str] = Counter()
    duration_values: list[int] = []
    parse_errors = 0
    lines_total = 0

    for path in paths:
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except Exception:  # noqa: BLE001
            parse_errors += 1
            continue

        for line in lines:
            lines_total += 1
            raw = line.strip()
            if not raw:
                continue

            try:
                payload = _extract_payload(raw)
            except Exception:  # noqa: BLE001
                parse_errors += 1
                continue

            if not isinstance(payload, dict):
                parse_errors += 1
                continue

            event = payload.get("event")
            if isinstance(event, str):
                event_counts[event] += 1

            if event in {"done", "error"}:
                endpoint = payload.get("endpoint")
                if isinstance(endpoint, str):
                    endpoint_counts[endpoint] += 1
                if "status_code" in payload:
                    status_counts[str(payload["status_code"])] += 1

            error_code = payload.get("error_code")
            if isinstance(error_code, str):
                error_code_counts[error_code] += 1

            duration_ms = payload.get("duration_ms")
            if isinstance(duration_ms, int | float):
                duration_values.append(int(duration_ms))

    return {
        "files": [str(path) for path in paths],
        "lines_total": lines_total,
        "parse_errors": parse_errors,
        "event_counts": dict(sorted(event_counts.items())),
        "endpoint_counts": dict(sorted(endpoint_counts.items())),
        "http_status_counts": dict(sorted(status_counts.items())),
        "error_code_counts": dict(sorted(error_code_counts.items())),
        "duration_ms_p50": _percentile(duration_values, 50),
        "duration_ms_p95": _percentile(duration_values, 95),
    }


def main() -> None:
    args = _parse_args()
    paths = [Path(item).expanduser() for item in args.files]
    summary = summarize_log_files(paths)

    if args.json:
        print(json.dumps(summary, ensure_ascii=False, indent=2, sort_keys=True))
        return

    print("ftl-mapper Log Summary")
    for key in (
        "lines_total",
        "parse_errors",
        "event_counts",
        "endpoint_counts",
        "http_status_counts",
        "error_code_counts",
        "duration_ms_p50",
        "duration_ms_p95",
    ):
        print(f"{key}={summary[key]}")


if __name__ == "__main__":
    main()
