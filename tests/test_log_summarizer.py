from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path


def test_log_summarizer_json_output(tmp_path: Path) -> None:
    log_path = tmp_path / "app.log"
    log_path.write_text(
        "\n".join(
            [
                json.dumps({"event": "start", "request_id": "r1", "endpoint": "parse"}),
                json.dumps(
                    {
                        "event": "done",
                        "request_id": "r1",
                        "endpoint": "parse",
                        "status_code": 200,
                        "duration_ms": 12,
                    }
                ),
                "INFO:ftlmap.api:"
                + json.dumps(
                    {
                        "event": "error",
                        "request_id": "r2",
                        "endpoint": "generate",
                        "error_code": "INVALID_JSON",
                        "status_code": 400,
                        "duration_ms": 40,
                    }
                ),
                "not-json-line",
                "",
            ]
        ),
        encoding="utf-8",
    )

    result = subprocess.run(
        [sys.executable, "scripts/summarize_logs.py", "--json", str(log_path)],
        cwd=Path(__file__).resolve().parents[1],
        check=False,
        capture_output=True,
        text=True,
    )
    assert result.returncode == 0

    payload = json.loads(result.stdout)
    assert payload["parse_errors"] == 1
    assert payload["event_counts"] == {"done": 1, "error": 1, "start": 1}
    assert payload["endpoint_counts"] == {"generate": 1, "parse": 1}
    assert payload["http_status_counts"] == {"200": 1, "400": 1}
    assert payload["error_code_counts"] == {"INVALID_JSON": 1}
    assert payload["duration_ms_p50"] == 12
    assert payload["duration_ms_p95"] == 40
