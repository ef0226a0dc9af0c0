# sitesnap/logger.py
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union


def now_iso():
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class JobLogger:
    """Appends one JSON object per step to <logs_dir>/<job_id>.log.jsonl."""

    def __init__(self, job_id: str, logs_dir: Union[str, Path] = "logs"):
        self.job_id = job_id
        logs_dir = Path(logs_dir)
        logs_dir.mkdir(parents=True, exist_ok=True)
        self.path = logs_dir / f"{job_id}.log.jsonl"
        self.entries = []

    def log(self, step: str, success: bool, message: str, extra: Optional[dict] = None):
        entry = {
            "timestamp": now_iso(),
            "step": step,
            "success": success,
            "message": message,
            "extra": extra or {}
        }
        self.entries.append(entry)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        return entry

    def steps(self):
        return [e["step"] for e in self.entries]
