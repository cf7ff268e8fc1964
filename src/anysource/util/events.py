from __future__ import annotations

"""Dispatch event logging.

CONTRACT
- Inputs: Event name plus arbitrary kwargs
- Outputs:
  - Appends JSON line to configured log path
- Invariants:
  - Adds `ts_ms` timestamp automatically
  - Adds `dispatch_id` when bound and not given explicitly
- Failure:
  - Raises OSError if log path is not writable
"""

import json
import time
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any


@dataclass
class EventLog:
    path: Path
    dispatch_id: str | None = None

    def bind(self, dispatch_id: str) -> EventLog:
        return replace(self, dispatch_id=dispatch_id)

    def emit(self, event: str, **fields: Any) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        record: dict[str, Any] = {"event": event, **fields}
        record.setdefault("ts_ms", int(time.time() * 1000))
        if self.dispatch_id and "dispatch_id" not in record:
            record["dispatch_id"] = self.dispatch_id
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")

    def read(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        lines = self.path.read_text(encoding="utf-8").splitlines()
        return [json.loads(line) for line in lines if line.strip()]
