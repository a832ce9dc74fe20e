import logging
from pathlib import Path
from typing import Dict, List, Optional, Any, Union, TextIO
from dataclasses import dataclass


@dataclass
class TraceRecord:

    x: int
    y: int
    plan_time: float
    eps: float

    def format(self) -> str:
        return f"{self.x:d} {self.y:d} {self.plan_time:.5f} {self.eps:.5f}"


class SolutionTraceWriter:
    """
    Writes the per-cycle solution trace: pre-move cell, planning time and
    solution eps, one whitespace-separated line per cycle.

    The cell is written before replanning so a failing cycle still leaves
    its position in the file.
    """

    def __init__(self, config: Dict[str, Any] = None):
        self.config = config or {}
        self.logger = logging.getLogger(__name__)

        self.output_path = Path(self.config.get("trace_path", "sol.txt"))
        self.write_summary = self.config.get("write_summary", True)

        self._file: Optional[TextIO] = None
        self._pending_cell: Optional[tuple] = None
        self.records: List[TraceRecord] = []

        self.logger.info(f"Solution trace: {self.output_path}")

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def open(self):
        if self._file is not None:
            self.logger.warning("Solution trace already open")
            return

        if self.output_path.parent and not self.output_path.parent.exists():
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.output_path, "w")
        self.records.clear()

    def record_position(self, x: int, y: int):
        """Write the cell part of a line; completed by record_plan()."""
        self._require_open()
        self._pending_cell = (x, y)
        self._file.write(f"{x:d} {y:d} ")

    def record_plan(self, plan_time: float, eps: float):
        self._require_open()
        if self._pending_cell is None:
            raise RuntimeError("record_position() must precede record_plan()")

        x, y = self._pending_cell
        self._pending_cell = None
        self._file.write(f"{plan_time:.5f} {eps:.5f}\n")
        self._file.flush()
        self.records.append(TraceRecord(x, y, plan_time, eps))

    def close(self, summary: Optional[str] = None):
        if self._file is None:
            return

        if self._pending_cell is not None:
            self._file.write("\n")
            self._pending_cell = None
        if summary and self.write_summary:
            self._file.write(summary + "\n")

        self._file.close()
        self._file = None
        self.logger.info(f"Solution trace closed: {len(self.records)} cycles written to {self.output_path}")

    def _require_open(self):
        if self._file is None:
            raise RuntimeError("solution trace is not open")

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def read_trace(path: Union[str, Path]) -> List[TraceRecord]:
    """Parse a solution trace file, skipping the summary line."""
    records = []
    with open(path, "r") as f:
        for line in f:
            fields = line.split()
            if len(fields) != 4 or line.startswith("stats:"):
                continue
            records.append(TraceRecord(int(fields[0]), int(fields[1]),
                                       float(fields[2]), float(fields[3])))
    return records
