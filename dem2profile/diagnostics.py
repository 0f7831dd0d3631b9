import logging
import threading
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List


@dataclass
class RunDiagnostics:
    """Counts of the recoverable conditions met during one run."""
    n_segments: int = 0
    n_heads: int = 0
    n_requested: Any = None
    n_selected: int = 0
    n_ambiguous: int = 0
    n_cycles: int = 0
    n_missing_elevation: int = 0
    n_missing_accumulation: int = 0
    n_profiles: int = 0
    n_skipped: int = 0
    failed_heads: Dict[Any, str] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record_profile(self, river) -> None:
        with self._lock:
            self.n_profiles += 1
            self.n_missing_elevation += river.n_missing_elevation
            self.n_missing_accumulation += river.n_missing_accumulation

    def record_cycle(self, head_id, error: Exception) -> None:
        with self._lock:
            self.n_cycles += 1
            self.failed_heads[head_id] = str(error)

    def record_failure(self, head_id, error: Exception) -> None:
        with self._lock:
            self.failed_heads[head_id] = str(error)

    def record_skipped(self) -> None:
        with self._lock:
            self.n_skipped += 1

    @property
    def n_failed(self) -> int:
        return len(self.failed_heads)

    def as_dict(self) -> dict:
        stats = {f.name: getattr(self, f.name) for f in fields(self) if not f.name.startswith("_")}
        stats["failed_heads"] = dict(self.failed_heads)
        stats["n_failed"] = self.n_failed
        return stats

    def log_summary(self, logger: logging.Logger) -> None:
        logger.info("=== Run summary ===")
        logger.info(f"Segments: {self.n_segments}, heads: {self.n_heads}, "
                    f"requested: {self.n_requested if self.n_requested is not None else 'all'}, "
                    f"selected: {self.n_selected}")
        logger.info(f"Profiles built: {self.n_profiles}, failed: {self.n_failed}, skipped: {self.n_skipped}")
        logger.info(f"Ambiguous links: {self.n_ambiguous}, cycles: {self.n_cycles}")
        logger.info(f"Vertices missing elevation: {self.n_missing_elevation}, "
                    f"missing accumulation: {self.n_missing_accumulation}")
        for head_id, message in self.failed_heads.items():
            logger.warning(f"River {head_id!r} failed: {message}")

    def failed_head_ids(self) -> List[Any]:
        return list(self.failed_heads)
