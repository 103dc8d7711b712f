"""
LoadProgress value object - Progress of one batch run.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class LoadProgress:
    """
    Value object representing how far a batch run has advanced.

    Business rules:
    - loaded + failed never exceeds total
    - percentage counts both loaded and failed ids as resolved
    - Rebuilt from zero at the start of every run
    """

    total: int = 0
    loaded: int = 0
    failed: int = 0

    def __post_init__(self):
        """Validate counters on creation."""
        if self.total < 0 or self.loaded < 0 or self.failed < 0:
            raise ValueError("Progress counters cannot be negative")

        if self.loaded + self.failed > self.total:
            raise ValueError(
                f"Resolved ids ({self.loaded + self.failed}) exceed "
                f"total ({self.total})"
            )

    @classmethod
    def start(cls, total: int) -> "LoadProgress":
        """Create progress for a run over total ids."""
        return cls(total=total)

    @property
    def percentage(self) -> int:
        """Percentage of ids resolved (loaded or failed)."""
        if self.total == 0:
            return 0
        return round((self.loaded + self.failed) / self.total * 100)

    @property
    def resolved(self) -> int:
        """Number of ids resolved so far."""
        return self.loaded + self.failed

    @property
    def is_done(self) -> bool:
        """True once every id is resolved."""
        return self.resolved == self.total

    @property
    def is_partial(self) -> bool:
        """True when some ids loaded and some failed."""
        return self.loaded > 0 and self.failed > 0

    @property
    def summary(self) -> str:
        """Human-readable outcome, e.g. "Loaded 2/3 escrows (1 failed)"."""
        text = f"Loaded {self.loaded}/{self.total} escrows"
        if self.failed:
            text += f" ({self.failed} failed)"
        return text

    def record_loaded(self) -> "LoadProgress":
        """Return progress with one more loaded id."""
        return LoadProgress(self.total, self.loaded + 1, self.failed)

    def record_failed(self) -> "LoadProgress":
        """Return progress with one more failed id."""
        return LoadProgress(self.total, self.loaded, self.failed + 1)

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "total": self.total,
            "loaded": self.loaded,
            "failed": self.failed,
            "percentage": self.percentage,
        }
