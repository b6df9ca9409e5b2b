import os
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ExecutionMode(str, Enum):
    THREADS = "threads"
    TASKS = "tasks"


def default_number_of_workers() -> int:
    return os.cpu_count() or 1


class HistogramConfig(BaseModel):
    """Settings of a joint-histogram run, fixed before the run starts.

    Parameters:
    -----------
    number_of_bins:
        bins along the image A (x) and image B (y) axes
    bin_origin:
        intensity that maps onto the center of bin 0, per axis
    bin_spacing:
        intensity width of one bin, per axis
    output_scalar_type:
        numpy type name of the emitted joint-histogram image. Checked when the
        histogram is written, not here
    number_of_workers:
        threads used by either execution strategy
    number_of_pieces:
        pieces the extent is cut into for the "tasks" strategy,
        defaults to number_of_workers
    execution_strategy:
        "threads" for a fixed worker pool, "tasks" for the dask scheduler
    """

    model_config = ConfigDict(frozen=True)

    number_of_bins: Tuple[int, int] = (64, 64)
    bin_origin: Tuple[float, float] = (0.0, 0.0)
    bin_spacing: Tuple[float, float] = (1.0, 1.0)
    output_scalar_type: str = "float32"
    number_of_workers: int = Field(default_factory=default_number_of_workers, ge=1)
    number_of_pieces: Optional[int] = Field(default=None, ge=1)
    execution_strategy: ExecutionMode = ExecutionMode.THREADS

    @field_validator("number_of_bins")
    @classmethod
    def _check_bins(cls, value: Tuple[int, int]) -> Tuple[int, int]:
        if min(value) < 1:
            raise ValueError(f"number_of_bins must be >= 1 on both axes, got {value}")
        return value

    @field_validator("bin_spacing")
    @classmethod
    def _check_spacing(cls, value: Tuple[float, float]) -> Tuple[float, float]:
        if min(value) <= 0:
            raise ValueError(f"bin_spacing must be > 0 on both axes, got {value}")
        return value

    @property
    def pieces(self) -> int:
        return self.number_of_pieces or self.number_of_workers
