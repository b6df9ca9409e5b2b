from enum import Enum
from typing import Any, Type

import numpy as np

from regmetrics.errors import RegMetricsError, UnsupportedOutputTypeError, UnsupportedScalarTypeError


class ScalarKind(Enum):
    """Closed set of pixel representations the histogram engine handles."""

    INT8 = "int8"
    UINT8 = "uint8"
    INT16 = "int16"
    UINT16 = "uint16"
    INT32 = "int32"
    UINT32 = "uint32"
    INT64 = "int64"
    UINT64 = "uint64"
    FLOAT32 = "float32"
    FLOAT64 = "float64"

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(self.value)

    @classmethod
    def from_dtype(cls, dtype: Any, error: Type[RegMetricsError] = UnsupportedScalarTypeError) -> "ScalarKind":
        """Resolve a numpy dtype (or anything np.dtype accepts) to a scalar kind.

        Raises `error` for booleans, float16, complex, strings, objects and
        anything else outside the closed set.
        """
        try:
            name = np.dtype(dtype).name
        except TypeError:
            raise error(f"Unknown scalar type {dtype!r}") from None
        try:
            return cls(name)
        except ValueError:
            raise error(f"Unsupported scalar type {name!r}") from None


def input_kind(array: np.ndarray) -> ScalarKind:
    return ScalarKind.from_dtype(array.dtype, UnsupportedScalarTypeError)


def output_kind(dtype: Any) -> ScalarKind:
    return ScalarKind.from_dtype(dtype, UnsupportedOutputTypeError)
