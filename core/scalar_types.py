"""
Numeric kinds and the scalar-type dispatcher.

The host tags every volume with one of ten scalar kinds. Dispatch is a finite
table lookup that binds exactly one concrete numpy scalar type to a typed
execution path; there is no registry that can grow at runtime.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Dict, TypeVar

import numpy as np

from core.errors import PreconditionError


T = TypeVar("T")


class NumericKind(str, Enum):
    """Closed set of voxel scalar types a host buffer may carry."""

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

    @property
    def scalar_type(self) -> type:
        return _SCALAR_TYPES[self]

    @property
    def itemsize(self) -> int:
        return self.dtype.itemsize

    @property
    def is_integer(self) -> bool:
        return np.issubdtype(self.dtype, np.integer)

    @property
    def type_min(self) -> float:
        """Lowest representable value (most negative finite value for floats)."""
        if self.is_integer:
            return int(np.iinfo(self.dtype).min)
        return float(np.finfo(self.dtype).min)

    @property
    def type_max(self) -> float:
        if self.is_integer:
            return int(np.iinfo(self.dtype).max)
        return float(np.finfo(self.dtype).max)

    @staticmethod
    def from_tag(tag: Any) -> "NumericKind":
        """
        Resolve a host scalar tag into a NumericKind.

        Accepts a NumericKind, its name ("uint8"), a numpy dtype / scalar type,
        or a VTK scalar type code. Anything else is a precondition error.
        """
        if isinstance(tag, NumericKind):
            return tag
        if tag is None or isinstance(tag, bool):
            raise PreconditionError(f"Pixel type unknown: {tag!r}.")
        if isinstance(tag, (int, np.integer)):
            kind = VTK_SCALAR_CODES.get(int(tag))
            if kind is None:
                raise PreconditionError(f"Pixel type unknown: VTK scalar code {int(tag)} is not supported.")
            return kind
        if isinstance(tag, str):
            try:
                return NumericKind(tag.strip().lower())
            except ValueError:
                raise PreconditionError(f"Pixel type unknown: {tag!r}.") from None
        try:
            dtype = np.dtype(tag)
        except TypeError:
            raise PreconditionError(f"Pixel type unknown: {tag!r}.") from None
        try:
            return NumericKind(dtype.name)
        except ValueError:
            raise PreconditionError(f"Pixel type unknown: {dtype.name}.") from None


_SCALAR_TYPES: Dict[NumericKind, type] = {
    NumericKind.INT8: np.int8,
    NumericKind.UINT8: np.uint8,
    NumericKind.INT16: np.int16,
    NumericKind.UINT16: np.uint16,
    NumericKind.INT32: np.int32,
    NumericKind.UINT32: np.uint32,
    NumericKind.INT64: np.int64,
    NumericKind.UINT64: np.uint64,
    NumericKind.FLOAT32: np.float32,
    NumericKind.FLOAT64: np.float64,
}

# VTK scalar type codes as used by volume-visualization hosts.
VTK_SCALAR_CODES: Dict[int, NumericKind] = {
    2: NumericKind.INT8,      # VTK_CHAR
    15: NumericKind.INT8,     # VTK_SIGNED_CHAR
    3: NumericKind.UINT8,     # VTK_UNSIGNED_CHAR
    4: NumericKind.INT16,     # VTK_SHORT
    5: NumericKind.UINT16,    # VTK_UNSIGNED_SHORT
    6: NumericKind.INT32,     # VTK_INT
    7: NumericKind.UINT32,    # VTK_UNSIGNED_INT
    8: NumericKind.INT64,     # VTK_LONG (LP64)
    9: NumericKind.UINT64,    # VTK_UNSIGNED_LONG
    16: NumericKind.INT64,    # VTK_LONG_LONG
    17: NumericKind.UINT64,   # VTK_UNSIGNED_LONG_LONG
    10: NumericKind.FLOAT32,  # VTK_FLOAT
    11: NumericKind.FLOAT64,  # VTK_DOUBLE
}


def check_component_count(components: int, single_component_only: bool, filter_name: str = "This filter") -> None:
    """Reject inputs whose component count the pipeline cannot consume."""
    if components < 1:
        raise PreconditionError(f"{filter_name} received a volume with {components} components.")
    if single_component_only and components != 1:
        raise PreconditionError(f"{filter_name} requires a single-component data set as input.")


def dispatch_scalar_type(
    tag: Any,
    typed_path: Callable[[type], Callable[..., T]],
    *args: Any,
    **kwargs: Any,
) -> T:
    """
    Bind the scalar kind to its concrete numpy type and run one typed path.

    ``typed_path`` is a factory taking the numpy scalar type (np.uint8, ...)
    and returning the callable to execute; it is invoked exactly once, for
    exactly one type.
    """
    kind = NumericKind.from_tag(tag)
    scalar_type = _SCALAR_TYPES[kind]
    return typed_path(scalar_type)(*args, **kwargs)


__all__ = [
    "NumericKind",
    "VTK_SCALAR_CODES",
    "check_component_count",
    "dispatch_scalar_type",
]
