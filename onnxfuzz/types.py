"""Value types shared by the session, the engines and the generators."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from typing import Any, Optional, Union

import numpy as np

from .errors import UnsupportedInputKind, UnsupportedTypeError


class ElementType(enum.Enum):
    """ONNX tensor element types.

    Each member carries the ``onnx.TensorProto`` code, the name used in
    onnxruntime type strings (``tensor(<name>)``) and the numpy dtype.
    """

    FLOAT = (1, "float", np.float32)
    UINT8 = (2, "uint8", np.uint8)
    INT8 = (3, "int8", np.int8)
    UINT16 = (4, "uint16", np.uint16)
    INT16 = (5, "int16", np.int16)
    INT32 = (6, "int32", np.int32)
    INT64 = (7, "int64", np.int64)
    STRING = (8, "string", np.object_)
    BOOL = (9, "bool", np.bool_)
    FLOAT16 = (10, "float16", np.float16)
    DOUBLE = (11, "double", np.float64)
    UINT32 = (12, "uint32", np.uint32)
    UINT64 = (13, "uint64", np.uint64)

    def __init__(self, code: int, ort_name: str, dtype: Any) -> None:
        self.code = code
        self.ort_name = ort_name
        self.dtype = np.dtype(dtype)

    @property
    def type_string(self) -> str:
        return f"tensor({self.ort_name})"

    @classmethod
    def from_code(cls, code: int) -> "ElementType":
        for member in cls:
            if member.code == code:
                return member
        raise ValueError(f"Unknown ONNX element type code: {code}")

    @classmethod
    def from_ort_name(cls, name: str) -> "ElementType":
        for member in cls:
            if member.ort_name == name:
                return member
        raise ValueError(f"Unknown onnxruntime element type: {name!r}")

    @classmethod
    def from_dtype(cls, dtype: Any) -> "ElementType":
        dt = np.dtype(dtype)
        if dt.kind in ("U", "S", "O"):
            return cls.STRING
        for member in cls:
            if member.dtype == dt:
                return member
        raise ValueError(f"No ONNX element type for dtype {dt}")


class InputKind(str, enum.Enum):
    TENSOR = "tensor"
    SPARSE_TENSOR = "sparse_tensor"
    SEQUENCE = "sequence"
    MAP = "map"
    OPTIONAL = "optional"
    UNKNOWN = "unknown"


_KIND_PREFIXES = [
    ("sparse_tensor(", InputKind.SPARSE_TENSOR),
    ("tensor(", InputKind.TENSOR),
    ("seq(", InputKind.SEQUENCE),
    ("map(", InputKind.MAP),
    ("optional(", InputKind.OPTIONAL),
]


# Element type tag of a dense tensor: an ElementType, or the raw
# onnxruntime element name (``"bfloat16"``) when there is no member for it.
ElementTag = Union[ElementType, str]


def element_type_label(element_type: ElementTag) -> str:
    if isinstance(element_type, ElementType):
        return element_type.type_string
    return f"tensor({element_type})"


def require_element_type(element_type: ElementTag) -> ElementType:
    """Return ``element_type`` if it is a known member, else fail hard."""
    if not isinstance(element_type, ElementType):
        raise UnsupportedTypeError(
            f"no element type support for {element_type_label(element_type)}"
        )
    return element_type


def classify_type_string(type_string: str) -> tuple[InputKind, Optional[ElementTag]]:
    """Split an onnxruntime type string into kind and element type.

    ``tensor(float)`` -> (TENSOR, FLOAT); ``tensor(bfloat16)`` ->
    (TENSOR, "bfloat16"); ``seq(tensor(float))`` -> (SEQUENCE, None).
    """
    for prefix, kind in _KIND_PREFIXES:
        if type_string.startswith(prefix):
            if kind is not InputKind.TENSOR:
                return kind, None
            inner = type_string[len(prefix):-1]
            try:
                return kind, ElementType.from_ort_name(inner)
            except ValueError:
                return kind, inner
    return InputKind.UNKNOWN, None


Dim = Union[int, str, None]


def resolve_shape(shape: list[Dim], dynamic_dim: int = 1) -> tuple[int, ...]:
    """Replace symbolic or unknown dimensions with ``dynamic_dim``."""
    return tuple(
        d if isinstance(d, int) and d >= 0 else dynamic_dim for d in shape
    )


@dataclass
class InputTypeInfo:
    """Declared type of one model input."""

    name: str
    kind: InputKind
    type_string: str
    element_type: Optional[ElementTag] = None
    shape: list[Dim] = field(default_factory=list)
    resolved_shape: tuple[int, ...] = ()

    @property
    def is_tensor(self) -> bool:
        return self.kind is InputKind.TENSOR

    @property
    def element_count(self) -> int:
        return math.prod(self.resolved_shape)

    def require_tensor(self) -> "InputTypeInfo":
        if not self.is_tensor:
            raise UnsupportedInputKind(
                f"Input {self.name!r} has unsupported type {self.type_string}"
            )
        return self


@dataclass
class TensorBuffer:
    """Flat, type-tagged buffer of tensor elements."""

    element_type: ElementType
    data: np.ndarray

    def __post_init__(self) -> None:
        self.data = np.ascontiguousarray(self.data).reshape(-1)

    @property
    def count(self) -> int:
        return int(self.data.size)


# ---------------------------------------------------------------------------
# Model sources
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FilePath:
    path: str


@dataclass(frozen=True)
class InMemoryModel:
    """A parsed model description (``onnx.ModelProto`` or compatible)."""

    model: Any


@dataclass(frozen=True)
class RawBytes:
    data: bytes
    format_hint: str = "ORT"


ModelSource = Union[FilePath, InMemoryModel, RawBytes]
