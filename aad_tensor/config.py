# config.py
"""
Explicit configuration values for parameterised primitives.

Every recognised option is listed here with its default, instead of being
scattered across optional keyword arguments.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .errors import InvalidParameterError

DEFAULT_DTYPE = "float64"
DEFAULT_BACKEND = "cpu"


def _resolve_pair(name: str, n: int, scalar: Optional[int], seq: Optional[Sequence[int]],
                  default: Optional[Tuple[int, ...]]) -> Tuple[int, ...]:
    if scalar is not None and seq is not None:
        raise InvalidParameterError(f"Expecting only one of {name} and {name}s, received both")
    if scalar is not None:
        return (int(scalar),) * n
    if seq is not None:
        seq = tuple(int(v) for v in seq)
        if len(seq) != n:
            raise InvalidParameterError(f"Expecting {name}s to be a length-{n} sequence, received {seq}")
        return seq
    if default is None:
        raise InvalidParameterError(f"Expecting either {name} or {name}s")
    return default


@dataclass(frozen=True)
class PoolConfig:
    """Configuration for average pooling (and its reverse)."""
    kernel_sizes: Tuple[int, ...]
    strides: Tuple[int, ...]
    paddings: Tuple[int, ...]
    ceil_mode: bool = False          # output length rounding: floor (False) or ceil (True)
    count_include_pad: bool = True   # padded positions count towards the window average

    @property
    def n_spatial(self) -> int:
        return len(self.kernel_sizes)

    @classmethod
    def resolve(cls, n_spatial: int, kernel_size: Optional[int] = None, stride: Optional[int] = None,
                padding: Optional[int] = None, kernel_sizes: Optional[Sequence[int]] = None,
                strides: Optional[Sequence[int]] = None, paddings: Optional[Sequence[int]] = None,
                ceil_mode: bool = False, count_include_pad: bool = True) -> "PoolConfig":
        """
        Normalise scalar-or-sequence pooling arguments.

        stride defaults to the kernel size, padding defaults to 0.
        """
        ks = _resolve_pair("kernel_size", n_spatial, kernel_size, kernel_sizes, None)
        ss = _resolve_pair("stride", n_spatial, stride, strides, ks)
        ps = _resolve_pair("padding", n_spatial, padding, paddings, (0,) * n_spatial)
        config = cls(ks, ss, ps, bool(ceil_mode), bool(count_include_pad))
        config.validate()
        return config

    def validate(self):
        if any(k < 1 for k in self.kernel_sizes):
            raise InvalidParameterError(f"Expecting all kernel sizes >= 1, received {self.kernel_sizes}")
        if any(s < 1 for s in self.strides):
            raise InvalidParameterError(f"Expecting all strides >= 1, received {self.strides}")
        if any(p < 0 for p in self.paddings):
            raise InvalidParameterError(f"Expecting all paddings >= 0, received {self.paddings}")
        if any(2 * p > k for p, k in zip(self.paddings, self.kernel_sizes)):
            raise InvalidParameterError(
                f"Expecting paddings to be at most half the kernel sizes, received paddings {self.paddings}, "
                f"kernel sizes {self.kernel_sizes}"
            )


@dataclass(frozen=True)
class ConvConfig:
    """Configuration for convolution: stride defaults to 1, padding to 0."""
    strides: Tuple[int, ...]
    paddings: Tuple[int, ...]

    @property
    def n_spatial(self) -> int:
        return len(self.strides)

    @classmethod
    def resolve(cls, n_spatial: int, stride: Optional[int] = None, padding: Optional[int] = None,
                strides: Optional[Sequence[int]] = None, paddings: Optional[Sequence[int]] = None) -> "ConvConfig":
        ss = _resolve_pair("stride", n_spatial, stride, strides, (1,) * n_spatial)
        ps = _resolve_pair("padding", n_spatial, padding, paddings, (0,) * n_spatial)
        config = cls(ss, ps)
        config.validate()
        return config

    def validate(self):
        if any(s < 1 for s in self.strides):
            raise InvalidParameterError(f"Expecting all strides >= 1, received {self.strides}")
        if any(p < 0 for p in self.paddings):
            raise InvalidParameterError(f"Expecting all paddings >= 0, received {self.paddings}")
