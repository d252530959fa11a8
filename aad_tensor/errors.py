# errors.py
"""
Exception types raised by the tensor engine.

Every failure is synchronous and fatal to the call that triggered it. Each
class also derives from the builtin exception that callers would naturally
catch for that situation (ValueError / TypeError).
"""


class TensorError(Exception):
    """Base class for all engine errors."""


class ShapeMismatchError(TensorError, ValueError):
    """Incompatible ranks or dimensions between operands."""


class InvalidParameterError(TensorError, ValueError):
    """Bad stride, padding, dilation, axis index, slice bound or option."""


class UnsupportedConversionError(TensorError, TypeError):
    """A tensor cannot be converted to the requested plain value."""


class BackendMismatchError(TensorError, TypeError):
    """Two raw tensors from incompatible backends (or dtypes) met in one kernel."""


class UnresolvedDimensionError(TensorError, ValueError):
    """A concrete value was requested from an unresolved symbolic dimension."""


class DifferentiationError(TensorError, ValueError):
    """Inconsistent use of forward / reverse differentiation roles."""
