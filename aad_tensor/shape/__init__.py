# shape/__init__.py
"""
Shape model: dimension values (concrete or symbolic), shapes, the integer
index helpers and the `check_can_*` preconditions shared by all backends.
"""

from .symbolic import SymbolScope, Symbol
from .dim import Dim
from .shape import Shape, as_shape
from . import util
from . import checks

__all__ = ["SymbolScope", "Symbol", "Dim", "Shape", "as_shape", "util", "checks"]
