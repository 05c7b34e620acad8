"""
litelib - Lightweight attribute-driven SQLite mapping.

Declare record types with annotations, declare a context with
``EntitySet[T]`` attributes, and litelib creates the tables and runs
CRUD commands against one SQLite file.
"""

__version__ = "0.1.0"

from litelib.core import *  # noqa: F401,F403
from litelib.core import __all__ as _core_all

__all__ = ["__version__", *_core_all]
