"""
modelcall: one execution pipeline for calling generative-model backends.
"""

from .execution import *  # noqa: F401,F403
from .execution import __all__ as _execution_all
from .functions import *  # noqa: F401,F403
from .functions import __all__ as _functions_all
from .logging import enable_debug, logger

__all__ = [*_execution_all, *_functions_all, "enable_debug", "logger"]
