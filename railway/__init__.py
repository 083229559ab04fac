"""
Railway - sequential workflow engine.

Actions signal a direction after each run; a Pipeline routes on that
direction to the next member until it reaches TERMINATE.
"""
from railway.pipeline import (
    ABORT,
    ERROR,
    SUCCESS,
    TERMINATE,
    Action,
    ActionResult,
    FunctionAction,
    Pipeline,
    RunContext,
    load_pipelines,
)

__version__ = "0.1.0"

__all__ = [
    'ABORT',
    'ERROR',
    'SUCCESS',
    'TERMINATE',
    'Action',
    'ActionResult',
    'FunctionAction',
    'Pipeline',
    'RunContext',
    'load_pipelines',
]
