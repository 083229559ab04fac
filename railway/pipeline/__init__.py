"""Pipeline execution engine for routing actions through a directed graph."""
from .action import (
    ABORT,
    ERROR,
    RESERVED_DIRECTIONS,
    SUCCESS,
    TERMINATE,
    Action,
    ActionPlan,
    ActionResult,
    FunctionAction,
    Terminate,
)
from .context import RunContext
from .loader import build_pipelines, load_pipelines, resolve_action
from .pipeline_engine import RUN_PATH_KEY, Pipeline
from .schema_validator import DefinitionValidator

__all__ = [
    'ABORT',
    'ERROR',
    'RESERVED_DIRECTIONS',
    'SUCCESS',
    'TERMINATE',
    'Action',
    'ActionPlan',
    'ActionResult',
    'FunctionAction',
    'Terminate',
    'RunContext',
    'RUN_PATH_KEY',
    'Pipeline',
    'DefinitionValidator',
    'build_pipelines',
    'load_pipelines',
    'resolve_action',
]
