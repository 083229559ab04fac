"""
Builds pipelines from declarative YAML definitions.

Definition format:

    actions:
      strip: "builtins:str.strip"
      title: "builtins:str.title"
      fetch: "myproject.steps:FetchAction"
    pipelines:
      - name: clean
        members: [strip, title]
      - name: main
        members: [fetch, clean]
        plans:
          fetch: {error: terminate}

Pipelines are built in order and each one joins the registry under its name,
so later pipelines can nest earlier ones. Topology is fixed once built.
"""
import importlib
import inspect
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from railway.pipeline.action import TERMINATE, Action, FunctionAction
from railway.pipeline.pipeline_engine import Pipeline
from railway.pipeline.schema_validator import TERMINATE_NAME, DefinitionValidator
from railway.utils.exceptions import DefinitionError
from railway.utils.structured_logger import RunTracer

logger = logging.getLogger(__name__)


def resolve_action(name: str, path: str) -> Action:
    """
    Import the object at `path` and turn it into an Action named `name`.

    Path format is "module:attr" where attr may be dotted ("builtins:str.strip").
    - Action instance -> used as is
    - Action subclass -> instantiated with `name`
    - any other callable -> wrapped in FunctionAction

    Raises:
        DefinitionError: path is malformed, can't be imported, isn't callable,
            or names an Action subclass that can't be built from a name alone
    """
    if ":" not in path:
        raise DefinitionError(f"Action '{name}': expected 'module:attr', got '{path}'")

    module_name, attr_path = path.split(":", 1)
    try:
        obj = importlib.import_module(module_name)
        for attr in attr_path.split("."):
            obj = getattr(obj, attr)
    except (ImportError, AttributeError) as e:
        raise DefinitionError(f"Action '{name}': cannot resolve '{path}': {e}") from e

    if isinstance(obj, Action):
        return obj
    if inspect.isclass(obj) and issubclass(obj, Action):
        try:
            return obj(name)
        except Exception as e:
            raise DefinitionError(f"Action '{name}': cannot instantiate '{path}': {e}") from e
    if callable(obj):
        return FunctionAction(name, obj)

    raise DefinitionError(f"Action '{name}': '{path}' is neither an Action nor callable")


def build_pipelines(
    definition: Dict[str, Any],
    registry: Optional[Dict[str, Action]] = None,
    tracer: Optional[RunTracer] = None,
) -> Dict[str, Pipeline]:
    """
    Build every pipeline a definition describes.

    Args:
        definition: Parsed definition document
        registry: Pre-built actions by name; they win over `actions:` entries
            with the same name
        tracer: Tracer attached to every built pipeline

    Returns:
        Dict of pipeline name -> Pipeline, in definition order

    Raises:
        DefinitionError: structural problems, unknown action names, or an
            action named "terminate"
        PipelineConfigError: wiring rejected by the pipeline itself
    """
    is_valid, errors = DefinitionValidator().validate(definition)
    if not is_valid:
        raise DefinitionError(f"Invalid pipeline definition ({len(errors)} error(s))", errors=errors)

    actions: Dict[str, Action] = dict(registry or {})
    if TERMINATE_NAME in actions:
        raise DefinitionError(f"Registry may not hold an action named '{TERMINATE_NAME}'; it is reserved for plan targets")
    for name, path in (definition.get("actions") or {}).items():
        if name in actions:
            logger.debug(f"Action '{name}' already registered, skipping '{path}'")
            continue
        actions[name] = resolve_action(name, path)

    pipelines: Dict[str, Pipeline] = {}
    for entry in definition["pipelines"]:
        pipeline_name = entry["name"]

        members = []
        for member_name in entry["members"]:
            if member_name not in actions:
                raise DefinitionError(f"Pipeline '{pipeline_name}': unknown action '{member_name}'")
            members.append(actions[member_name])

        pipeline = Pipeline(pipeline_name, *members, tracer=tracer)

        for action_name, plan in (entry.get("plans") or {}).items():
            resolved = {}
            for direction, target_name in (plan or {}).items():
                if target_name == TERMINATE_NAME:
                    resolved[direction] = TERMINATE
                elif target_name in actions:
                    resolved[direction] = actions[target_name]
                else:
                    raise DefinitionError(
                        f"Pipeline '{pipeline_name}': plan of '{action_name}' directs '{direction}' to unknown action '{target_name}'"
                    )
            pipeline.set_run_plan(actions[action_name], resolved)

        pipelines[pipeline_name] = pipeline
        actions[pipeline_name] = pipeline
        logger.info(f"Pipeline built: {pipeline_name} ({len(members)} members)")

    return pipelines


def load_pipelines(
    path: str,
    registry: Optional[Dict[str, Action]] = None,
    tracer: Optional[RunTracer] = None,
) -> Dict[str, Pipeline]:
    """
    Load a YAML definition file and build its pipelines.

    Raises:
        FileNotFoundError: no file at `path`
        DefinitionError: the file is not valid YAML or fails validation
    """
    definition_path = Path(path)
    if not definition_path.exists():
        raise FileNotFoundError(f"Pipeline definition not found: {path}")

    with open(definition_path, 'r') as f:
        try:
            definition = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise DefinitionError(f"Malformed YAML in {path}: {e}") from e

    logger.info(f"Pipeline definition loaded from {path}")
    return build_pipelines(definition, registry=registry, tracer=tracer)
