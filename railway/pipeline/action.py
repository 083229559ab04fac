"""
Action primitives: the unit of work a pipeline routes between.

- Directions: SUCCESS / ERROR / ABORT are reserved, any other string is a
  custom branch label (e.g. "retry", "skip")
- TERMINATE: sentinel routing target meaning "stop here"; never executed
- Action: abstract base every step (and every Pipeline) satisfies
- FunctionAction: leaf action wrapping a plain callable
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Optional, Union

from railway.pipeline.context import RunContext
from railway.utils.exceptions import ActionExecutionError

logger = logging.getLogger(__name__)

SUCCESS = "success"
ERROR = "error"
ABORT = "abort"

RESERVED_DIRECTIONS = (SUCCESS, ERROR, ABORT)


class Terminate:
    """Sink of every pipeline graph. Only one instance ever exists."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "TERMINATE"

    def __bool__(self) -> bool:
        return False

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __reduce__(self):
        return (Terminate, ())


TERMINATE = Terminate()


def is_terminate(target: Any) -> bool:
    """True for the TERMINATE sentinel and for None, its accepted alias."""
    return target is None or target is TERMINATE


class ActionResult(NamedTuple):
    """What an action hands back: the next value, the outcome label, and a failure if any."""

    output: Any
    direction: str
    failure: Optional[Exception] = None


class Action(ABC):
    """
    Pluggable unit of work.

    Identity is the object itself: two actions sharing a name are still
    distinct routing targets.

    Subclasses implement `execute()` and, when they branch, extend
    `directions()` with their custom labels.
    """

    name: str = ""

    def __init__(self, name: str = None):
        if name is not None:
            self.name = name
        elif not self.name:
            self.name = type(self).__name__

    def directions(self) -> List[str]:
        """Every direction this action may signal when executed."""
        return list(RESERVED_DIRECTIONS)

    @abstractmethod
    def execute(self, ctx: RunContext, value: Any) -> ActionResult:
        """
        Run the action.

        Args:
            ctx: Run context; long-running actions should honor `ctx.cancelled()`
            value: Output of the previous action (or the run input)

        Returns:
            ActionResult(output, direction, failure); `direction` must be one of
            `directions()` and `failure` is set only when the action could not
            complete normally
        """

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"


ActionPlan = Dict[str, Union[Action, Terminate]]


def declared_directions(action: Action) -> List[str]:
    """Directions of `action` plus the reserved ones, without duplicates, in order."""
    return unique_directions(list(action.directions()) + list(RESERVED_DIRECTIONS))


def unique_directions(directions: Iterable[str]) -> List[str]:
    seen = []
    for direction in directions:
        if direction not in seen:
            seen.append(direction)
    return seen


class FunctionAction(Action):
    """
    Leaf action around a plain callable.

    The callable receives the current value (and the context first when
    `pass_context=True`) and returns the next value, or a whole ActionResult
    when it needs to signal one of its own `directions`. Raising turns into an
    ERROR outcome carrying an ActionExecutionError; a context that is already
    done yields ABORT without calling the function.

    Example:
        strip = FunctionAction("strip", str.strip)
        gate = FunctionAction(
            "gate", lambda v: ActionResult(v, "skip") if not v else v, directions=["skip"]
        )
    """

    def __init__(
        self,
        name: str,
        func: Callable[..., Any],
        directions: Optional[List[str]] = None,
        pass_context: bool = False,
    ):
        super().__init__(name)
        self.func = func
        self.pass_context = pass_context
        self._directions = unique_directions(list(directions or []) + list(RESERVED_DIRECTIONS))

    def directions(self) -> List[str]:
        return list(self._directions)

    def execute(self, ctx: RunContext, value: Any) -> ActionResult:
        err = ctx.error() if ctx is not None else None
        if err is not None:
            logger.debug(f"{self.name}: context already done, skipping ({err})")
            return ActionResult(value, ABORT, err)

        try:
            if self.pass_context:
                output = self.func(ctx, value)
            else:
                output = self.func(value)
        except Exception as e:
            logger.warning(f"{self.name} failed: {e}")
            return ActionResult(
                value,
                ERROR,
                ActionExecutionError(f"`{self.name}` raised {type(e).__name__}: {e}", action_name=self.name, cause=e),
            )

        if isinstance(output, ActionResult):
            return output
        return ActionResult(output, SUCCESS, None)
