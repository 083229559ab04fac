"""
Pipeline - Routed execution graph over a fixed set of actions.

Construction wires a straight line: each member's SUCCESS goes to the next
member, every other direction terminates. `set_run_plan()` rewires single
members to introduce branches and loops back to earlier members. `run()` /
`run_at()` walk the graph, threading each action's output into the next,
until a route selects TERMINATE or a direction has no route.

A Pipeline is an Action itself, so it can be a member of another pipeline.
"""

import logging
import time
from typing import Any, Dict, List, Optional, Tuple, Union

from railway.pipeline.action import (
    ABORT,
    ERROR,
    RESERVED_DIRECTIONS,
    SUCCESS,
    TERMINATE,
    Action,
    ActionPlan,
    ActionResult,
    Terminate,
    declared_directions,
    is_terminate,
    unique_directions,
)
from railway.pipeline.context import RunContext
from railway.utils.exceptions import (
    InvalidRunPlanError,
    NotAMemberError,
    PipelineConfigError,
    RoutingError,
)
from railway.utils.structured_logger import RunTracer

logger = logging.getLogger(__name__)

# Context key holding the outer/inner/... name of the running pipeline chain
RUN_PATH_KEY = "railway.run_path"


def _name_of(target: Any) -> str:
    return getattr(target, "name", None) or repr(target)


class Pipeline(Action):
    """
    Named graph of member actions with a designated entry action.

    Key responsibilities:
    1. Validate members at construction (non-empty, unique, no TERMINATE)
    2. Build default run plans (straight line on SUCCESS, stop otherwise)
    3. Validate and install run plan overrides
    4. Execute the graph from an entry action to termination

    Members are tracked by identity, not by name. Runs never touch the
    routing table, so concurrent runs are safe once every override is in
    place; overrides themselves are not synchronized.
    """

    def __init__(self, name: str, *actions: Action, tracer: Optional[RunTracer] = None):
        """
        Initialize pipeline.

        Args:
            name: Identifier used in run paths and traces
            *actions: Member actions in order; the first one is the entry action
            tracer: Optional JSON Lines sink for run traces

        Raises:
            PipelineConfigError: empty name, no actions, duplicate or
                TERMINATE member
        """
        if not name:
            raise PipelineConfigError("pipeline must have a name")
        if not actions:
            raise PipelineConfigError(f"no actions were described for creating pipeline `{name}`")

        super().__init__(name)
        self.tracer = tracer
        self._members: Dict[int, Action] = {}
        self._run_plans: Dict[int, ActionPlan] = {}

        for i, action in enumerate(actions):
            if is_terminate(action):
                raise PipelineConfigError(f"do not set terminate as a member (argument {i + 1})")
            if not isinstance(action, Action):
                raise PipelineConfigError(f"argument {i + 1} is not an Action: {action!r}")
            if id(action) in self._members:
                raise PipelineConfigError(
                    f"duplicate action `{action.name}` specified on actions argument {i + 1}",
                    action_name=action.name,
                )
            self._members[id(action)] = action

        for i, action in enumerate(actions):
            next_action = actions[i + 1] if i + 1 < len(actions) else TERMINATE

            default_plan: ActionPlan = {}
            for direction in unique_directions(list(action.directions()) + [ERROR, ABORT]):
                default_plan[direction] = TERMINATE
            default_plan[SUCCESS] = next_action
            self._run_plans[id(action)] = default_plan

        self._init_action = actions[0]
        logger.debug(f"Pipeline `{name}` created with {len(actions)} member(s)")

    @property
    def init_action(self) -> Action:
        """Entry action used by `run()`."""
        return self._init_action

    @property
    def members(self) -> List[Action]:
        """Member actions in declaration order."""
        return list(self._members.values())

    def directions(self) -> List[str]:
        """
        Only the reserved directions: SUCCESS, ERROR and ABORT.

        A parent pipeline treats a nested pipeline as a non-branching action,
        however richly it branches inside.
        """
        return list(RESERVED_DIRECTIONS)

    def is_member(self, action: Any) -> bool:
        return self._members.get(id(action)) is action

    def run_plan(self, action: Action) -> ActionPlan:
        """
        Copy of the routing table entry for `action`.

        Raises:
            PipelineConfigError: `action` is not a member
        """
        if not self.is_member(action):
            raise PipelineConfigError(
                f"`{_name_of(action)}` is not a member of pipeline `{self.name}`",
                action_name=_name_of(action),
            )
        return dict(self._run_plans[id(action)])

    def set_run_plan(self, action: Action, plan: Optional[Dict[str, Union[Action, Terminate, None]]] = None) -> None:
        """
        Replace the run plan of a member action.

        Directions the plan leaves out route to TERMINATE, so `plan=None`
        makes the action stop the run whatever it signals. SUCCESS, ERROR and
        ABORT are always routable; any other direction must be declared by
        the action. The previous plan is discarded, not merged.

        Args:
            action: Member whose routing is being replaced
            plan: Mapping of direction -> next member (or TERMINATE / None)

        Raises:
            PipelineConfigError: `action` is TERMINATE or not a member
            InvalidRunPlanError: an entry routes an undeclared direction, to a
                non-member, or back to `action` itself
        """
        if is_terminate(action):
            raise PipelineConfigError("cannot set plan for terminate")
        if not self.is_member(action):
            raise PipelineConfigError(
                f"`{_name_of(action)}` is not a member of pipeline `{self.name}`",
                action_name=_name_of(action),
            )

        allowed = declared_directions(action)

        # Build on a copy; the caller's dict and the current plan stay untouched
        new_plan: ActionPlan = {}
        for direction, next_action in (plan or {}).items():
            new_plan[direction] = TERMINATE if is_terminate(next_action) else next_action
        for direction in allowed:
            new_plan.setdefault(direction, TERMINATE)

        for direction, next_action in new_plan.items():
            if next_action is TERMINATE:
                continue

            if direction not in allowed:
                raise InvalidRunPlanError(
                    f"`{action.name}` does not support direction `{direction}`",
                    action_name=action.name,
                    direction=direction,
                    target_name=_name_of(next_action),
                )
            if not self.is_member(next_action):
                raise InvalidRunPlanError(
                    f"setting plan from `{action.name}` directing `{direction}` to non-member `{_name_of(next_action)}`",
                    action_name=action.name,
                    direction=direction,
                    target_name=_name_of(next_action),
                )
            if next_action is action:
                raise InvalidRunPlanError(
                    f"setting self loop plan with `{action.name}` directing `{direction}`",
                    action_name=action.name,
                    direction=direction,
                    target_name=action.name,
                )

        self._run_plans[id(action)] = new_plan
        logger.debug(f"Pipeline `{self.name}`: run plan of `{action.name}` replaced")

    def execute(self, ctx: RunContext, value: Any) -> ActionResult:
        """
        Run as a member of a parent pipeline.

        A custom direction signalled by the last inner action is folded into
        SUCCESS here, since the parent only routes the reserved directions.
        """
        output, direction, failure = self.run(ctx, value)
        if direction not in RESERVED_DIRECTIONS:
            direction = ERROR if failure is not None else SUCCESS
        return ActionResult(output, direction, failure)

    def run(self, ctx: Optional[RunContext], value: Any) -> ActionResult:
        """
        Execute the graph from the entry action (the first constructor argument).

        Args:
            ctx: Run context (None means `RunContext.background()`)
            value: Input handed to the entry action

        Returns:
            ActionResult of the last executed action, with the direction
            normalized to ERROR when a failure was recorded (ABORT is kept)
        """
        if ctx is None:
            ctx = RunContext.background()

        if len(self._run_plans) == 1:
            return self._run_single(ctx, value)

        return self.run_at(self._init_action, ctx, value)

    def _run_single(self, ctx: RunContext, value: Any) -> ActionResult:
        """One-member shortcut: no run path in the context and no DEBUG trace lines."""
        action = self._init_action
        run_path = self._run_path(ctx)
        if self.tracer:
            self.tracer.log_run_start(run_path, action.name)

        run_start = time.time()
        output, direction, failure = self._run_action(action, ctx, value)
        _, routing_error = self._select_next_action(action, direction)

        if routing_error is not None:
            logger.error(f"{run_path}: {routing_error}")
            if self.tracer:
                self.tracer.log_routing_error(run_path, action.name, direction, routing_error)
            result = ActionResult(output, ABORT, routing_error)
        else:
            if self.tracer:
                self.tracer.log_transition(
                    run_path, action.name, direction, None, failure=failure, duration_seconds=time.time() - run_start
                )
            result = self._compose_result(output, direction, failure)

        if self.tracer:
            self.tracer.log_run_end(
                run_path, result.direction, failure=result.failure, steps=1, duration_seconds=time.time() - run_start
            )
        return result

    def _run_path(self, ctx: RunContext) -> str:
        parent_path = ctx.value(RUN_PATH_KEY)
        return f"{parent_path}/{self.name}" if parent_path else self.name

    def run_at(self, init_action: Action, ctx: Optional[RunContext], value: Any) -> ActionResult:
        """
        Execute the graph starting from any member action.

        Lets a caller re-enter a pipeline mid-graph (e.g. a retry driver
        resuming at the step that failed). Routing follows the run plans;
        an action's failure goes wherever its signalled direction points, so
        the graph decides whether to branch, continue or stop. A direction
        without a route halts the run with ABORT and a RoutingError.

        Args:
            init_action: Member to start from
            ctx: Run context (None means `RunContext.background()`)
            value: Input handed to `init_action`

        Returns:
            ActionResult of the last executed action. When `init_action` is
            not a member nothing runs and (value, ERROR, NotAMemberError) is
            returned.
        """
        if not self.is_member(init_action):
            return ActionResult(
                value,
                ERROR,
                NotAMemberError(
                    f"given init action `{_name_of(init_action)}` is not a member of pipeline `{self.name}`",
                    action_name=_name_of(init_action),
                ),
            )
        if ctx is None:
            ctx = RunContext.background()

        run_path = self._run_path(ctx)
        ctx = ctx.with_value(RUN_PATH_KEY, run_path)

        logger.debug(f'{run_path}: Start running with "{init_action.name}"')
        if self.tracer:
            self.tracer.log_run_start(run_path, init_action.name)

        run_start = time.time()
        current_action: Union[Action, Terminate] = init_action
        output, direction, last_failure = value, SUCCESS, None
        steps = 0

        while current_action is not TERMINATE:
            action_start = time.time()
            output, direction, failure = self._run_action(current_action, ctx, value)
            steps += 1

            next_action, routing_error = self._select_next_action(current_action, direction)
            if routing_error is not None:
                logger.error(f"{run_path}: {routing_error}")
                if self.tracer:
                    self.tracer.log_routing_error(run_path, current_action.name, direction, routing_error)
                direction = ABORT
                last_failure = routing_error
                break

            next_action_name = "termination" if next_action is TERMINATE else next_action.name
            logger.debug(f'{run_path}: "{current_action.name}" directs "{direction}", selecting "{next_action_name}"')
            if self.tracer:
                self.tracer.log_transition(
                    run_path,
                    current_action.name,
                    direction,
                    None if next_action is TERMINATE else next_action.name,
                    failure=failure,
                    duration_seconds=time.time() - action_start,
                )

            value = output
            if failure is not None:
                last_failure = failure
            current_action = next_action

        result = self._compose_result(output, direction, last_failure)
        if self.tracer:
            self.tracer.log_run_end(
                run_path,
                result.direction,
                failure=result.failure,
                steps=steps,
                duration_seconds=time.time() - run_start,
            )
        return result

    def _run_action(self, action: Action, ctx: RunContext, value: Any) -> ActionResult:
        return ActionResult(*action.execute(ctx, value))

    def _select_next_action(
        self, action: Action, direction: str
    ) -> Tuple[Union[Action, Terminate], Optional[RoutingError]]:
        """Look up where `direction` leads from `action`; TERMINATE plus an error when it leads nowhere."""
        plan = self._run_plans.get(id(action))
        if plan is None:
            return TERMINATE, RoutingError(
                f"no action plan found for `{action.name}`", action_name=action.name, direction=direction
            )
        if direction not in plan:
            return TERMINATE, RoutingError(
                f"no action plan from `{action.name}` directing `{direction}`",
                action_name=action.name,
                direction=direction,
            )
        return plan[direction], None

    @staticmethod
    def _compose_result(output: Any, direction: str, failure: Optional[Exception]) -> ActionResult:
        if failure is not None and direction != ABORT:
            direction = ERROR
        return ActionResult(output, direction, failure)
