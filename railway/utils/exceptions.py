"""
Custom exception hierarchy for categorized error handling
"""
from typing import List, Optional


class RailwayException(Exception):
    """Base exception for all pipeline-related errors"""
    def __init__(self, message: str, action_name: str = None, recoverable: bool = True):
        self.message = message
        self.action_name = action_name
        self.recoverable = recoverable
        super().__init__(message)


class PipelineConfigError(RailwayException, ValueError):
    """Pipeline wiring is malformed (empty name, duplicate member, bad target)"""
    def __init__(self, message: str, action_name: str = None):
        super().__init__(message, action_name=action_name, recoverable=False)


class InvalidRunPlanError(PipelineConfigError):
    """A run plan override routes a direction somewhere it may not go"""
    def __init__(self, message: str, action_name: str = None, direction: str = None, target_name: str = None):
        self.direction = direction
        self.target_name = target_name
        super().__init__(message, action_name=action_name)


class DefinitionError(PipelineConfigError):
    """Pipeline definition file doesn't describe a valid set of pipelines"""
    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = errors or []
        super().__init__(message)


class RoutingError(RailwayException):
    """No plan entry exists for the direction an action signalled"""
    def __init__(self, message: str, action_name: str = None, direction: str = None):
        self.direction = direction
        super().__init__(message, action_name=action_name, recoverable=False)


class NotAMemberError(RailwayException):
    """Run was requested from an action the pipeline doesn't own"""
    def __init__(self, message: str, action_name: str = None):
        super().__init__(message, action_name=action_name, recoverable=False)


class ActionExecutionError(RailwayException):
    """Wrapped function of a leaf action raised"""
    def __init__(self, message: str, action_name: str = None, cause: Exception = None):
        self.cause = cause
        super().__init__(message, action_name=action_name, recoverable=True)


class ContextCancelledError(RailwayException):
    """Run context was cancelled by its owner"""
    def __init__(self, message: str = "context cancelled", recoverable: bool = False):
        super().__init__(message, recoverable=recoverable)


class DeadlineExceededError(ContextCancelledError):
    """Run context deadline passed"""
    def __init__(self, message: str = "context deadline exceeded", timeout_seconds: float = None):
        self.timeout_seconds = timeout_seconds
        super().__init__(message, recoverable=True)
