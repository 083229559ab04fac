"""
Structured run tracing in JSON Lines format
"""
import json
import logging
import threading
from pathlib import Path
from datetime import datetime
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class RunTracer:
    """
    Records pipeline runs as JSON lines for offline debugging

    Each entry contains:
    - timestamp
    - log level (INFO, WARNING, ERROR)
    - run path (outer/inner/... for nested pipelines)
    - event type (run_start, transition, routing_error, run_end)
    - event-specific data (action names, direction, failure)

    Write failures are logged and swallowed so a broken trace file never
    changes the outcome of a run.
    """

    def __init__(self, log_file: str = "logs/runs.jsonl"):
        self.log_file = Path(log_file)
        self.log_file.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

        # Appending across sessions, so mark where this one begins
        self._write_session_start()

    def _write_session_start(self):
        """Mark the start of a new tracing session"""
        session_marker = {
            "timestamp": self._get_timestamp(),
            "level": "INFO",
            "event": "session_start",
            "session_id": datetime.now().strftime("%Y%m%d_%H%M%S"),
        }
        self._write_log(session_marker)

    def _get_timestamp(self) -> str:
        """Get ISO 8601 timestamp"""
        return datetime.now().isoformat()

    def _write_log(self, log_entry: Dict[str, Any]):
        """Write a single log entry as JSON line"""
        try:
            with self._lock:
                with open(self.log_file, 'a', encoding='utf-8') as f:
                    f.write(json.dumps(log_entry, default=str) + '\n')
        except Exception as e:
            logger.error(f"Failed to write run trace: {e}")

    def log_run_start(self, run_path: str, init_action: str, **kwargs):
        """
        Log when a pipeline starts walking its graph

        Args:
            run_path: Hierarchical name of the running pipeline
            init_action: Name of the first action executed
            **kwargs: Additional context
        """
        log_entry = {
            "timestamp": self._get_timestamp(),
            "level": "INFO",
            "run_path": run_path,
            "event": "run_start",
            "init_action": init_action,
            **kwargs
        }
        self._write_log(log_entry)

    def log_transition(
        self,
        run_path: str,
        from_action: str,
        direction: str,
        to_action: Optional[str],
        failure: Exception = None,
        duration_seconds: float = None
    ):
        """
        Log one routing step of a run

        Args:
            run_path: Hierarchical name of the running pipeline
            from_action: Action that just executed
            direction: Direction it signalled
            to_action: Selected next action, None for termination
            failure: Failure the action reported, if any
            duration_seconds: How long the action took
        """
        log_entry = {
            "timestamp": self._get_timestamp(),
            "level": "WARNING" if failure else "INFO",
            "run_path": run_path,
            "event": "transition",
            "from": from_action,
            "direction": direction,
            "to": to_action,
            "duration_seconds": round(duration_seconds, 3) if duration_seconds is not None else None
        }
        if failure is not None:
            log_entry["error_type"] = type(failure).__name__
            log_entry["error_message"] = str(failure)
        self._write_log(log_entry)

    def log_routing_error(self, run_path: str, action_name: str, direction: str, error: Exception):
        """
        Log a direction that had no plan entry

        Args:
            run_path: Hierarchical name of the running pipeline
            action_name: Action that signalled the unknown direction
            direction: The direction itself
            error: The routing error reported as the run's failure
        """
        log_entry = {
            "timestamp": self._get_timestamp(),
            "level": "ERROR",
            "run_path": run_path,
            "event": "routing_error",
            "action": action_name,
            "direction": direction,
            "error_type": type(error).__name__,
            "error_message": str(error),
        }
        self._write_log(log_entry)

    def log_run_end(
        self,
        run_path: str,
        direction: str,
        failure: Exception = None,
        steps: int = None,
        duration_seconds: float = None
    ):
        """
        Log the final outcome of a run

        Args:
            run_path: Hierarchical name of the running pipeline
            direction: Final reported direction
            failure: Final reported failure, if any
            steps: Number of actions executed
            duration_seconds: Wall time of the whole run
        """
        log_entry = {
            "timestamp": self._get_timestamp(),
            "level": "ERROR" if failure else "INFO",
            "run_path": run_path,
            "event": "run_end",
            "direction": direction,
            "steps": steps,
            "duration_seconds": round(duration_seconds, 3) if duration_seconds is not None else None
        }
        if failure is not None:
            log_entry["error_type"] = type(failure).__name__
            log_entry["error_message"] = str(failure)
            log_entry["recoverable"] = getattr(failure, 'recoverable', None)
        self._write_log(log_entry)
