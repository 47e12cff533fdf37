# Copyright 2025 Ralph Lemke
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""RFL runtime telemetry.

Structured event collection for interpreter runs.
Telemetry MUST NOT affect execution semantics.
"""

import json
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


@dataclass
class TelemetryEvent:
    """A single telemetry event."""

    timestamp: str
    event_type: str
    routine: str | None = None
    kind: str | None = None
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        result = {
            "timestamp": self.timestamp,
            "eventType": self.event_type,
        }
        if self.routine:
            result["routine"] = self.routine
        if self.kind:
            result["kind"] = self.kind
        if self.details:
            result["details"] = self.details
        return result


class Telemetry:
    """Telemetry collector for interpreter runs.

    Collects structured telemetry for:
    - Run start, completion and failure
    - Routine begin/end/error
    - Generative service calls
    - Recovered code routine failures
    """

    def __init__(self, enabled: bool = True):
        """Initialize telemetry.

        Args:
            enabled: Whether telemetry is enabled
        """
        self.enabled = enabled
        self.events: list[TelemetryEvent] = []
        self._lock = threading.Lock()

    def _now(self) -> str:
        """Get current timestamp."""
        return datetime.now(UTC).isoformat().replace("+00:00", "Z")

    def _log(
        self,
        event_type: str,
        routine: str | None = None,
        kind: str | None = None,
        **details: Any,
    ) -> None:
        """Log a telemetry event."""
        if not self.enabled:
            return

        event = TelemetryEvent(
            timestamp=self._now(),
            event_type=event_type,
            routine=routine,
            kind=kind,
            details=details,
        )
        # join branches may report from worker threads
        with self._lock:
            self.events.append(event)

    def log_run_start(self, main: str) -> None:
        """Log run start."""
        self._log("run.start", routine=main)

    def log_run_complete(self, main: str, outputs: dict) -> None:
        """Log run completion."""
        self._log("run.complete", routine=main, outputKeys=sorted(outputs))

    def log_run_error(self, main: str | None, error: Exception) -> None:
        """Log a fatal run error."""
        self._log(
            "run.error",
            routine=main,
            errorType=type(error).__name__,
            errorMessage=str(error),
        )

    def log_routine_begin(self, routine: str, kind: str) -> None:
        """Log routine entry."""
        self._log("routine.begin", routine=routine, kind=kind)

    def log_routine_end(self, routine: str, kind: str, outputs: dict) -> None:
        """Log routine exit."""
        self._log("routine.end", routine=routine, kind=kind, outputKeys=sorted(outputs))

    def log_routine_error(self, routine: str, kind: str, error: Exception) -> None:
        """Log a routine failure."""
        self._log(
            "routine.error",
            routine=routine,
            kind=kind,
            errorType=type(error).__name__,
            errorMessage=str(error),
        )

    def log_service_call(self, routine: str, outputs: dict[str, str]) -> None:
        """Log a generative service call."""
        self._log("service.call", routine=routine, kind="prompt", requested=sorted(outputs))

    def log_code_recovered(self, routine: str, message: str) -> None:
        """Log a code routine failure converted into an error output."""
        self._log("code.recovered", routine=routine, kind="code", errorMessage=message)

    def get_events(
        self,
        event_type: str | None = None,
        routine: str | None = None,
    ) -> list[TelemetryEvent]:
        """Get filtered events.

        Args:
            event_type: Filter by event type
            routine: Filter by routine name

        Returns:
            List of matching events
        """
        events = self.events
        if event_type:
            events = [e for e in events if e.event_type == event_type]
        if routine:
            events = [e for e in events if e.routine == routine]
        return events

    def clear(self) -> None:
        """Clear all events."""
        self.events.clear()

    def to_json(self) -> str:
        """Export events as JSON."""
        return json.dumps([e.to_dict() for e in self.events], indent=2)
