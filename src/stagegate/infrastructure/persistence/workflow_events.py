"""Workflow event store implementations."""

import json
import threading
from pathlib import Path
from typing import Any

from stagegate.domain.interfaces import WorkflowEventStoreInterface
from stagegate.domain.workflow_event import WorkflowEvent, WorkflowEventType


class InMemoryWorkflowEventStore(WorkflowEventStoreInterface):
    """In-memory implementation for testing."""

    def __init__(self) -> None:
        self._events: list[WorkflowEvent] = []

    def store_event(self, event: WorkflowEvent) -> str:
        self._events.append(event)
        return event.event_id

    def get_events(
        self,
        run_id: str,
        event_type: WorkflowEventType | None = None,
        stage_name: str | None = None,
    ) -> list[WorkflowEvent]:
        return [
            e
            for e in self._events
            if e.run_id == run_id
            and (event_type is None or e.event_type == event_type)
            and (stage_name is None or e.stage_name == stage_name)
        ]


class FilesystemWorkflowEventStore(WorkflowEventStoreInterface):
    """Filesystem implementation storing events as JSONL, one file per run."""

    def __init__(self, base_path: Path) -> None:
        self.base_path = Path(base_path)
        self.events_dir = self.base_path / "events"
        self.events_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _get_run_file(self, run_id: str) -> Path:
        return self.events_dir / f"{run_id}.jsonl"

    def store_event(self, event: WorkflowEvent) -> str:
        path = self._get_run_file(event.run_id)
        with self._lock, open(path, "a") as f:
            f.write(json.dumps(self._event_to_dict(event)) + "\n")
        return event.event_id

    def get_events(
        self,
        run_id: str,
        event_type: WorkflowEventType | None = None,
        stage_name: str | None = None,
    ) -> list[WorkflowEvent]:
        path = self._get_run_file(run_id)
        if not path.exists():
            return []
        events: list[WorkflowEvent] = []
        with open(path) as f:
            for line in f:
                event = self._dict_to_event(json.loads(line))
                if event_type and event.event_type != event_type:
                    continue
                if stage_name and event.stage_name != stage_name:
                    continue
                events.append(event)
        return events

    def _event_to_dict(self, event: WorkflowEvent) -> dict[str, Any]:
        """Serialize event to dict."""
        return {
            "event_id": event.event_id,
            "event_type": event.event_type.value,
            "run_id": event.run_id,
            "phase": event.phase,
            "stage_name": event.stage_name,
            "attempt": event.attempt,
            "score": event.score,
            "verdict": event.verdict,
            "targets": list(event.targets),
            "summary": event.summary,
            "created_at": event.created_at,
        }

    def _dict_to_event(self, data: dict[str, Any]) -> WorkflowEvent:
        """Deserialize dict to event."""
        return WorkflowEvent(
            event_id=data["event_id"],
            event_type=WorkflowEventType(data["event_type"]),
            run_id=data["run_id"],
            phase=data.get("phase", ""),
            stage_name=data.get("stage_name"),
            attempt=data.get("attempt"),
            score=data.get("score"),
            verdict=data.get("verdict"),
            targets=tuple(data.get("targets", ())),
            summary=data.get("summary", ""),
            created_at=data.get("created_at", ""),
        )
