"""
Progress notifications.

Listeners are advisory: a failing listener is logged and never changes how
the request proceeds.
"""

import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from loguru import logger


class ProgressStage(str, Enum):
    EXTRACTION_COMPLETE = "extraction_complete"
    EXECUTION_COMPLETE = "execution_complete"
    RETRY_TRIGGERED = "retry_triggered"


@dataclass(frozen=True)
class ProgressEvent:
    stage: ProgressStage
    request_id: str
    attempt_number: int
    detail: Dict[str, Any] = field(default_factory=dict)


ProgressListener = Callable[[ProgressEvent], Any]


class ProgressNotifier:
    """Fan progress events out to sync or async listeners."""

    def __init__(self, listeners: Optional[List[ProgressListener]] = None):
        self._listeners: List[ProgressListener] = list(listeners or [])

    def subscribe(self, listener: ProgressListener) -> None:
        self._listeners.append(listener)

    async def notify(self, stage: ProgressStage, request_id: str, attempt_number: int, **detail: Any) -> None:
        event = ProgressEvent(stage, request_id, attempt_number, detail)
        for listener in self._listeners:
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"Progress listener failed on {stage.value}: {e}")
