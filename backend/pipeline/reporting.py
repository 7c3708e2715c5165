"""
Pipeline Reporting
==================
Injected observability sink. The orchestrator calls `report()` at each
transition (verified, classified, reconstructed, enriched, delivered /
degraded / failed); where that goes is the sink's business.

pip install structlog
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from pydantic import BaseModel, Field

from schemas.event_definitions import PipelineStage


class PipelineReporter(ABC):
    """Reporting sink interface"""

    @abstractmethod
    def report(self, stage: PipelineStage, **context: Any) -> None:
        pass


class ReportEntry(BaseModel):
    stage: PipelineStage
    context: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class InMemoryReporter(PipelineReporter):
    """Append-only transition log"""

    def __init__(self):
        self.entries: List[ReportEntry] = []

    def report(self, stage: PipelineStage, **context: Any) -> None:
        self.entries.append(ReportEntry(stage=stage, context=context))

    @property
    def stages(self) -> List[PipelineStage]:
        return [entry.stage for entry in self.entries]

    def last(self, stage: PipelineStage) -> Optional[ReportEntry]:
        for entry in reversed(self.entries):
            if entry.stage == stage:
                return entry
        return None


_WARNING_STAGES = {PipelineStage.REJECTED, PipelineStage.DEGRADED}


class StructlogReporter(PipelineReporter):
    """Writes each transition as a structured log line."""

    def __init__(self, logger=None):
        self._logger = logger or structlog.get_logger().bind(component="webhook_pipeline")

    def report(self, stage: PipelineStage, **context: Any) -> None:
        event = f"webhook_{stage.value}"
        if stage == PipelineStage.FAILED:
            self._logger.error(event, **context)
        elif stage in _WARNING_STAGES:
            self._logger.warning(event, **context)
        else:
            self._logger.info(event, **context)
