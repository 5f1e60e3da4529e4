"""Session lifecycle, pipeline configuration and the processing simulation."""
from __future__ import annotations

from .clock import AsyncioClock, Clock, ManualClock
from .configuration import ModelProvider, ParserType, PipelineConfig
from .models import Document, Message, Role, Transcript, VectorNode
from .sequencer import ProcessingSequencer, ProcessingStage, SequencerState, StageKey, build_stages

__all__ = [
    "AsyncioClock",
    "Clock",
    "Document",
    "ManualClock",
    "Message",
    "ModelProvider",
    "ParserType",
    "PipelineConfig",
    "ProcessingSequencer",
    "ProcessingStage",
    "Role",
    "SequencerState",
    "StageKey",
    "Transcript",
    "VectorNode",
    "build_stages",
]
