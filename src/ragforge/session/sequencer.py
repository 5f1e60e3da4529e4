"""Timed, strictly sequential simulation of the ingestion pipeline.

Nothing is parsed, chunked, embedded or indexed here. The sequencer walks a
fixed list of named stages on an injected :class:`~ragforge.session.clock.Clock`,
records a log line when each stage starts and finishes, and signals its
owner exactly once after a short settle delay.
"""
from __future__ import annotations

import asyncio
import logging
import random
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Final, Optional, Sequence

from ragforge.session.clock import AsyncioClock, Clock
from ragforge.session.configuration import PipelineConfig
from ragforge.session.models import VectorNode
from ragforge.telemetry import emit_stage_event, log_event

LOGGER = logging.getLogger(__name__)

SETTLE_DELAY_SECONDS: Final[float] = 0.8
SAMPLE_INTERVAL_SECONDS: Final[float] = 0.1
MAX_VECTOR_NODES: Final[int] = 20
STAGE_DONE_LINE: Final[str] = "  Done."


class StageKey(str, Enum):
    PARSE = "parse"
    CHUNK = "chunk"
    EMBED = "embed"
    INDEX = "index"


STAGE_DURATIONS: Final[dict[StageKey, float]] = {
    StageKey.PARSE: 2.0,
    StageKey.CHUNK: 1.5,
    StageKey.EMBED: 2.0,
    StageKey.INDEX: 1.0,
}


@dataclass(frozen=True, slots=True)
class ProcessingStage:
    key: StageKey
    name: str
    duration: float

    def to_dict(self) -> dict[str, object]:
        return {"key": self.key.value, "name": self.name, "duration": self.duration}


def build_stages(config: PipelineConfig, *, time_scale: float = 1.0) -> tuple[ProcessingStage, ...]:
    """Return the four display stages for ``config``."""

    names = {
        StageKey.PARSE: f"Parsing with {config.parser.short_name}",
        StageKey.CHUNK: f"Chunking ({config.chunk_size}t / {config.overlap}ov)",
        StageKey.EMBED: "Generating Embeddings",
        StageKey.INDEX: "Building Vector Index",
    }
    return tuple(
        ProcessingStage(key=key, name=names[key], duration=STAGE_DURATIONS[key] * time_scale)
        for key in StageKey
    )


class SequencerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ProcessingSequencer:
    """Run stages one at a time and report completion once."""

    def __init__(
        self,
        stages: Sequence[ProcessingStage],
        *,
        clock: Clock | None = None,
        settle_delay: float = SETTLE_DELAY_SECONDS,
        sample_interval: float | None = SAMPLE_INTERVAL_SECONDS,
        on_complete: Optional[Callable[[], None]] = None,
        session_id: str | None = None,
        rng: random.Random | None = None,
    ) -> None:
        if not stages:
            raise ValueError("at least one stage is required")
        self.stages: tuple[ProcessingStage, ...] = tuple(stages)
        self._clock = clock or AsyncioClock()
        self._settle_delay = max(0.0, settle_delay)
        self._sample_interval = sample_interval if sample_interval and sample_interval > 0 else None
        self._on_complete = on_complete
        self._session_id = session_id
        self._rng = rng or random.Random()

        self.state = SequencerState.IDLE
        self.current_index: int | None = None
        self.completed_stages = 0
        self.log: list[str] = []
        self.nodes: deque[VectorNode] = deque(maxlen=MAX_VECTOR_NODES)
        self.samples_emitted = 0
        self.elapsed: float | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def current_stage(self) -> ProcessingStage | None:
        if self.current_index is None or self.state is not SequencerState.RUNNING:
            return None
        if self.current_index >= len(self.stages):
            return None
        return self.stages[self.current_index]

    @property
    def total_duration(self) -> float:
        return sum(stage.duration for stage in self.stages)

    def start(self) -> asyncio.Task[None]:
        """Schedule the run on the current loop; later calls reuse it."""

        if self._task is None:
            if self.state is SequencerState.CANCELLED:
                raise RuntimeError("Processing sequence was cancelled before it started")
            self._task = asyncio.get_running_loop().create_task(self._run())
            # Scheduled counts as running; the first stage begins on the next loop tick.
            self.state = SequencerState.RUNNING
            self.current_index = 0
        return self._task

    async def run(self) -> bool:
        """Start (if needed) and wait for the sequence to end.

        Returns ``True`` when every stage finished, ``False`` when the run
        was cancelled.
        """

        task = self.start()
        await asyncio.wait({task})
        if task.cancelled():
            return False
        task.result()
        return True

    def cancel(self) -> None:
        if self.state is SequencerState.COMPLETED:
            return
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self.state = SequencerState.CANCELLED

    async def _run(self) -> None:
        self.state = SequencerState.RUNNING
        started = self._clock.monotonic()
        try:
            for index, stage in enumerate(self.stages):
                self.current_index = index
                stage_started = self._clock.monotonic()
                self._append_log(f"> {stage.name}...")
                emit_stage_event(
                    "processing.stage.start",
                    session_id=self._session_id,
                    stage=stage.name,
                    index=index,
                )

                if stage.key is StageKey.EMBED and self._sample_interval is not None:
                    await self._wait_with_samples(stage.duration)
                else:
                    await self._clock.sleep(stage.duration)

                self._append_log(STAGE_DONE_LINE)
                self.completed_stages = index + 1
                emit_stage_event(
                    "processing.stage.complete",
                    session_id=self._session_id,
                    stage=stage.name,
                    index=index,
                    duration_ms=(self._clock.monotonic() - stage_started) * 1000.0,
                )

            await self._clock.sleep(self._settle_delay)
        except asyncio.CancelledError:
            self.state = SequencerState.CANCELLED
            LOGGER.info("Processing cancelled after %s stage(s)", self.completed_stages)
            raise

        self.elapsed = self._clock.monotonic() - started
        self.state = SequencerState.COMPLETED
        log_event(
            LOGGER,
            "processing.complete",
            session_id=self._session_id,
            duration_ms=self.elapsed * 1000.0,
            details={"stages": len(self.stages), "samples": self.samples_emitted},
        )
        if self._on_complete is not None:
            self._on_complete()

    async def _wait_with_samples(self, duration: float) -> None:
        interval = self._sample_interval
        assert interval is not None
        remaining = duration
        # Samples never shorten or extend the stage: the final slice only
        # sleeps what is left of the declared duration.
        while remaining > 1e-9:
            step = min(interval, remaining)
            await self._clock.sleep(step)
            remaining -= step
            if step >= interval - 1e-9:
                self._sample_node()

    def _sample_node(self) -> None:
        self.samples_emitted += 1
        self.nodes.append(
            VectorNode(
                id=f"node-{self.samples_emitted}",
                x=self._rng.random() * 100.0,
                y=self._rng.random() * 100.0,
            )
        )

    def _append_log(self, line: str) -> None:
        self.log.append(line)

    def snapshot(self, *, tail: int = 4) -> dict[str, object]:
        return {
            "state": self.state.value,
            "stages": [stage.to_dict() for stage in self.stages],
            "current_index": self.current_index,
            "completed_stages": self.completed_stages,
            "log": list(self.log),
            "recent_log": self.log[-tail:],
            "nodes": [
                {"id": node.id, "x": node.x, "y": node.y, "active": node.active}
                for node in self.nodes
            ],
        }


__all__ = [
    "MAX_VECTOR_NODES",
    "ProcessingSequencer",
    "ProcessingStage",
    "SAMPLE_INTERVAL_SECONDS",
    "SETTLE_DELAY_SECONDS",
    "STAGE_DONE_LINE",
    "STAGE_DURATIONS",
    "SequencerState",
    "StageKey",
    "build_stages",
]
