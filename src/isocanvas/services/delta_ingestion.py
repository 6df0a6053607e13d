"""Delta ingestion: fold a stream of ``{type, content}`` records into the Artifact.

Three pieces:

* ``apply_delta`` is the pure reducer. Same artifact + same delta, same result.
* ``DeltaChannel`` is the ordered delta log of one streaming session. It is
  created by the caller and handed to the engine; there is no process-wide bus.
* ``DeltaIngestionEngine`` remembers the last processed index of the channel
  so re-delivery of the whole log only applies unseen records. Each record
  goes through the artifact kind's stream hook first (suggestions land in
  kind metadata there), then through the reducer.
"""

import asyncio
import logging
from collections.abc import Mapping
from typing import Any, AsyncIterable, Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from ..core.logging_config import bound_session
from ..exceptions import MalformedDeltaError, ValidationError
from ..schemas.artifact import Artifact, ArtifactStatus, initial_artifact
from ..schemas.delta import CONTENT_DELTA_TYPES, DeltaEvent, DeltaType
from .artifact_kinds import ArtifactMetadataStore, ArtifactRegistry

logger = logging.getLogger(__name__)

ArtifactListener = Callable[[Artifact], None]


def parse_delta(record: Any) -> DeltaEvent:
    """Validate a wire record. Raises MalformedDeltaError."""
    if isinstance(record, DeltaEvent):
        return record
    if not isinstance(record, Mapping) or not isinstance(record.get("type"), str):
        raise MalformedDeltaError("Delta record must be an object with a string 'type'", record)
    try:
        return DeltaEvent.model_validate({"type": record["type"], "content": record.get("content")})
    except PydanticValidationError as e:
        raise MalformedDeltaError(f"Invalid content for delta type {record['type']!r}", record) from e


def apply_delta(artifact: Artifact, delta: DeltaEvent) -> Artifact:
    """Fold one delta into *artifact*. Unknown types return it unchanged."""
    streaming = ArtifactStatus.STREAMING

    if delta.type in CONTENT_DELTA_TYPES:
        return artifact.model_copy(
            update={"content": delta.text, "is_visible": True, "status": streaming}
        )
    if delta.type == DeltaType.ID.value:
        return artifact.model_copy(update={"document_id": delta.text, "status": streaming})
    if delta.type == DeltaType.TITLE.value:
        return artifact.model_copy(update={"title": delta.text, "status": streaming})
    if delta.type == DeltaType.KIND.value:
        return artifact.model_copy(update={"kind": delta.text, "status": streaming})
    if delta.type == DeltaType.CLEAR.value:
        return artifact.model_copy(update={"content": "", "status": streaming})
    if delta.type == DeltaType.FINISH.value:
        return artifact.model_copy(update={"status": ArtifactStatus.IDLE})
    # suggestion is handled by the kind hook; anything else is ignored
    return artifact


class DeltaChannel:
    """Ordered delta log for one streaming session."""

    def __init__(self, session_id: str = ""):
        self.session_id = session_id
        self.generation = 0  # bumped by clear_stream so readers restart at 0
        self._deltas: list[Any] = []
        self._listeners: list[Callable[[], None]] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def deltas(self) -> tuple:
        return tuple(self._deltas)

    def add_stream_delta(self, record: Any) -> None:
        if self._closed:
            raise ValidationError(
                f"Delta channel {self.session_id!r} is closed", field="session_id"
            )
        self._deltas.append(record)
        self._notify()

    def clear_stream(self) -> None:
        """Drop the log; readers start over from the first delta."""
        self._deltas.clear()
        self.generation += 1
        self._notify()

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        self._closed = True
        self._listeners.clear()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()


class DeltaIngestionEngine:
    """Applies channel deltas to the artifact exactly once, in order."""

    def __init__(
        self,
        channel: DeltaChannel,
        registry: ArtifactRegistry,
        metadata_store: ArtifactMetadataStore,
        artifact: Optional[Artifact] = None,
    ):
        self.channel = channel
        self.registry = registry
        self.metadata_store = metadata_store
        self.artifact = artifact or initial_artifact()
        self.last_processed_index = -1
        self._generation = channel.generation
        self._listeners: list[ArtifactListener] = []
        self._unsubscribe: Optional[Callable[[], None]] = channel.subscribe(self.process)

    @property
    def attached(self) -> bool:
        return self._unsubscribe is not None

    def subscribe(self, listener: ArtifactListener) -> Callable[[], None]:
        """Call *listener(artifact)* after every artifact change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_artifact(self, artifact: Artifact) -> None:
        if artifact == self.artifact:
            return
        self.artifact = artifact
        for listener in list(self._listeners):
            listener(artifact)

    def process(self) -> Artifact:
        """Apply every delta after the checkpoint. Safe to call repeatedly."""
        if not self.attached:
            return self.artifact

        if self.channel.generation != self._generation:
            self._generation = self.channel.generation
            self.last_processed_index = -1

        pending = self.channel.deltas[self.last_processed_index + 1:]
        if not pending:
            return self.artifact

        with bound_session(self.channel.session_id):
            for record in pending:
                self.last_processed_index += 1
                try:
                    delta = parse_delta(record)
                    self._route_to_kind(delta)
                except MalformedDeltaError as e:
                    logger.warning(
                        "Ignoring malformed delta",
                        extra={"index": self.last_processed_index, **e.details},
                    )
                    continue
                self.set_artifact(apply_delta(self.artifact, delta))
        return self.artifact

    def _route_to_kind(self, delta: DeltaEvent) -> None:
        definition = self.registry.find(self.artifact.kind)
        if definition is None:
            if delta.type == DeltaType.SUGGESTION.value:
                logger.warning(
                    "No artifact definition to receive suggestion",
                    extra={"kind": self.artifact.kind},
                )
            return
        if definition.on_stream_part is not None:
            definition.on_stream_part(delta, self.artifact, self.metadata_store)

    def cancel(self) -> None:
        """Detach from the channel and settle the artifact as idle."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self.artifact.is_streaming:
            self.set_artifact(self.artifact.model_copy(update={"status": ArtifactStatus.IDLE}))
        logger.info("Stream ingestion cancelled", extra={"session_id": self.channel.session_id})

    async def consume(self, source: AsyncIterable[Any]) -> Artifact:
        """Feed *source* into the channel until it ends or the task is cancelled."""
        try:
            async for record in source:
                if not self.attached or self.channel.closed:
                    break
                self.channel.add_stream_delta(record)
        except asyncio.CancelledError:
            self.cancel()
            raise
        return self.process()
