"""JSON Lines framing and watch event decoding."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Generic

from pydantic import ValidationError

from kube_stream_client.errors import MalformedRecord
from kube_stream_client.models import EventType, ResourceT, Status, WatchEnvelope, WatchEvent


MAX_RECORD_BYTES = 16 * 1024 * 1024


class LineReader:
    """Splits a chunked byte stream into newline-terminated records.

    Bytes are pulled from the chunk iterator only when the buffer holds no
    complete line. At end of stream any trailing bytes without a newline are
    returned as a final record so that a truncated record is never dropped.
    A record that grows past ``max_record_bytes`` without a newline raises
    :class:`MalformedRecord` instead of buffering without bound.
    """

    def __init__(self, chunks: Iterator[bytes], max_record_bytes: int = MAX_RECORD_BYTES) -> None:
        self._chunks = chunks
        self._buffer = bytearray()
        self._eof = False
        self._max_record_bytes = max_record_bytes

    def read_line(self) -> bytes | None:
        """Return the next record without its newline, or None once the stream is exhausted."""
        while True:
            newline = self._buffer.find(b"\n")
            if newline >= 0:
                line = bytes(self._buffer[:newline])
                del self._buffer[: newline + 1]
                return line
            if self._eof:
                if self._buffer:
                    line = bytes(self._buffer)
                    self._buffer.clear()
                    return line
                return None
            if len(self._buffer) > self._max_record_bytes:
                head = bytes(self._buffer[:200]).decode("utf-8", errors="replace")
                size = len(self._buffer)
                self._buffer.clear()
                raise MalformedRecord(head, f"record exceeds {self._max_record_bytes} bytes ({size} buffered)")
            chunk = next(self._chunks, None)
            if chunk is None:
                self._eof = True
            else:
                self._buffer.extend(chunk)


class WatchEventDecoder(Generic[ResourceT]):
    """Turns one JSON Lines record into a typed :class:`WatchEvent`.

    ERROR payloads are decoded as :class:`Status`; every other event type is
    decoded as the watched resource type. Holds no cursor state.
    """

    def __init__(self, resource_type: type[ResourceT]) -> None:
        self._resource_type = resource_type

    @property
    def resource_type(self) -> type[ResourceT]:
        return self._resource_type

    def decode(self, line: bytes) -> WatchEvent[ResourceT]:
        try:
            envelope = WatchEnvelope.model_validate_json(line)
            payload: ResourceT | Status
            if envelope.type is EventType.ERROR:
                payload = Status.model_validate(envelope.object)
            else:
                payload = self._resource_type.model_validate(envelope.object)
        except ValidationError as exc:
            raise MalformedRecord(line.decode("utf-8", errors="replace"), exc) from exc
        return WatchEvent(type=envelope.type, object=payload, raw=envelope.object)

