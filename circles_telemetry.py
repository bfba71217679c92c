"""Telemetry events and sinks for Circles solver instrumentation."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from queue import Empty, Full, Queue
from typing import IO, Any, Callable, Dict, List, Mapping, Optional, Protocol, Tuple
import json
import os
import socket
import threading
import time

TELEMETRY_ENV = "CIRCLES_TELEMETRY"
RECONNECT_DELAY_S = 0.25


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class TelemetryEnvelope:
    event: str
    ts_ms: int
    data: Dict[str, Any]

    def to_json(self) -> str:
        payload = {"event": self.event, "ts_ms": self.ts_ms, "data": self.data}
        return json.dumps(payload, separators=(",", ":"))


@dataclass(frozen=True)
class ShuffleEvent:
    requested: int
    applied: str


@dataclass(frozen=True)
class HintStartEvent:
    start_score: int
    max_level: int
    forbidden: Optional[str]


@dataclass(frozen=True)
class HintUpdateEvent:
    path: str
    score: int


@dataclass(frozen=True)
class HintEndEvent:
    move: Optional[str]
    score: int
    improved: bool
    nodes: int
    elapsed_ms: int


@dataclass(frozen=True)
class SolveStartEvent:
    population: int
    generations: int
    chromosome_length: int
    start_score: int


@dataclass(frozen=True)
class BestUpdateEvent:
    generation: int
    score: int
    chromosome: str


@dataclass(frozen=True)
class GenerationDoneEvent:
    generation: int
    best_score: int
    mean_score: float
    elapsed_ms: int


@dataclass(frozen=True)
class SolveEndEvent:
    generation: int
    best_score: int
    solution: List[str]
    reason: str


class TelemetrySink(Protocol):
    def emit(self, envelope: TelemetryEnvelope) -> None:
        ...

    def close(self) -> None:
        ...


class CallbackTelemetrySink:
    def __init__(self, callback: Callable[[TelemetryEnvelope], None]) -> None:
        self._callback = callback

    def emit(self, envelope: TelemetryEnvelope) -> None:
        self._callback(envelope)

    def close(self) -> None:
        return


class JsonlStreamSink:
    """Writes one JSON object per line to an open text stream."""

    def __init__(self, stream: IO[str], close_stream: bool = False) -> None:
        self._stream = stream
        self._close_stream = close_stream

    def emit(self, envelope: TelemetryEnvelope) -> None:
        self._stream.write(envelope.to_json() + "\n")
        self._stream.flush()

    def close(self) -> None:
        if self._close_stream:
            self._stream.close()


class ThreadedTCPSink:
    """JSONL over TCP from a daemon thread; ``emit`` never blocks.

    Events queue up while the endpoint is unreachable. When the queue is
    full the oldest event is dropped.
    """

    def __init__(self, host: str, port: int, backlog: int = 1024) -> None:
        self._address = (host, port)
        self._queue: Queue[TelemetryEnvelope] = Queue(maxsize=max(8, backlog))
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._send_loop, name="circles-telemetry", daemon=True)
        self._thread.start()

    def emit(self, envelope: TelemetryEnvelope) -> None:
        if self._stop.is_set():
            return
        try:
            self._queue.put_nowait(envelope)
        except Full:
            try:
                self._queue.get_nowait()
                self._queue.put_nowait(envelope)
            except (Empty, Full):
                pass

    def close(self) -> None:
        self._stop.set()
        self._thread.join(timeout=0.5)

    def _send_loop(self) -> None:
        conn: Optional[socket.socket] = None
        while not self._stop.is_set():
            if conn is None:
                try:
                    conn = socket.create_connection(self._address, timeout=0.3)
                except OSError:
                    self._stop.wait(RECONNECT_DELAY_S)
                    continue
                conn.settimeout(None)
            try:
                envelope = self._queue.get(timeout=0.1)
            except Empty:
                continue
            try:
                conn.sendall(envelope.to_json().encode("utf-8") + b"\n")
            except OSError:
                conn.close()
                conn = None
        if conn is not None:
            conn.close()


def emit_event(sink: Optional[TelemetrySink], event: str, payload: Mapping[str, Any]) -> None:
    if sink is None:
        return
    envelope = TelemetryEnvelope(event=event, ts_ms=now_ms(), data=dict(payload))
    try:
        sink.emit(envelope)
    except Exception:
        # Telemetry must never break a solve.
        return


def emit_dataclass_event(sink: Optional[TelemetrySink], event: str, payload_obj: object) -> None:
    emit_event(sink, event, asdict(payload_obj))


def parse_host_port(value: str) -> Optional[Tuple[str, int]]:
    host, sep, port_raw = value.strip().rpartition(":")
    host = host.strip()
    if not sep or not host:
        return None
    try:
        port = int(port_raw)
    except ValueError:
        return None
    if not 0 < port <= 65535:
        return None
    return host, port


def sink_from_env(environ: Optional[Mapping[str, str]] = None) -> Optional[TelemetrySink]:
    environ = os.environ if environ is None else environ
    endpoint = parse_host_port(environ.get(TELEMETRY_ENV, ""))
    if endpoint is None:
        return None
    return ThreadedTCPSink(*endpoint)
