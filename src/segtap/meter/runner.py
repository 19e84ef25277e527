from __future__ import annotations

import logging
import queue
import sys
import threading
import time
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, TextIO

try:
    import serial  # type: ignore[import]
except ImportError:  # pragma: no cover - handled in CLI validation
    serial = None  # type: ignore[assignment]

from .config import MeterConfig
from .device import MeterDevice
from .diagnostics import LoggingDiagnostics
from .frames import FrameFormat, FrameParser, iterate_binary_stream, iterate_text_stream

logger = logging.getLogger(__name__)


@dataclass
class SerialSettings:
    port: str
    baudrate: int = 115200
    timeout: float = 2.0


class SerialReaderThread(threading.Thread):
    """Reads captured frames from a serial port, reconnecting with back-off."""

    def __init__(
        self,
        settings: SerialSettings,
        frame_format: FrameFormat,
        config: MeterConfig,
        frame_queue: "queue.Queue[bytes]",
    ) -> None:
        super().__init__(daemon=True)
        self.settings = settings
        self.frame_format = frame_format
        self.config = config
        self.queue = frame_queue
        self.parser = FrameParser(frame_format)
        self._stop_event = threading.Event()
        self._serial_handle = None
        self._dropped = 0
        self._reconnects = 0
        self._connected_once = False
        self.last_exception: Optional[Exception] = None
        self._log = logging.getLogger(__name__)

    def run(self) -> None:
        initial_delay = max(self.config.host.reconnect_initial_sec, 0.1)
        max_delay = max(self.config.host.reconnect_max_sec, initial_delay)
        backoff = initial_delay
        while not self._stop_event.is_set():
            self._serial_handle = None
            try:
                self._serial_handle = self._open_serial()
                if self._connected_once:
                    self._reconnects += 1
                    self._log.info("Reconnected to %s", self.settings.port)
                else:
                    self._log.info("Connected to %s", self.settings.port)
                    self._connected_once = True
                self.last_exception = None
                backoff = initial_delay
                self.parser.reset()
                if self.frame_format is FrameFormat.HEX:
                    frames = self.parser.parse_hex(self._iter_lines())
                else:
                    chunk_size = max(self.config.host.binary_chunk_size, 16)
                    frames = self.parser.parse_binary(self._iter_chunks(chunk_size))
                for frame in frames:
                    if self._stop_event.is_set():
                        break
                    self._emit(frame)
            except (serial.SerialException if serial is not None else OSError) as exc:  # type: ignore[union-attr]
                self.last_exception = exc
                self._log.warning("Serial error (%s): %s", self.settings.port, exc)
            except Exception as exc:  # pragma: no cover - logged and retried
                self.last_exception = exc
                self._log.exception("Unexpected error in serial reader")
            finally:
                self._close_handle()
            if self._stop_event.is_set():
                break
            wait_time = min(backoff, max_delay)
            self._log.info("Reconnecting in %.1fs", wait_time)
            self._stop_event.wait(wait_time)
            backoff = min(backoff * 2, max_delay)

    def stop(self) -> None:
        self._stop_event.set()
        self._close_handle()

    def stats(self) -> dict[str, int]:
        stats = self.parser.stats()
        stats["dropped"] = self._dropped
        stats["reconnects"] = self._reconnects
        return stats

    def _emit(self, frame: bytes) -> None:
        try:
            self.queue.put(frame, timeout=1.0)
        except queue.Full:
            self._dropped += 1
            self._log.warning("Frame queue full (%d), dropping frame", self.queue.qsize())

    def _iter_lines(self) -> Iterator[str]:
        while not self._stop_event.is_set():
            handle = self._serial_handle
            if handle is None:
                return
            raw = handle.readline()
            if not raw:
                continue
            yield raw.decode("ascii", errors="ignore")

    def _iter_chunks(self, chunk_size: int) -> Iterator[bytes]:
        while not self._stop_event.is_set():
            handle = self._serial_handle
            if handle is None:
                return
            data = handle.read(chunk_size)
            if not data:
                continue
            yield data

    def _close_handle(self) -> None:
        handle = self._serial_handle
        self._serial_handle = None
        if handle is None:
            return
        try:
            handle.close()
        except Exception as exc:
            self._log.debug("Error closing %s: %s", self.settings.port, exc)

    def _open_serial(self):
        if serial is None:
            raise ImportError("pyserial is required but not installed.")
        return serial.Serial(
            port=self.settings.port,
            baudrate=self.settings.baudrate,
            timeout=self.settings.timeout,
        )


class MeterHost:
    """Host-side loop: frames in, meter state updated, readings logged."""

    def __init__(self, settings: SerialSettings, config: MeterConfig, log_stream: Optional[TextIO] = None):
        # imported here, reporting depends on this package
        from ..reporting import ReadingLogger

        self.settings = settings
        self.config = config
        self.frame_format = config.frame_format_enum
        self.diagnostics = LoggingDiagnostics()
        self.device = MeterDevice(
            sample_count=config.sample_count,
            decimation=config.graph.decimation,
            auto_decimate=config.graph.auto_decimate,
            thermocouple=config.thermocouple,
            diagnostics=self.diagnostics,
            graph_capacity=config.graph.capacity,
        )
        self.data_logger = ReadingLogger(
            config.log,
            log_stream if log_stream is not None else sys.stdout,
            keep_records=config.output_csv is not None,
        )
        self.processed = 0
        self._started = time.monotonic()

    def handle_frame(self, frame: bytes) -> None:
        self.device.process_frame(frame)
        self.processed += 1
        ts_ms = (time.monotonic() - self._started) * 1000.0
        self.data_logger.log(self.device.view(), ts_ms)

    def process(self, frames: Iterable[bytes]) -> int:
        count = 0
        for frame in frames:
            self.handle_frame(frame)
            count += 1
        return count

    def run(self) -> None:
        if self.settings.port == "-":
            self._run_from_stream()
            return
        if serial is None:
            raise ImportError("pyserial is required to read from a serial port.")

        frame_queue: "queue.Queue[bytes]" = queue.Queue(maxsize=self.config.host.queue_maxsize)
        reader = SerialReaderThread(self.settings, self.frame_format, self.config, frame_queue)
        reader.start()
        interval_sec = max(float(self.config.host.stats_log_interval), 5.0)
        next_log = time.monotonic() + interval_sec
        try:
            while True:
                try:
                    frame = frame_queue.get(timeout=1.0)
                except queue.Empty:
                    frame = None
                if frame is not None:
                    self.handle_frame(frame)
                if time.monotonic() >= next_log:
                    self._log_stats(reader.stats())
                    next_log = time.monotonic() + interval_sec
        except KeyboardInterrupt:
            logger.info("Stopping host (Ctrl+C)")
        finally:
            reader.stop()
            reader.join(timeout=5)
            self._log_stats(reader.stats(), prefix="Final stats: ")
            self.close()

    def _run_from_stream(self) -> None:
        parser = FrameParser(self.frame_format)
        if self.frame_format is FrameFormat.HEX:
            frames = parser.parse_hex(iterate_text_stream(sys.stdin))
        else:
            frames = parser.parse_binary(iterate_binary_stream(sys.stdin.buffer, self.config.host.binary_chunk_size))
        try:
            self.process(frames)
        finally:
            self._log_stats(parser.stats(), prefix="Processed stdin: ")
            self.close()

    def _log_stats(self, transport: dict[str, int], prefix: str = "") -> None:
        decoder = self.device.stats()
        logger.info(
            "%sprocessed=%d frames=%d crc_errors=%d length_errors=%d dropped=%d reconnects=%d "
            "short_frames=%d duplicate_dp=%d",
            prefix,
            self.processed,
            transport.get("frames", 0),
            transport.get("crc_errors", 0),
            transport.get("length_errors", 0),
            transport.get("dropped", 0),
            transport.get("reconnects", 0),
            decoder.get("short_frames", 0),
            decoder.get("duplicate_dp", 0),
        )

    def close(self) -> None:
        if self.config.output_csv is not None:
            self.data_logger.export_csv(self.config.output_csv)
