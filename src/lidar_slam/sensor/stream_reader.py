"""
Stream reader: drives the frame decoder on a dedicated thread.

The reader is the only writer of the sample channel and never touches the
map or the pose.
"""

import threading
from dataclasses import dataclass
from typing import Callable, Optional

from .byte_source import ByteSource, FileByteSource, SerialByteSource
from .frame_decoder import FrameDecoder
from .sample_channel import SampleChannel
from ..utils.config import require_non_negative_float
from ..utils.errors import ConfigError, ReadTimeout, StreamClosedError
from ..utils.logger import get_logger


@dataclass
class ReaderStats:
    """Counters describing the reader's health."""
    reads: int = 0
    timeouts: int = 0
    frame_aborts: int = 0
    io_errors: int = 0
    stream_closed: int = 0
    reconnects: int = 0


class StreamReader:
    """Reads the byte source continuously and queues decoded samples."""

    def __init__(self, source: ByteSource, channel: SampleChannel, config=None,
                 error_callback: Optional[Callable[[Exception], None]] = None):
        """
        Initialize stream reader.

        Args:
            source: Byte source to read from
            channel: Channel receiving decoded samples
            config: Lidar configuration dictionary
            error_callback: Called with every stream-level error
        """
        self.config = config or {}
        self.source = source
        self.channel = channel
        self.decoder = FrameDecoder(config=self.config)
        self.error_callback = error_callback
        self.logger = get_logger(__name__)

        self.timeout = require_non_negative_float(self.config, 'timeout', 1.0)
        self.reconnect_backoff = require_non_negative_float(self.config, 'reconnect_backoff', 0.5)
        self.error_backoff = require_non_negative_float(self.config, 'error_backoff', 0.1)

        stop_timeout = self.config.get('stop_timeout')
        if stop_timeout is None:
            stop_timeout = self.timeout + 0.5
        self.stop_timeout = float(stop_timeout)

        self.max_reconnect_attempts = self.config.get('max_reconnect_attempts')
        if self.max_reconnect_attempts is not None and (
                isinstance(self.max_reconnect_attempts, bool)
                or not isinstance(self.max_reconnect_attempts, int)
                or self.max_reconnect_attempts < 0):
            raise ConfigError(
                f"'max_reconnect_attempts' must be null or a non-negative integer, "
                f"got {self.max_reconnect_attempts!r}"
            )

        self.stats = ReaderStats()
        self.last_error: Optional[Exception] = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, channel: SampleChannel, config=None, error_callback=None):
        """Build a reader over the serial port, or a capture file if one is configured."""
        config = config or {}
        replay_file = config.get('replay_file')
        if replay_file:
            source = FileByteSource(replay_file, chunk_size=config.get('read_buffer_size', 8192))
        else:
            source = SerialByteSource.from_config(config)
        return cls(source, channel, config=config, error_callback=error_callback)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        """
        Open the source and start the reader thread.

        Raises:
            SourceUnavailableError: If the source cannot be opened
        """
        with self._lock:
            if self.running:
                return

            try:
                self.source.open()
            except Exception as e:
                self.logger.error(f"Cannot start reader on {self.source.describe()}: {e}")
                raise

            self.decoder.reset()
            self.last_error = None
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._read_loop, name="lidar-stream-reader", daemon=True
            )
            self._thread.start()
            self.logger.info(f"Stream reader started on {self.source.describe()}")

    def stop(self):
        """Stop the reader thread and release the source."""
        with self._lock:
            self._stop_event.set()
            thread = self._thread
            if thread is not None and thread is not threading.current_thread():
                thread.join(timeout=self.stop_timeout)
                if thread.is_alive():
                    self.logger.warning("Stream reader did not stop within timeout")
            # A thread still alive stays tracked so start() cannot launch a second reader
            if thread is None or not thread.is_alive():
                self._thread = None
            self.source.close()
            self.logger.info("Stream reader stopped")

    def _read_loop(self):
        consecutive_closures = 0

        while not self._stop_event.is_set():
            try:
                data = self.source.read(self.decoder.bytes_wanted())
                self.stats.reads += 1
                if not data:
                    raise StreamClosedError(f"{self.source.describe()} returned no data")

                frames_before = self.decoder.stats.frames
                aborts_before = self.decoder.stats.aborts
                samples = self.decoder.feed(data)
                if samples:
                    self.channel.push_many(samples)
                if self.decoder.stats.aborts != aborts_before:
                    self.stats.frame_aborts += self.decoder.stats.aborts - aborts_before
                if self.decoder.stats.frames != frames_before:
                    consecutive_closures = 0

            except ReadTimeout:
                self.stats.timeouts += 1
                if self.decoder.in_frame:
                    self.decoder.abort()
                    self.stats.frame_aborts += 1
                    self.logger.debug("Read timed out mid-frame, frame dropped")

            except StreamClosedError as e:
                consecutive_closures += 1
                self.stats.stream_closed += 1
                self.decoder.reset()
                self._report(e)

                if (self.max_reconnect_attempts is not None
                        and consecutive_closures > self.max_reconnect_attempts):
                    self.logger.error(
                        f"Giving up after {consecutive_closures} stream closures: {e}"
                    )
                    self.last_error = e
                    self.source.close()
                    break

                self.logger.warning(
                    f"Stream closed ({e}), retrying in {self.reconnect_backoff:.2f}s"
                )
                if self._stop_event.wait(self.reconnect_backoff):
                    break
                self._reopen()

            except OSError as e:
                self.stats.io_errors += 1
                if self.decoder.in_frame:
                    self.stats.frame_aborts += 1
                self.decoder.abort()
                self.logger.warning(f"Read error, frame dropped: {e}")
                self._report(e)
                if self._stop_event.wait(self.error_backoff):
                    break

    def _reopen(self):
        if self.source.is_open:
            return
        try:
            self.source.open()
            self.stats.reconnects += 1
            self.logger.info(f"Reopened {self.source.describe()}")
        except Exception as e:
            self.logger.warning(f"Reopen failed: {e}")
            self._report(e)

    def _report(self, error: Exception):
        if self.error_callback is None:
            return
        try:
            self.error_callback(error)
        except Exception as e:
            self.logger.error(f"Error callback failed: {e}", exc_info=True)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False
