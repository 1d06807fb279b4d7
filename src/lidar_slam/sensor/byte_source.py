"""
Byte sources feeding the stream reader.

A source offers blocking ``read(size)`` calls bounded by a timeout:
it returns between 1 and ``size`` bytes, returns ``b""`` once the stream has
ended, and raises ``ReadTimeout`` when nothing arrived in time.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import serial
import serial.tools.list_ports

from ..utils.errors import ReadTimeout, SourceUnavailableError, StreamClosedError
from ..utils.logger import get_logger


# USB-UART bridges used on lidar adapter boards
LIDAR_PORT_KEYWORDS = ['cp210', 'silicon labs', 'ch340', 'usb serial', 'uart', 'ftdi', 'lidar']
LIDAR_PORT_VIDS = [0x10C4, 0x1A86, 0x0403]  # Silicon Labs, QinHeng, FTDI


def find_lidar_port() -> Optional[str]:
    """Auto-detect the serial port of a lidar adapter."""
    for port in serial.tools.list_ports.comports():
        description = (port.description or '').lower()
        if any(keyword in description for keyword in LIDAR_PORT_KEYWORDS):
            return port.device
        if getattr(port, 'vid', None) in LIDAR_PORT_VIDS:
            return port.device
    return None


class ByteSource(ABC):
    """Stream of bytes with an explicit open/close lifecycle."""

    @abstractmethod
    def open(self):
        """Open the source. Raises SourceUnavailableError on failure."""

    @abstractmethod
    def close(self):
        """Release the source. Safe to call when already closed."""

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """Whether the source is open."""

    @abstractmethod
    def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes."""

    def describe(self) -> str:
        return type(self).__name__


class SerialByteSource(ByteSource):
    """Lidar attached to a serial port."""

    def __init__(self, port=None, baud_rate=128000, timeout=1.0, read_buffer_size=8192):
        """
        Initialize serial byte source.

        Args:
            port: Serial port (None for auto-detect)
            baud_rate: Serial baud rate
            timeout: Read timeout in seconds
            read_buffer_size: Driver receive buffer size hint (bytes)
        """
        self.port = port
        self.baud_rate = baud_rate
        self.timeout = timeout
        self.read_buffer_size = read_buffer_size
        self.serial_connection = None
        self.logger = get_logger(__name__)

    @classmethod
    def from_config(cls, config=None):
        config = config or {}
        return cls(
            port=config.get('port'),
            baud_rate=config.get('baud_rate', 128000),
            timeout=config.get('timeout', 1.0),
            read_buffer_size=config.get('read_buffer_size', 8192),
        )

    def open(self):
        if self.is_open:
            return

        if self.port is None:
            self.port = find_lidar_port()
            if self.port is None:
                raise SourceUnavailableError("Could not find lidar serial port")

        try:
            self.serial_connection = serial.Serial(
                port=self.port,
                baudrate=self.baud_rate,
                timeout=self.timeout
            )
        except (serial.SerialException, ValueError) as e:
            self.serial_connection = None
            raise SourceUnavailableError(f"Failed to open {self.port}: {e}") from e

        try:
            self.serial_connection.set_buffer_size(rx_size=self.read_buffer_size)
        except (AttributeError, serial.SerialException):
            # Only some platforms let the receive buffer be resized
            pass
        self.serial_connection.reset_input_buffer()
        self.logger.info(f"Opened lidar on {self.port} @ {self.baud_rate}")

    def close(self):
        if self.serial_connection is not None and self.serial_connection.is_open:
            self.serial_connection.close()
            self.logger.info(f"Closed lidar on {self.port}")
        self.serial_connection = None

    @property
    def is_open(self) -> bool:
        return self.serial_connection is not None and self.serial_connection.is_open

    def read(self, size: int) -> bytes:
        if not self.is_open:
            return b""
        try:
            data = self.serial_connection.read(size)
        except serial.SerialException as e:
            self.close()
            raise StreamClosedError(f"Lost lidar on {self.port}: {e}") from e
        if not data:
            raise ReadTimeout(f"No data from {self.port} within {self.timeout}s")
        return data

    def describe(self) -> str:
        return f"serial:{self.port}@{self.baud_rate}"


class FileByteSource(ByteSource):
    """Replays a raw capture of the lidar stream from disk."""

    def __init__(self, path, chunk_size=4096):
        self.path = Path(path)
        self.chunk_size = chunk_size
        self._file = None

    def open(self):
        if self.is_open:
            return
        try:
            self._file = open(self.path, 'rb')
        except OSError as e:
            raise SourceUnavailableError(f"Cannot open capture {self.path}: {e}") from e

    def close(self):
        if self._file is not None:
            self._file.close()
        self._file = None

    @property
    def is_open(self) -> bool:
        return self._file is not None and not self._file.closed

    def read(self, size: int) -> bytes:
        if not self.is_open:
            return b""
        return self._file.read(min(size, self.chunk_size))

    def describe(self) -> str:
        return f"file:{self.path}"
