"""
Frame decoder for the lidar's serial protocol.

Frame layout (little endian)::

    0xAA 0x55 | CT LSN | FSA(2) LSA(2) | LSN x (distance(2) + unused(1))

FSA/LSA are the start and end angle codes of the frame, each decoding to
``(raw >> 1) / 64.0`` degrees. Distances decode to ``raw / 4.0`` millimetres.
Zero distances, and distances beyond the optional ``max_distance``, are
dropped here; the estimator applies its own scoring range on top.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ..utils.data_structures import Sample
from ..utils.errors import FrameAbortError


SYNC_BYTE_1 = 0xAA
SYNC_BYTE_2 = 0x55
HEADER_SIZE = 2
ANGLE_FIELDS_SIZE = 4
BYTES_PER_SAMPLE = 3
TWO_PI = 2.0 * math.pi


class DecoderState(Enum):
    """Parser states."""
    SEEK_FIRST_SYNC = 0
    SEEK_SECOND_SYNC = 1
    READ_HEADER_AND_PAYLOAD = 2


@dataclass
class DecoderStats:
    """Running counters kept by the decoder."""
    frames: int = 0  # Frames decoded
    samples: int = 0  # Samples emitted
    rejected: int = 0  # Samples dropped for implausible distance
    resyncs: int = 0  # Second sync byte mismatches
    aborts: int = 0  # Frames dropped before completion


def decode_angle(raw: int) -> float:
    """Decode an angle code into degrees."""
    return (raw >> 1) / 64.0


def payload_size(lsn: int) -> int:
    """Number of payload bytes following the header for ``lsn`` samples."""
    return ANGLE_FIELDS_SIZE + lsn * BYTES_PER_SAMPLE


def decode_samples(lsn: int, payload: bytes, distance_scale: float = 0.001,
                   max_distance: Optional[float] = None):
    """
    Decode the payload of one frame.

    Args:
        lsn: Sample count from the header
        payload: Exactly ``payload_size(lsn)`` bytes
        distance_scale: Factor from millimetres to output units
        max_distance: Largest accepted distance in output units (None for no limit)

    Returns:
        (samples, rejected) where rejected counts dropped distances

    Raises:
        FrameAbortError: If lsn is zero or the payload has the wrong length
    """
    if lsn <= 0:
        raise FrameAbortError("Frame has zero sample count")
    if len(payload) != payload_size(lsn):
        raise FrameAbortError(
            f"Payload has {len(payload)} bytes, expected {payload_size(lsn)}"
        )

    angle_start = decode_angle(payload[0] | (payload[1] << 8))
    angle_end = decode_angle(payload[2] | (payload[3] << 8))

    diff_angle = (angle_end - angle_start) if lsn > 1 else 0.0
    if diff_angle < 0:
        diff_angle += 360.0

    samples = []
    rejected = 0
    for i in range(lsn):
        offset = ANGLE_FIELDS_SIZE + i * BYTES_PER_SAMPLE
        distance = (payload[offset] | (payload[offset + 1] << 8)) / 4.0 * distance_scale
        if distance <= 0 or (max_distance is not None and distance > max_distance):
            rejected += 1
            continue

        if lsn > 1:
            angle = angle_start + (diff_angle / (lsn - 1)) * i
        else:
            angle = angle_start

        angle_rad = math.radians(angle % 360.0)
        if angle_rad >= TWO_PI:
            angle_rad -= TWO_PI
        samples.append(Sample(angle=angle_rad, distance=distance))

    return samples, rejected


class FrameDecoder:
    """Stateful byte-level parser turning a raw stream into samples."""

    def __init__(self, config=None):
        """
        Initialize frame decoder.

        Args:
            config: Lidar configuration dictionary
        """
        self.config = config or {}
        self.distance_scale = float(self.config.get('distance_scale', 0.001))
        max_distance = self.config.get('max_distance')
        self.max_distance = None if max_distance is None else float(max_distance)

        self.stats = DecoderStats()
        self.state = DecoderState.SEEK_FIRST_SYNC
        self._buffer = bytearray()
        self._expected = HEADER_SIZE

    @property
    def in_frame(self) -> bool:
        """True while part of a frame has been consumed."""
        return self.state is not DecoderState.SEEK_FIRST_SYNC

    def bytes_wanted(self) -> int:
        """Number of bytes that complete the current parse step."""
        if self.state is DecoderState.READ_HEADER_AND_PAYLOAD:
            return self._expected - len(self._buffer)
        return 1

    def reset(self):
        """Drop any partial frame and go back to sync-seek."""
        self.state = DecoderState.SEEK_FIRST_SYNC
        self._buffer.clear()
        self._expected = HEADER_SIZE

    def abort(self):
        """Abort the frame in progress, if any."""
        if self.in_frame:
            self.stats.aborts += 1
        self.reset()

    def feed(self, data: bytes) -> List[Sample]:
        """
        Consume a chunk of bytes.

        Args:
            data: Any number of bytes from the stream

        Returns:
            Samples of every frame completed by this chunk, in stream order
        """
        samples = []
        i = 0
        size = len(data)

        while i < size:
            if self.state is DecoderState.SEEK_FIRST_SYNC:
                if data[i] == SYNC_BYTE_1:
                    self.state = DecoderState.SEEK_SECOND_SYNC
                i += 1

            elif self.state is DecoderState.SEEK_SECOND_SYNC:
                byte = data[i]
                i += 1
                if byte == SYNC_BYTE_2:
                    self.state = DecoderState.READ_HEADER_AND_PAYLOAD
                    self._buffer.clear()
                    self._expected = HEADER_SIZE
                else:
                    self.stats.resyncs += 1
                    # The mismatching byte may itself start the next frame
                    if byte != SYNC_BYTE_1:
                        self.state = DecoderState.SEEK_FIRST_SYNC

            else:
                take = min(self._expected - len(self._buffer), size - i)
                self._buffer.extend(data[i:i + take])
                i += take

                if len(self._buffer) < self._expected:
                    continue

                if self._expected == HEADER_SIZE:
                    lsn = self._buffer[1]
                    if lsn == 0:
                        self.abort()
                        continue
                    self._expected = HEADER_SIZE + payload_size(lsn)
                    continue

                samples.extend(self._emit())

        return samples

    def _emit(self) -> List[Sample]:
        lsn = self._buffer[1]
        try:
            samples, rejected = decode_samples(
                lsn, bytes(self._buffer[HEADER_SIZE:]), self.distance_scale, self.max_distance
            )
        except FrameAbortError:
            self.abort()
            return []

        self.stats.frames += 1
        self.stats.samples += len(samples)
        self.stats.rejected += rejected
        self.reset()
        return samples
