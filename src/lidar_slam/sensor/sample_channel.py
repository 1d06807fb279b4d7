"""
Hand-off queue between the stream reader thread and the SLAM consumer.
"""

import queue
from typing import Iterable, List

from ..utils.data_structures import Sample


class SampleChannel:
    """FIFO of samples; pushes never block, drains never wait."""

    def __init__(self):
        self._queue = queue.Queue()

    def push(self, sample: Sample):
        """Queue one sample."""
        self._queue.put_nowait(sample)

    def push_many(self, samples: Iterable[Sample]):
        """Queue samples in order."""
        for sample in samples:
            self._queue.put_nowait(sample)

    def drain_up_to(self, limit: int) -> List[Sample]:
        """
        Remove and return up to ``limit`` samples in arrival order.

        Args:
            limit: Maximum number of samples to return

        Returns:
            List of samples, empty if nothing is queued
        """
        samples = []
        while len(samples) < limit:
            try:
                samples.append(self._queue.get_nowait())
            except queue.Empty:
                break
        return samples

    def clear(self):
        """Discard everything queued."""
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return

    def __len__(self):
        return self._queue.qsize()
