"""
Sensor module: serial byte sources, frame decoding and the sample hand-off.
"""

from .frame_decoder import FrameDecoder, DecoderState
from .sample_channel import SampleChannel
from .byte_source import ByteSource, SerialByteSource, FileByteSource, find_lidar_port
from .stream_reader import StreamReader

__all__ = [
    'FrameDecoder', 'DecoderState', 'SampleChannel', 'ByteSource',
    'SerialByteSource', 'FileByteSource', 'find_lidar_port', 'StreamReader',
]
