#!/usr/bin/env python3
"""
Main entry point for the lidar SLAM front end.
Runs the serial stream reader and drives the SLAM engine at a fixed rate.
"""

import signal
import sys
import time
from pathlib import Path

# Add src to path for running from a checkout
sys.path.insert(0, str(Path(__file__).parent / "src"))

from lidar_slam.sensor.sample_channel import SampleChannel
from lidar_slam.sensor.stream_reader import StreamReader
from lidar_slam.slam.slam_engine import SLAMEngine
from lidar_slam.utils.config import load_config
from lidar_slam.utils.errors import ConfigError, SourceUnavailableError
from lidar_slam.utils.logger import setup_logger


class LidarSlam:
    """Wires the stream reader to the SLAM engine."""

    def __init__(self, config_dir=None):
        """
        Initialize pipeline.

        Args:
            config_dir: Path to configuration directory
        """
        if config_dir is None:
            config_dir = Path(__file__).parent / "config"

        self.config = load_config(config_dir)

        logging_config = self.config.get('logging', {})
        self.logger = setup_logger(
            "lidar_slam",
            log_file=logging_config.get('log_file'),
            level=logging_config.get('level', 'INFO')
        )

        self.logger.info("Initializing lidar SLAM...")
        slam_config = self.config.get('slam', {})
        self.process_rate = float(slam_config.get('process_rate', 10))
        if self.process_rate <= 0:
            raise ConfigError(f"'process_rate' must be positive, got {self.process_rate}")

        self.channel = SampleChannel()
        self.slam = SLAMEngine(channel=self.channel, config=slam_config)
        self.reader = StreamReader.from_config(
            self.channel,
            config=self.config.get('lidar', {}),
            error_callback=self._on_stream_error
        )

        self.running = False
        self.stream_errors = 0

        signal.signal(signal.SIGINT, self.signal_handler)
        signal.signal(signal.SIGTERM, self.signal_handler)

    def signal_handler(self, signum, frame):
        """Handle shutdown signals."""
        self.logger.info("Received shutdown signal, stopping...")
        self.running = False

    def _on_stream_error(self, error):
        self.stream_errors += 1

    def start(self):
        """Start the reader and run the processing loop."""
        self.logger.info("Starting lidar SLAM...")
        try:
            self.reader.start()
        except SourceUnavailableError as e:
            self.logger.error(f"Lidar unavailable: {e}")
            return False

        self.running = True
        try:
            self.run()
        finally:
            self.stop()
        return True

    def stop(self):
        """Stop the pipeline."""
        self.running = False
        self.reader.stop()
        stats = self.slam.grid.statistics()
        self.logger.info(
            f"Stopped after {self.slam.batch_count} batches; "
            f"map free={stats['free']} occupied={stats['occupied']} unknown={stats['unknown']}"
        )

    def run(self):
        """Processing loop."""
        period = 1.0 / self.process_rate
        last_report = time.time()

        while self.running:
            started = time.time()
            pose = self.slam.process()

            if started - last_report >= 1.0:
                decoder_stats = self.reader.decoder.stats
                self.logger.info(
                    f"Pose: x={pose.x:.2f}, y={pose.y:.2f}, theta={pose.theta:.2f} | "
                    f"frames={decoder_stats.frames} resyncs={decoder_stats.resyncs} "
                    f"aborts={decoder_stats.aborts} stream_errors={self.stream_errors}"
                )
                last_report = started

            if not self.reader.running and self.reader.last_error is not None:
                self.logger.error(f"Stream reader gave up: {self.reader.last_error}")
                break

            time.sleep(max(0.0, period - (time.time() - started)))


def main():
    """Main entry point."""
    try:
        pipeline = LidarSlam()
    except ConfigError as e:
        print(f"[ERROR] Invalid configuration: {e}")
        return 1
    return 0 if pipeline.start() else 1


if __name__ == "__main__":
    sys.exit(main())
