import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional, Sequence

import gpxpy
import gpxpy.gpx

from ..geo.distance import Coordinate

logger = logging.getLogger(__name__)

PositionCallback = Callable[[Coordinate], None]
ErrorCallback = Callable[[Exception], None]


class PositionUnavailable(Exception):
    """Raised or reported when a position source cannot deliver positions."""


class PositionSource(ABC):
    """Delivers coordinates to a consumer while tracking is desired."""

    @abstractmethod
    def start(self, on_position: PositionCallback, on_error: ErrorCallback) -> None:
        """Begin delivering positions."""

    @abstractmethod
    def stop(self) -> None:
        """Stop delivering positions. Safe to call when already stopped."""

    @abstractmethod
    def is_running(self) -> bool:
        """Check if the source is currently delivering."""


class ReplayPositionSource(PositionSource):
    """Threaded playback of a recorded track, one point per interval."""

    def __init__(self, coordinates: Sequence[Coordinate], interval: float = 1.0):
        self.coordinates = list(coordinates)
        self.interval = interval

        self._index = 0
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()

    @property
    def position_index(self) -> int:
        """Index of the next point to deliver."""
        with self._lock:
            return self._index

    def start(self, on_position: PositionCallback, on_error: ErrorCallback) -> None:
        """Start the replay thread."""
        if self.is_running():
            return

        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._replay_loop,
            args=(self._stop_event, on_position, on_error),
            daemon=True,
        )
        self._thread.start()
        logger.info(
            f"Started position replay at point {self.position_index}/{len(self.coordinates)}"
        )

    def stop(self) -> None:
        """Stop the replay thread."""
        self._stop_event.set()
        thread = self._thread
        if thread and thread is not threading.current_thread():
            thread.join(timeout=5)
        self._thread = None
        logger.info("Stopped position replay")

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def rewind(self) -> None:
        """Restart playback from the first point on the next start."""
        with self._lock:
            self._index = 0

    def _next_coordinate(self) -> Optional[Coordinate]:
        with self._lock:
            if self._index >= len(self.coordinates):
                return None
            coordinate = self.coordinates[self._index]
            self._index += 1
            return coordinate

    def _replay_loop(
        self,
        stop_event: threading.Event,
        on_position: PositionCallback,
        on_error: ErrorCallback,
    ) -> None:
        """Main replay loop running in separate thread."""
        while not stop_event.is_set():
            coordinate = self._next_coordinate()
            if coordinate is None:
                on_error(PositionUnavailable("Replay track exhausted"))
                break

            try:
                on_position(coordinate)
            except Exception as e:
                logger.error(f"Position callback failed: {e}")

            # Sleep in an interruptible manner
            stop_event.wait(self.interval)


def load_gpx_track(path: str | Path) -> list[Coordinate]:
    """
    Read every track, route and waypoint position from a GPX file.

    Args:
        path: Location of the GPX file

    Returns:
        Coordinates in file order

    Raises:
        PositionUnavailable: If the file is missing, invalid or has no points
    """
    gpx_path = Path(path)
    if not gpx_path.exists():
        raise PositionUnavailable(f"GPX file not found: {gpx_path}")

    try:
        with open(gpx_path, encoding="utf-8") as gpx_file:
            gpx = gpxpy.parse(gpx_file)
    except gpxpy.gpx.GPXException as e:
        raise PositionUnavailable(f"Invalid GPX file {gpx_path}: {e}") from e

    coordinates = [
        Coordinate(latitude=point.latitude, longitude=point.longitude)
        for point, *_ in gpx.walk()
    ]
    if not coordinates:
        coordinates = [
            Coordinate(latitude=point.latitude, longitude=point.longitude)
            for route in gpx.routes
            for point in route.points
        ]
    if not coordinates:
        coordinates = [
            Coordinate(latitude=point.latitude, longitude=point.longitude)
            for point in gpx.waypoints
        ]

    if not coordinates:
        raise PositionUnavailable(f"No positions in GPX file {gpx_path}")

    logger.info(f"Loaded {len(coordinates)} positions from {gpx_path}")
    return coordinates
