"""
InSight Seismic Time Series
Loads SEIS velocity traces exported as CSV (time_abs, time_rel, velocity)
"""
import numpy as np
import pandas as pd
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Union

from logging_config import get_logger

logger = get_logger("seismic_data")

COLUMNS = ('time', 'rel_time', 'velocity')


class SeismicDataError(RuntimeError):
    """Raised when a seismic trace cannot be loaded"""


@dataclass(frozen=True)
class Sample:
    """One point of the velocity trace"""
    time: pd.Timestamp  # UTC, NaT when the source timestamp is unreadable
    rel_time: float  # seconds from trace start
    velocity: float  # as recorded by the instrument


class SeismicSeries:
    """Ordered velocity samples of a single channel"""

    def __init__(self, times: pd.DatetimeIndex, rel_times: np.ndarray,
                 velocities: np.ndarray, source: Optional[str] = None):
        if not (len(times) == len(rel_times) == len(velocities)):
            raise ValueError("times, rel_times and velocities must have equal length")
        self.times = times
        self.rel_times = np.asarray(rel_times, dtype=np.float64)
        self.velocities = np.asarray(velocities, dtype=np.float64)
        self.source = source

    def __len__(self) -> int:
        return len(self.velocities)

    def __getitem__(self, index: int) -> Sample:
        if index < 0:
            index += len(self)
        if not 0 <= index < len(self):
            raise IndexError(f"sample index {index} out of range")
        return Sample(
            time=self.times[index],
            rel_time=float(self.rel_times[index]),
            velocity=float(self.velocities[index])
        )

    def __iter__(self) -> Iterator[Sample]:
        for i in range(len(self)):
            yield self[i]

    @property
    def min_time(self) -> Optional[pd.Timestamp]:
        value = self.times.min()
        return None if pd.isna(value) else value

    @property
    def max_time(self) -> Optional[pd.Timestamp]:
        value = self.times.max()
        return None if pd.isna(value) else value

    @property
    def max_abs_velocity(self) -> float:
        if len(self) == 0:
            return 0.0
        return float(np.max(np.abs(self.velocities)))

    def time_label(self, index: int) -> str:
        """Slider caption, ISO-8601 UTC with millisecond precision"""
        return f"Time: {format_timestamp(self[index].time)}"

    @classmethod
    def from_csv(cls, path: Union[str, Path]) -> 'SeismicSeries':
        """Parse a trace; rows without numeric rel_time/velocity are dropped"""
        path = Path(path)
        if not path.exists():
            raise SeismicDataError(f"Seismic data file not found: {path}")

        try:
            frame = pd.read_csv(
                path,
                header=0,
                usecols=[0, 1, 2],
                names=list(COLUMNS),
                dtype=str,
                skip_blank_lines=True,
                encoding_errors='replace'
            )
        except (OSError, ValueError) as exc:
            raise SeismicDataError(f"Could not read seismic data {path}: {exc}") from exc

        rel_times = pd.to_numeric(frame['rel_time'].str.strip(), errors='coerce')
        velocities = pd.to_numeric(frame['velocity'].str.strip(), errors='coerce')
        valid = np.isfinite(rel_times.to_numpy(dtype=np.float64)) & \
            np.isfinite(velocities.to_numpy(dtype=np.float64))

        dropped = int((~valid).sum())
        if dropped:
            logger.debug("Dropped %d malformed rows from %s", dropped, path.name)

        frame = frame[valid]
        if frame.empty:
            raise SeismicDataError(f"No valid seismic samples in {path}")

        times = pd.DatetimeIndex(pd.to_datetime(
            frame['time'].str.strip(), errors='coerce', utc=True, format='ISO8601'
        ))

        series = cls(
            times=times,
            rel_times=rel_times[valid].to_numpy(dtype=np.float64),
            velocities=velocities[valid].to_numpy(dtype=np.float64),
            source=str(path)
        )
        logger.info("Loaded %d samples from %s", len(series), path.name)
        return series


def format_timestamp(value: pd.Timestamp) -> str:
    if pd.isna(value):
        return "n/a"
    value = pd.Timestamp(value)
    if value.tzinfo is not None:
        value = value.tz_convert('UTC')
    return value.strftime('%Y-%m-%dT%H:%M:%S') + f".{value.microsecond // 1000:03d}Z"


def load_seismic_series(path: Union[str, Path]) -> SeismicSeries:
    return SeismicSeries.from_csv(path)
