"""
Seismic Strip Chart
Polyline layout for the velocity trace with a scrub cursor, shared by the
in-viewer overlay and the PNG exporter
"""
import numpy as np
from pathlib import Path
from typing import Optional, Sequence, Tuple, Union
from matplotlib.figure import Figure

from logging_config import get_logger
from seismic_data import SeismicSeries

logger = get_logger("strip_chart")

TRACE_COLOR = 'red'
CURSOR_COLOR = 'white'
LINE_WIDTH = 2


def polyline_points(velocities: Sequence[float], width: float,
                    height: float) -> np.ndarray:
    """
    Map samples to chart coordinates, y growing downwards from the top edge.

    The trace is scaled so the largest |velocity| touches the top or
    bottom edge; an all-zero trace lies on the mid-line.
    """
    v = np.asarray(velocities, dtype=np.float64)
    n = len(v)
    if n == 0:
        return np.zeros((0, 2))

    if n == 1:
        x = np.zeros(1)
    else:
        x = np.arange(n) / (n - 1) * width

    max_velocity = np.max(np.abs(v))
    half = height / 2
    if max_velocity > 0:
        y = half - (v / max_velocity) * half
    else:
        y = np.full(n, half)

    return np.column_stack([x, y])


def cursor_x(index: int, count: int, width: float) -> float:
    """Horizontal position of the scrub cursor for a sample index"""
    if count <= 1:
        return 0.0
    index = min(max(index, 0), count - 1)
    return index / (count - 1) * width


def decimate_envelope(values: Sequence[float], max_points: int) -> np.ndarray:
    """
    Indices of a min/max envelope with at most `max_points` entries.

    Every bucket keeps its lowest and highest sample so spikes survive.
    """
    v = np.asarray(values)
    n = len(v)
    if max_points < 2:
        raise ValueError("max_points must be at least 2")
    if n <= max_points:
        return np.arange(n)

    buckets = max_points // 2
    edges = np.linspace(0, n, buckets + 1).astype(np.int64)
    keep = []
    for lo, hi in zip(edges[:-1], edges[1:]):
        if hi <= lo:
            continue
        chunk = v[lo:hi]
        keep.append(lo + int(np.argmin(chunk)))
        keep.append(lo + int(np.argmax(chunk)))

    return np.unique(np.array(keep, dtype=np.int64))


def chart_layout(series: SeismicSeries, width: float, height: float,
                 max_points: Optional[int] = None) -> np.ndarray:
    """Polyline for a series, decimated when it is longer than max_points"""
    points = polyline_points(series.velocities, width, height)
    if max_points is not None and len(points) > max_points:
        points = points[decimate_envelope(series.velocities, max_points)]
    return points


class StripChartExporter:
    """Render the trace and cursor to an image file with matplotlib"""

    def __init__(self, series: SeismicSeries, size: Tuple[float, float] = (12.0, 2.0),
                 dpi: int = 100):
        self.series = series
        self.size = size
        self.dpi = dpi

    def render(self, cursor_index: Optional[int] = None) -> Figure:
        width_px = self.size[0] * self.dpi
        height_px = self.size[1] * self.dpi
        points = polyline_points(self.series.velocities, width_px, height_px)

        fig = Figure(figsize=self.size, dpi=self.dpi, facecolor='black')
        ax = fig.add_axes([0, 0, 1, 1])
        ax.set_facecolor('black')
        ax.plot(points[:, 0], points[:, 1], color=TRACE_COLOR, linewidth=LINE_WIDTH)

        if cursor_index is not None:
            x = cursor_x(cursor_index, len(self.series), width_px)
            ax.axvline(x, color=CURSOR_COLOR, linewidth=LINE_WIDTH)

        ax.set_xlim(0, width_px)
        ax.set_ylim(height_px, 0)
        ax.axis('off')
        return fig

    def save(self, path: Union[str, Path], cursor_index: Optional[int] = None) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        fig = self.render(cursor_index)
        fig.savefig(path, facecolor=fig.get_facecolor())
        logger.info("Strip chart written to %s", path)
        return path


def clamp_index(index: int, count: int) -> int:
    """Nearest valid sample index"""
    if count <= 0:
        raise ValueError("series is empty")
    return min(max(int(index), 0), count - 1)


def slider_range(count: int) -> Tuple[int, int]:
    """Scrubber bounds; a single sample still gets a non-empty range"""
    if count <= 0:
        raise ValueError("series is empty")
    return 0, max(count - 1, 1)
