"""
Marsquake Trigger Engine
Two-state machine (quiescent/active) driven by velocity threshold crossings,
producing the per-frame intensity curve consumed by the effect shader
"""
import time
from collections import deque
import numpy as np
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, List, Optional, Tuple

from logging_config import get_logger
from seismic_data import SeismicSeries, format_timestamp

logger = get_logger("quake_engine")

DEFAULT_THRESHOLD = 100.0
DEFAULT_INTENSITY_SCALE = 1000.0
DEFAULT_WAVE_RATE = 2.0  # rad/s, 0.002 per millisecond
DEFAULT_JITTER_AMPLITUDE = 0.01
EVENT_HISTORY = 256


class QuakeState(Enum):
    QUIESCENT = 1
    ACTIVE = 2


@dataclass
class QuakeParameters:
    """Trigger and effect tuning"""
    threshold: float = DEFAULT_THRESHOLD
    intensity_scale: float = DEFAULT_INTENSITY_SCALE  # |v| mapped to intensity 1.0
    wave_rate: float = DEFAULT_WAVE_RATE
    jitter_amplitude: float = DEFAULT_JITTER_AMPLITUDE  # planet shake, model units

    def __post_init__(self):
        if self.threshold <= 0:
            raise ValueError("threshold must be positive")
        if self.intensity_scale <= 0:
            raise ValueError("intensity_scale must be positive")
        if self.jitter_amplitude < 0:
            raise ValueError("jitter_amplitude must not be negative")

    def exceeds(self, velocity: float) -> bool:
        return abs(velocity) > self.threshold

    def entry_intensity(self, velocity: float) -> float:
        return min(abs(velocity) / self.intensity_scale, 1.0)


@dataclass
class QuakeFrame:
    """Everything the renderer needs for one frame"""
    active: bool = False
    intensity: float = 0.0
    shader_time: float = 0.0
    offset: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    message: str = ""


@dataclass
class QuakeEvent:
    """State transition record"""
    state: QuakeState
    velocity: float
    timestamp: float


class QuakeStateMachine:
    """
    Quiescent -> Active when |velocity| exceeds the threshold.

    Entering Active starts the timed curve f(t) = sin(t*k)*0.5 + 0.5;
    dropping back below the threshold restores the baseline frame.
    """

    def __init__(self, params: Optional[QuakeParameters] = None,
                 clock: Callable[[], float] = time.monotonic,
                 rng: Optional[np.random.Generator] = None):
        self.params = params or QuakeParameters()
        self.clock = clock
        self.rng = rng if rng is not None else np.random.default_rng()

        self.state = QuakeState.QUIESCENT
        self.start_time = 0.0
        self.frame = QuakeFrame()
        self.events: Deque[QuakeEvent] = deque(maxlen=EVENT_HISTORY)
        self.listeners: List[Callable[[QuakeEvent], None]] = []

    @property
    def active(self) -> bool:
        return self.state is QuakeState.ACTIVE

    def check(self, velocity: float) -> Optional[QuakeEvent]:
        """Feed one sample velocity; returns the transition it caused, if any"""
        if self.params.exceeds(velocity):
            if not self.active:
                return self._start(velocity)
            return None
        return self._stop(velocity)

    def _start(self, velocity: float) -> QuakeEvent:
        self.state = QuakeState.ACTIVE
        self.start_time = self.clock()
        self.frame = QuakeFrame(
            active=True,
            intensity=self.params.entry_intensity(velocity),
            shader_time=0.0,
            message=f"Marsquake! Magnitude: {velocity:.2f}"
        )
        logger.info("Quake started (velocity %.2f, intensity %.3f)",
                    velocity, self.frame.intensity)
        return self._emit(QuakeState.ACTIVE, velocity)

    def _stop(self, velocity: float) -> Optional[QuakeEvent]:
        if not self.active:
            return None
        self.state = QuakeState.QUIESCENT
        self.frame = QuakeFrame()
        logger.info("Quake ended (velocity %.2f)", velocity)
        return self._emit(QuakeState.QUIESCENT, velocity)

    def _emit(self, state: QuakeState, velocity: float) -> QuakeEvent:
        event = QuakeEvent(state=state, velocity=velocity, timestamp=self.clock())
        self.events.append(event)
        for listener in self.listeners:
            listener(event)
        return event

    def intensity_at(self, elapsed: float) -> float:
        return float(np.sin(elapsed * self.params.wave_rate) * 0.5 + 0.5)

    def update(self) -> QuakeFrame:
        """Advance the active quake curve; baseline frame while quiescent"""
        if not self.active:
            return self.frame

        elapsed = self.clock() - self.start_time
        intensity = self.intensity_at(elapsed)
        jitter = self.rng.random(3) * intensity * self.params.jitter_amplitude

        self.frame = QuakeFrame(
            active=True,
            intensity=min(intensity, 1.0),
            shader_time=elapsed * self.params.wave_rate,
            offset=(float(jitter[0]), float(jitter[1]), float(jitter[2])),
            message=self.frame.message
        )
        return self.frame

    def reset(self):
        """Force the baseline state without recording a transition"""
        self.state = QuakeState.QUIESCENT
        self.start_time = 0.0
        self.frame = QuakeFrame()


@dataclass
class QuakeEpisode:
    """Contiguous run of above-threshold samples"""
    start_index: int
    end_index: int  # exclusive
    start_time: str
    end_time: str
    peak_velocity: float
    entry_intensity: float

    @property
    def sample_count(self) -> int:
        return self.end_index - self.start_index

    def to_dict(self) -> dict:
        return {
            'start_index': self.start_index,
            'end_index': self.end_index,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'peak_velocity': self.peak_velocity,
            'entry_intensity': self.entry_intensity,
            'sample_count': self.sample_count,
        }


class QuakeReplay:
    """Scrub a whole series forward through the state machine"""

    def __init__(self, series: SeismicSeries, params: Optional[QuakeParameters] = None):
        self.series = series
        self.params = params or QuakeParameters()

    def run(self) -> List[QuakeEpisode]:
        machine = QuakeStateMachine(self.params, clock=lambda: 0.0)
        episodes: List[QuakeEpisode] = []
        current: Optional[QuakeEpisode] = None

        for index, velocity in enumerate(self.series.velocities):
            event = machine.check(float(velocity))

            if event is not None and event.state is QuakeState.ACTIVE:
                current = QuakeEpisode(
                    start_index=index,
                    end_index=index + 1,
                    start_time=format_timestamp(self.series.times[index]),
                    end_time=format_timestamp(self.series.times[index]),
                    peak_velocity=float(velocity),
                    entry_intensity=machine.frame.intensity
                )
            elif event is not None and event.state is QuakeState.QUIESCENT:
                episodes.append(current)
                current = None

            if current is not None and machine.active:
                current.end_index = index + 1
                current.end_time = format_timestamp(self.series.times[index])
                if abs(velocity) > abs(current.peak_velocity):
                    current.peak_velocity = float(velocity)

        if current is not None:
            episodes.append(current)

        logger.info("Replay found %d quake episodes in %d samples",
                    len(episodes), len(self.series))
        return episodes
