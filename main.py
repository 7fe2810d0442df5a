"""
Mars Quake Viewer - Main Application
Entry point for the interactive InSight marsquake visualization, plus
headless replay and chart export modes
"""
import sys
import argparse
import json
from pathlib import Path
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any, List

from logging_config import setup_logging, get_logger
from planet_geometry import INSIGHT_LATITUDE, INSIGHT_LONGITUDE
from quake_engine import QuakeParameters, QuakeReplay, QuakeEpisode
from seismic_data import SeismicSeries, load_seismic_series, format_timestamp
from strip_chart import StripChartExporter

logger = get_logger("main")

DEFAULT_DATA_FILE = "XB.ELYSE.02.BHV.2022-01-02HR04_evid0006.csv"
DEFAULT_MODEL_FILE = "24881_Mars_1_6792.gltf"


@dataclass
class ViewerConfig:
    """Complete viewer configuration"""
    # Assets
    data_path: str = DEFAULT_DATA_FILE
    model_path: Optional[str] = DEFAULT_MODEL_FILE

    # Quake trigger
    threshold: float = 100.0
    intensity_scale: float = 1000.0
    wave_rate: float = 2.0  # rad/s
    jitter_amplitude: float = 0.01

    # Epicenter (InSight landing site)
    insight_latitude: float = INSIGHT_LATITUDE
    insight_longitude: float = INSIGHT_LONGITUDE
    marker_radius: float = 1.025
    marker_size: float = 0.02

    # Shells
    atmosphere_radius: float = 1.02
    atmosphere_opacity: float = 0.1
    effect_radius: float = 1.025
    effect_segments: int = 128

    # Visualization
    window_size: tuple = (1920, 1080)
    camera_distance: float = 5.0
    camera_fov: float = 75.0  # vertical, degrees
    camera_damping: float = 0.05  # per-frame orbit blend at 60 fps
    chart_height: float = 0.15
    chart_max_points: int = 4000
    auto_rotate: bool = False
    rotation_time_scale: float = 1.0

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def quake_parameters(self) -> QuakeParameters:
        return QuakeParameters(
            threshold=self.threshold,
            intensity_scale=self.intensity_scale,
            wave_rate=self.wave_rate,
            jitter_amplitude=self.jitter_amplitude
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        data = asdict(self)
        data['window_size'] = list(self.window_size)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ViewerConfig':
        """Create from dictionary"""
        data = dict(data)
        if 'window_size' in data:
            data['window_size'] = tuple(data['window_size'])
        return cls(**data)

    @classmethod
    def from_json(cls, path: str) -> 'ViewerConfig':
        """Load from JSON file"""
        with open(path, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)

    def to_json(self, path: str):
        """Save to JSON file"""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


class MarsQuakeApp:
    """Main application orchestrator"""

    def __init__(self, config: ViewerConfig):
        self.config = config
        self.series: Optional[SeismicSeries] = None

        print("=" * 70)
        print("MARS QUAKE VIEWER")
        print("InSight SEIS velocity data on a 3D Mars")
        print("=" * 70)
        print()

    def initialize(self):
        """Load the seismic trace"""
        print(f"  ✓ Loading seismic data: {self.config.data_path}")
        self.series = load_seismic_series(self.config.data_path)

        print()
        print("Initialization complete!")
        print(f"  • Samples: {len(self.series):,}")
        print(f"  • Time span: {format_timestamp(self.series.min_time)} - "
              f"{format_timestamp(self.series.max_time)}")
        print(f"  • Peak |velocity|: {self.series.max_abs_velocity:.2f}")
        print(f"  • Quake threshold: {self.config.threshold:.2f}")
        print()

    def run_visualization(self):
        """Launch 3D visualization"""
        print("Launching 3D visualization...")
        print()
        print("Controls:")
        print("  • Slider: scrub through the trace")
        print("  • LEFT/RIGHT: step one sample")
        print("  • R: back to first sample")
        print("  • Right mouse: rotate view")
        print("  • Scroll: zoom")
        print()
        print("Starting Ursina engine...")
        print("=" * 70)
        print()

        # Deferred so headless modes do not need a display
        from visualization_engine import MarsQuakeVisualization

        visualization = MarsQuakeVisualization(self.series, self.config)
        visualization.run()

    def run_replay(self, output: Optional[str] = None) -> List[QuakeEpisode]:
        """Run the quake trigger over the whole trace (headless)"""
        print("Replaying trace through the quake trigger (headless mode)...")
        episodes = QuakeReplay(self.series, self.config.quake_parameters()).run()

        print()
        print(f"Quake episodes: {len(episodes)}")
        for n, episode in enumerate(episodes, 1):
            print(f"  {n:3d}. samples {episode.start_index}-{episode.end_index - 1} "
                  f"({episode.start_time} -> {episode.end_time}) "
                  f"peak {episode.peak_velocity:.2f}, intensity {episode.entry_intensity:.3f}")

        if output:
            output_path = Path(output)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, 'w') as f:
                json.dump({
                    'source': self.series.source,
                    'threshold': self.config.threshold,
                    'intensity_scale': self.config.intensity_scale,
                    'samples': len(self.series),
                    'episodes': [e.to_dict() for e in episodes],
                }, f, indent=2)
            print()
            print(f"Episodes written to: {output_path}")

        return episodes

    def export_chart(self, path: str, cursor_index: Optional[int] = None) -> Path:
        """Write the strip chart to an image"""
        written = StripChartExporter(self.series).save(path, cursor_index=cursor_index)
        print(f"Strip chart saved to: {written}")
        return written


def parse_arguments(argv: Optional[List[str]] = None):
    """Parse command-line arguments"""
    parser = argparse.ArgumentParser(
        description="Mars Quake Viewer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Interactive viewer with the bundled trace and model
  python main.py

  # Custom trace and trigger threshold
  python main.py --data trace.csv --threshold 250

  # Headless replay, episodes as JSON
  python main.py --replay --output ./results/episodes.json

  # Export the strip chart with the cursor on sample 1200
  python main.py --export-chart chart.png --cursor 1200

  # Load configuration from file
  python main.py --config viewer.json
        """
    )

    parser.add_argument('--config', type=str, help='Load configuration from JSON file')

    # Assets
    parser.add_argument('--data', type=str, help='Seismic CSV (time_abs, time_rel, velocity)')
    parser.add_argument('--model', type=str, help='Mars glTF model')

    # Quake trigger
    parser.add_argument('--threshold', type=float, help='Quake trigger |velocity| threshold')
    parser.add_argument('--intensity-scale', type=float,
                        help='|velocity| that maps to full quake intensity')

    # Modes
    parser.add_argument('--replay', action='store_true', help='Replay trace headless and list quakes')
    parser.add_argument('--output', type=str, help='JSON output for --replay')
    parser.add_argument('--export-chart', type=str, metavar='PATH', help='Write strip chart PNG and exit')
    parser.add_argument('--cursor', type=int, help='Cursor sample index for --export-chart')

    # Visualization
    parser.add_argument('--window-size', type=int, nargs=2, help='Window size (width height)')
    parser.add_argument('--auto-rotate', action='store_true', help='Spin the planet at sol rate')

    # Logging
    parser.add_argument('--log-level', type=str,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'], help='Logging level')
    parser.add_argument('--log-file', type=str, help='Also write logs to this file')

    return parser.parse_args(argv)


def build_config(args) -> ViewerConfig:
    """Configuration from file (if any) with command-line overrides on top"""
    if args.config:
        config = ViewerConfig.from_json(args.config)
        print(f"Loaded configuration from: {args.config}")
    else:
        config = ViewerConfig()

    overrides = {
        'data_path': args.data,
        'model_path': args.model,
        'threshold': args.threshold,
        'intensity_scale': args.intensity_scale,
        'window_size': tuple(args.window_size) if args.window_size else None,
        'log_level': args.log_level,
        'log_file': args.log_file,
    }
    for key, value in overrides.items():
        if value is not None:
            setattr(config, key, value)
    if args.auto_rotate:
        config.auto_rotate = True

    # Revalidate trigger settings after overrides
    config.quake_parameters()
    return config


def main(argv: Optional[List[str]] = None):
    """Main entry point"""
    args = parse_arguments(argv)

    try:
        config = build_config(args)
        setup_logging(config.log_level, config.log_file)

        app = MarsQuakeApp(config)
        app.initialize()

        if args.export_chart:
            app.export_chart(args.export_chart, cursor_index=args.cursor)
        elif args.replay:
            app.run_replay(output=args.output)
        else:
            app.run_visualization()

    except KeyboardInterrupt:
        print("\n\nViewer interrupted by user.")
    except Exception as e:
        print(f"\n\nError: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
