"""
Ursina 3D Mars Visualization Engine
Planet model, InSight marker, shader-driven marsquake shell and a
slider-synchronized seismic strip chart
"""
from ursina import *
from panda3d.core import Filename, TransparencyAttrib
import time

from logging_config import get_logger
from planet_geometry import (
    generate_sphere_mesh, lat_lon_to_cartesian, fit_to_bounds,
    site_facing_rotation, sol_rotation_speed, horizontal_fov, damping_rate,
    load_model_asset, ModelLoadError
)
from quake_engine import QuakeStateMachine, QuakeParameters, QuakeFrame
from seismic_data import SeismicSeries
from strip_chart import chart_layout, clamp_index, cursor_x, slider_range

logger = get_logger("visualization")

MODEL_LOADED_TEXT = "Model loaded. Use the slider to control time."
MODEL_ERROR_TEXT = "Model load error. Check console."


QUAKE_VERTEX_SHADER = """
#version 330

uniform mat4 p3d_ModelViewProjectionMatrix;
uniform mat4 p3d_ModelMatrix;

in vec4 p3d_Vertex;
in vec3 p3d_Normal;

uniform vec3 epicenter;
uniform float quake_intensity;
uniform float time;

out float intensity;

void main() {
    // Distance on the unit sphere, measured in world space
    vec4 world_position = p3d_ModelMatrix * p3d_Vertex;
    float d = distance(normalize(world_position.xyz), normalize(epicenter));

    float wave = sin(d * 20.0 - time * 10.0) * 0.5 + 0.5;
    intensity = (1.0 - d) * quake_intensity * wave;

    vec3 displaced = p3d_Vertex.xyz + p3d_Normal * intensity * 0.05;
    gl_Position = p3d_ModelViewProjectionMatrix * vec4(displaced, 1.0);
}
"""

QUAKE_FRAGMENT_SHADER = """
#version 330

in float intensity;
out vec4 fragColor;

void main() {
    vec3 color = mix(vec3(1.0, 1.0, 0.0), vec3(1.0, 0.0, 0.0), intensity);
    fragColor = vec4(color, intensity * 0.7);
}
"""


def _mesh_from_sphere(radius: float, segments: int) -> Mesh:
    sphere = generate_sphere_mesh(radius=radius, segments=segments, rings=segments)
    return Mesh(
        vertices=sphere.vertices.tolist(),
        triangles=sphere.triangles(),
        normals=sphere.normals.tolist(),
        uvs=sphere.uvs.tolist()
    )


class QuakeEffectEntity(Entity):
    """Translucent shell deformed around the epicenter while a quake is active"""

    def __init__(self, radius: float = 1.025, segments: int = 128, **kwargs):
        super().__init__()

        self.model = _mesh_from_sphere(radius, segments)
        self.shader = Shader(
            language=Shader.GLSL,
            vertex=QUAKE_VERTEX_SHADER,
            fragment=QUAKE_FRAGMENT_SHADER,
            default_input={
                'epicenter': Vec3(0, 0, 0),
                'quake_intensity': 0.0,
                'time': 0.0,
            }
        )
        self.double_sided = True
        self.setTransparency(TransparencyAttrib.MAlpha)
        self.visible = False
        self.set_shader_params(Vec3(0, 0, 0), 0.0, 0.0)

        for key, value in kwargs.items():
            setattr(self, key, value)

    def set_shader_params(self, epicenter, intensity: float, shader_time: float):
        self.set_shader_input('epicenter', Vec3(*epicenter))
        self.set_shader_input('quake_intensity', float(intensity))
        self.set_shader_input('time', float(shader_time))

    def apply_frame(self, frame: QuakeFrame, epicenter):
        self.visible = frame.active
        self.set_shader_params(epicenter, frame.intensity, frame.shader_time)


class SeismicChartOverlay(Entity):
    """Strip chart drawn as line meshes in the UI layer"""

    def __init__(self, series: SeismicSeries, height: float = 0.15,
                 margin: float = 0.02, max_points: int = 4000, **kwargs):
        super().__init__(parent=camera.ui)
        self.series = series
        self.chart_height = height
        self.margin = margin
        self.max_points = max_points
        self.cursor_index = 0
        self._aspect_ratio = None

        self.trace = Entity(parent=self, color=color.red)
        self.cursor = Entity(parent=self, color=color.white)

        for key, value in kwargs.items():
            setattr(self, key, value)

        self.redraw()

    @property
    def chart_left(self) -> float:
        return -window.aspect_ratio / 2 + self.margin

    @property
    def chart_top(self) -> float:
        return -0.5 + self.margin + self.chart_height

    @property
    def chart_width(self) -> float:
        return window.aspect_ratio - 2 * self.margin

    def _to_ui(self, x: float, y: float) -> Vec3:
        return Vec3(self.chart_left + x, self.chart_top - y, 0)

    def redraw(self):
        """Rebuild the trace for the current window size"""
        self._aspect_ratio = window.aspect_ratio
        points = chart_layout(self.series, self.chart_width, self.chart_height,
                              max_points=self.max_points)
        self.trace.model = Mesh(
            vertices=[self._to_ui(x, y) for x, y in points],
            mode='line',
            thickness=2
        )
        self.cursor.model = Mesh(
            vertices=[Vec3(0, self.chart_top, 0), Vec3(0, self.chart_top - self.chart_height, 0)],
            mode='line',
            thickness=2
        )
        self.set_cursor(self.cursor_index)

    def set_cursor(self, index: int):
        self.cursor_index = index
        self.cursor.x = self.chart_left + cursor_x(index, len(self.series), self.chart_width)

    def update(self):
        if window.aspect_ratio != self._aspect_ratio:
            self.redraw()


class MarsQuakeVisualization:
    """Main 3D visualization system"""

    def __init__(self, series: SeismicSeries, config):
        self.config = config
        self.series = series

        self.app = Ursina(
            title="Mars Quake Viewer",
            borderless=False,
            fullscreen=False,
            size=tuple(config.window_size),
            vsync=True
        )

        self.quake = QuakeStateMachine(QuakeParameters(
            threshold=config.threshold,
            intensity_scale=config.intensity_scale,
            wave_rate=config.wave_rate,
            jitter_amplitude=config.jitter_amplitude
        ))
        self.current_index = 0
        self.model_loaded = False

        self._setup_scene()
        self._setup_lighting()
        self._setup_camera()
        self._setup_ui()

        # Per-frame hooks; Ursina calls update()/input() on every entity
        self.driver = Entity(update=self.update, input=self.input)

    def _setup_scene(self):
        """Planet, atmosphere, InSight marker and quake shell"""
        window.color = color.black

        # Root carries orientation and quake jitter; the model child carries
        # the normalization offset so a jitter reset returns to the origin.
        self.planet = Entity(rotation_y=site_facing_rotation(self.config.insight_longitude))
        self.mars = self._load_mars_model()

        self.atmosphere = Entity(
            model=_mesh_from_sphere(self.config.atmosphere_radius, 64),
            color=Color(0.0, 0x55 / 255, 1.0, self.config.atmosphere_opacity),
            double_sided=True
        )

        self.site_anchor = Entity(
            parent=self.planet,
            position=lat_lon_to_cartesian(
                self.config.insight_latitude,
                self.config.insight_longitude,
                self.config.marker_radius
            )
        )
        self.insight_marker = Entity(
            model='sphere',
            color=color.yellow,
            scale=self.config.marker_size * 2,
            unlit=True
        )

        self.quake_effect = QuakeEffectEntity(
            radius=self.config.effect_radius,
            segments=self.config.effect_segments
        )

    def _load_mars_model(self) -> Entity:
        mars = Entity(parent=self.planet)
        model_path = self.config.model_path

        try:
            mars.model = load_model_asset(
                model_path,
                lambda path: application.base.loader.loadModel(Filename.fromOsSpecific(str(path)))
            )
            bounds = mars.getTightBounds()
            if bounds is None:
                raise ModelLoadError(f"Mars model has no geometry: {model_path}")
            scale, offset = fit_to_bounds(bounds[0], bounds[1], target_size=2.0)
            mars.scale = scale
            mars.position = Vec3(*offset)
            self.model_loaded = True
            logger.info("Loaded Mars model %s (scale %.4f)", model_path, scale)
        except (ModelLoadError, ValueError) as exc:
            logger.error("Mars model failed to load: %s", exc)
            mars.model = _mesh_from_sphere(1.0, 64)
            mars.color = color.rgb32(193, 68, 14)
            mars.scale = 1
            mars.position = Vec3(0, 0, 0)
            self.model_loaded = False

        return mars

    def _setup_lighting(self):
        self.point_light = PointLight(position=(10, 10, 10), color=color.white)
        self.ambient_light = AmbientLight(color=Color(0.5, 0.5, 0.5, 1))

    def _setup_camera(self):
        """Perspective camera with orbit controls"""
        self._apply_fov()
        camera.position = (0, 0, -self.config.camera_distance)

        self.camera_controller = EditorCamera()
        self.camera_controller.rotation_smoothing = damping_rate(self.config.camera_damping)

    def _apply_fov(self):
        """Configured FOV is vertical; Ursina's camera.fov is horizontal"""
        self._fov_aspect = window.aspect_ratio
        camera.fov = horizontal_fov(self.config.camera_fov, window.aspect_ratio)

    def _setup_ui(self):
        self.info_text = Text(
            text=MODEL_LOADED_TEXT if self.model_loaded else MODEL_ERROR_TEXT,
            position=(-0.85, 0.47),
            origin=(-0.5, 0.5),
            background=True
        )

        self.quake_text = Text(
            text="",
            position=(-0.85, 0.40),
            origin=(-0.5, 0.5),
            color=color.red
        )

        self.time_text = Text(
            text=self.series.time_label(0),
            position=(-0.85, -0.22),
            origin=(-0.5, 0.5)
        )

        self.insight_label = Text(
            text="InSight",
            parent=camera.ui,
            origin=(-0.5, 0.5),
            scale=0.8,
            background=True
        )

        slider_min, slider_max = slider_range(len(self.series))
        self.time_slider = Slider(
            min=slider_min, max=slider_max, default=0, step=1,
            dynamic=True,
            position=(-0.6, -0.28),
            on_value_changed=self.on_slider_changed
        )

        self.chart = SeismicChartOverlay(
            self.series,
            height=self.config.chart_height,
            max_points=self.config.chart_max_points
        )

    def on_slider_changed(self):
        self.select_sample(int(round(self.time_slider.value)))

    def select_sample(self, index: int):
        """Scrub to a sample: caption, quake trigger, chart cursor"""
        index = clamp_index(index, len(self.series))
        self.current_index = index
        sample = self.series[index]

        self.time_text.text = self.series.time_label(index)
        self.quake.check(sample.velocity)
        self.quake_text.text = self.quake.frame.message
        if not self.quake.active:
            self.planet.position = Vec3(0, 0, 0)
        self.chart.set_cursor(index)

    def step(self, delta: int):
        self.time_slider.value = clamp_index(self.current_index + delta, len(self.series))
        self.on_slider_changed()

    def input(self, key):
        if key in ('right arrow', 'right arrow hold'):
            self.step(1)
        elif key in ('left arrow', 'left arrow hold'):
            self.step(-1)
        elif key == 'r':
            self.step(-self.current_index)

    def update(self):
        """Animation driver, once per rendered frame"""
        if self.config.auto_rotate:
            self.planet.rotation_y += sol_rotation_speed() * time.dt * self.config.rotation_time_scale

        if window.aspect_ratio != self._fov_aspect:
            self._apply_fov()

        frame = self.quake.update()
        self.planet.position = Vec3(*frame.offset)

        # Auxiliary objects follow the planet's orientation
        self.insight_marker.world_position = self.site_anchor.world_position
        self.insight_marker.world_rotation = self.planet.world_rotation
        self.quake_effect.world_rotation = self.planet.world_rotation

        self.quake_effect.apply_frame(frame, self.insight_marker.world_position)
        self.insight_label.position = self.insight_marker.screen_position

    def run(self):
        """Start the visualization"""
        self.select_sample(0)
        self.app.run()
