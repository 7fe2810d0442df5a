"""
Planet Geometry Helpers
Areographic coordinates, sphere shells for the atmosphere and quake effect,
and model normalization for the loaded Mars asset
"""
import numpy as np
from numba import jit, prange
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Sequence, Tuple, Union

# InSight landing site, Elysium Planitia
INSIGHT_LATITUDE = 4.5024  # degrees
INSIGHT_LONGITUDE = 135.6234  # degrees

SOL_SECONDS = 24 * 60 * 60


@dataclass
class SphereMesh:
    """Triangle mesh arrays in the layout Ursina's Mesh expects"""
    vertices: np.ndarray  # (n, 3) float32
    faces: np.ndarray  # (m, 3) int32
    normals: np.ndarray  # (n, 3) float32
    uvs: np.ndarray  # (n, 2) float32

    def triangles(self):
        return [tuple(int(v) for v in face) for face in self.faces]


def lat_lon_to_cartesian(latitude: float, longitude: float,
                         radius: float = 1.0) -> Tuple[float, float, float]:
    """Surface point for latitude/longitude in degrees, y axis through the poles"""
    lat = np.radians(latitude)
    lon = np.radians(longitude)
    x = radius * np.cos(lat) * np.cos(lon)
    y = radius * np.sin(lat)
    z = radius * np.cos(lat) * np.sin(lon)
    return float(x), float(y), float(z)


def site_facing_rotation(longitude: float = INSIGHT_LONGITUDE) -> float:
    """Yaw in degrees that brings the given meridian to the front"""
    return -longitude


def sol_rotation_speed() -> float:
    """Degrees per second for one revolution per 24h sol"""
    return 360.0 / SOL_SECONDS


def fit_to_bounds(min_corner: Sequence[float], max_corner: Sequence[float],
                  target_size: float = 2.0) -> Tuple[float, np.ndarray]:
    """
    Uniform scale and offset that fit a bounding box into a cube of
    `target_size` centred on the origin.
    """
    lo = np.asarray(min_corner, dtype=np.float64)
    hi = np.asarray(max_corner, dtype=np.float64)
    size = hi - lo
    max_dim = float(size.max())
    if max_dim <= 0 or not np.isfinite(max_dim):
        raise ValueError("Cannot fit an empty bounding box")

    scale = target_size / max_dim
    center = (lo + hi) / 2
    return scale, -center * scale


@jit(nopython=True, parallel=True)
def _generate_faces_parallel(rings: int, segments: int) -> np.ndarray:
    """Two triangles per latitude/longitude quad"""
    stride = segments + 1
    faces = np.zeros((rings * segments * 2, 3), dtype=np.int32)

    for i in prange(rings):
        for j in range(segments):
            v0 = i * stride + j
            v1 = v0 + 1
            v2 = v0 + stride
            v3 = v2 + 1

            idx = (i * segments + j) * 2
            faces[idx, 0] = v0
            faces[idx, 1] = v2
            faces[idx, 2] = v1
            faces[idx + 1, 0] = v1
            faces[idx + 1, 1] = v2
            faces[idx + 1, 2] = v3

    return faces


def generate_sphere_mesh(radius: float = 1.0, segments: int = 64,
                         rings: int = 64) -> SphereMesh:
    """UV sphere; the seam column is duplicated so UVs wrap cleanly"""
    if radius <= 0:
        raise ValueError("radius must be positive")
    if segments < 3 or rings < 2:
        raise ValueError("sphere needs at least 3 segments and 2 rings")

    theta = np.linspace(0.0, np.pi, rings + 1)  # polar angle from +y
    phi = np.linspace(0.0, 2 * np.pi, segments + 1)
    T, P = np.meshgrid(theta, phi, indexing='ij')

    normals = np.stack([
        np.sin(T) * np.cos(P),
        np.cos(T),
        np.sin(T) * np.sin(P)
    ], axis=-1).reshape(-1, 3).astype(np.float32)

    vertices = (normals * radius).astype(np.float32)

    uvs = np.stack([
        P / (2 * np.pi),
        1.0 - T / np.pi
    ], axis=-1).reshape(-1, 2).astype(np.float32)

    faces = _generate_faces_parallel(rings, segments)

    return SphereMesh(vertices=vertices, faces=faces, normals=normals, uvs=uvs)


def horizontal_fov(vertical_fov: float, aspect_ratio: float) -> float:
    """Horizontal field of view in degrees for a vertical one"""
    half = np.radians(vertical_fov) / 2
    return float(np.degrees(2 * np.arctan(np.tan(half) * aspect_ratio)))


def damping_rate(damping_factor: float, frame_rate: float = 60.0) -> float:
    """Per-frame blend factor as a per-second smoothing rate"""
    return damping_factor * frame_rate


class ModelLoadError(RuntimeError):
    """The planet asset is missing or could not be converted"""


def load_model_asset(path: Optional[Union[str, Path]], loader: Callable[[Path], Any]) -> Any:
    """
    Run `loader` on an existing asset path.

    Converter plugins (panda3d-gltf) raise their own exception types on
    malformed files, so every failure is reported as ModelLoadError.
    """
    if not path:
        raise ModelLoadError("No Mars model configured")
    path = Path(path)
    if not path.exists():
        raise ModelLoadError(f"Mars model not found: {path}")

    try:
        model = loader(path.resolve())
    except Exception as exc:
        raise ModelLoadError(f"Could not load Mars model {path}: {exc}") from exc

    if model is None:
        raise ModelLoadError(f"Loader returned nothing for {path}")
    return model
