import numpy as np
import pytest

from conftest import make_series
from strip_chart import (
    StripChartExporter, chart_layout, clamp_index, cursor_x, decimate_envelope,
    polyline_points, slider_range
)


def test_polyline_scales_to_peak():
    points = polyline_points([0.0, 1.0, -2.0], width=100, height=50)

    np.testing.assert_allclose(points[:, 0], [0, 50, 100])
    np.testing.assert_allclose(points[:, 1], [25, 12.5, 50])


def test_polyline_single_sample_and_flat_trace():
    np.testing.assert_allclose(polyline_points([3.0], 100, 50), [[0, 0]])
    np.testing.assert_allclose(polyline_points([0.0, 0.0], 100, 50)[:, 1], [25, 25])
    assert polyline_points([], 100, 50).shape == (0, 2)


def test_cursor_position():
    assert cursor_x(0, 10, 90) == 0
    assert cursor_x(9, 10, 90) == 90
    assert cursor_x(3, 10, 90) == pytest.approx(30)
    assert cursor_x(42, 10, 90) == 90
    assert cursor_x(-1, 10, 90) == 0
    assert cursor_x(0, 1, 90) == 0


def test_decimate_short_input_untouched():
    np.testing.assert_array_equal(decimate_envelope([1, 2, 3], 10), [0, 1, 2])


def test_decimate_keeps_spikes():
    values = np.zeros(10_000)
    values[5_003] = 900.0
    values[7_777] = -400.0

    keep = decimate_envelope(values, 500)

    assert len(keep) <= 500
    assert 5_003 in keep
    assert 7_777 in keep
    assert np.all(np.diff(keep) > 0)


def test_decimate_rejects_tiny_budget():
    with pytest.raises(ValueError):
        decimate_envelope([1, 2, 3], 1)


def test_chart_layout_decimates_long_series():
    series = make_series(np.sin(np.linspace(0, 40, 5_000)) * 200)

    points = chart_layout(series, 1.6, 0.15, max_points=400)

    assert len(points) <= 400
    assert points[0, 0] == pytest.approx(0.0)
    assert points[:, 0].max() <= 1.6


def test_exporter_writes_png(tmp_path):
    series = make_series([0, 150, -300, 20, 80])

    path = StripChartExporter(series, size=(4.0, 1.0), dpi=50).save(
        tmp_path / "charts" / "trace.png", cursor_index=2
    )

    assert path.exists()
    assert path.read_bytes()[:8] == b"\x89PNG\r\n\x1a\n"


def test_exporter_draws_cursor_only_when_requested():
    series = make_series([0, 150, -300])
    exporter = StripChartExporter(series, size=(4.0, 1.0), dpi=50)

    assert len(exporter.render().axes[0].lines) == 1
    assert len(exporter.render(cursor_index=1).axes[0].lines) == 2


def test_single_sample_scrubber_has_usable_range():
    lo, hi = slider_range(1)

    assert (lo, hi) == (0, 1)
    # the extra slider stop maps back onto the only sample
    assert clamp_index(hi, 1) == 0
    assert clamp_index(lo, 1) == 0


def test_scrubber_range_and_clamping():
    assert slider_range(500) == (0, 499)
    assert clamp_index(-3, 500) == 0
    assert clamp_index(499.0, 500) == 499
    assert clamp_index(1000, 500) == 499
    with pytest.raises(ValueError):
        slider_range(0)
    with pytest.raises(ValueError):
        clamp_index(0, 0)
