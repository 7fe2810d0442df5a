import json

import pytest

from main import ViewerConfig, build_config, main, parse_arguments


def test_config_json_round_trip(tmp_path):
    config = ViewerConfig(threshold=250.0, window_size=(800, 600), auto_rotate=True)
    path = tmp_path / "viewer.json"

    config.to_json(str(path))
    loaded = ViewerConfig.from_json(str(path))

    assert loaded == config
    assert json.loads(path.read_text())["window_size"] == [800, 600]


def test_config_rejects_unknown_keys():
    with pytest.raises(TypeError):
        ViewerConfig.from_dict({"threshhold": 5})


def test_command_line_overrides_config_file(tmp_path):
    path = tmp_path / "viewer.json"
    ViewerConfig(threshold=250.0, data_path="a.csv").to_json(str(path))

    args = parse_arguments(["--config", str(path), "--data", "b.csv",
                            "--window-size", "640", "480"])
    config = build_config(args)

    assert config.threshold == 250.0
    assert config.data_path == "b.csv"
    assert config.window_size == (640, 480)


def test_invalid_threshold_rejected():
    with pytest.raises(ValueError):
        build_config(parse_arguments(["--threshold", "0"]))


def test_replay_writes_episodes(trace_csv, tmp_path, capsys):
    output = tmp_path / "out" / "episodes.json"

    main(["--data", str(trace_csv), "--replay", "--output", str(output),
          "--log-level", "WARNING"])

    report = json.loads(output.read_text())
    assert report["samples"] == 4
    assert report["threshold"] == 100.0
    assert [(e["start_index"], e["end_index"]) for e in report["episodes"]] == [(1, 3)]
    assert report["episodes"][0]["peak_velocity"] == 300.0
    assert "Quake episodes: 1" in capsys.readouterr().out


def test_export_chart(trace_csv, tmp_path):
    target = tmp_path / "chart.png"

    main(["--data", str(trace_csv), "--export-chart", str(target), "--cursor", "2",
          "--log-level", "WARNING"])

    assert target.exists()


def test_missing_data_exits_with_error(tmp_path, capsys):
    with pytest.raises(SystemExit) as exc:
        main(["--data", str(tmp_path / "nope.csv"), "--replay"])

    assert exc.value.code == 1
    assert "Seismic data file not found" in capsys.readouterr().out
