# tests/unit/config/test_config_loader.py
import yaml

from mixmaster.config.config_loader import DEFAULT_SETTINGS, ConfigLoader


def test_defaults_written_when_missing(tmp_path):
    loader = ConfigLoader(config_dir=tmp_path)
    config = loader.load_all()

    master_path = tmp_path / "master.yml"
    assert master_path.exists()
    with open(master_path) as f:
        data = yaml.safe_load(f)
    assert data["master"]["name"] == "mixer_master"
    assert config["executor"]["kind"] == "loopback"


def test_config_dir_created(tmp_path):
    config_dir = tmp_path / "nested" / "config"
    ConfigLoader(config_dir=config_dir)
    assert config_dir.is_dir()


def test_partial_file_merged_over_defaults(tmp_path):
    with open(tmp_path / "master.yml", "w") as f:
        yaml.dump({"master": {"name": "line_2"}, "automation": {"rates": {"milk": 25.0}}}, f)

    config = ConfigLoader(config_dir=tmp_path).load_all()

    assert config["master"]["name"] == "line_2"
    assert config["master"]["tick_period"] == 1.0
    assert config["automation"]["rates"]["milk"] == 25.0
    assert config["automation"]["rates"]["chocolate"] == 50.0
    assert config["automation"]["addresses"]["valve_v4"] == 4003


def test_defaults_not_mutated(tmp_path):
    with open(tmp_path / "master.yml", "w") as f:
        yaml.dump({"master": {"tick_period": 0.25}}, f)

    ConfigLoader(config_dir=tmp_path).load_all()

    assert DEFAULT_SETTINGS["master"]["tick_period"] == 1.0


def test_empty_file_uses_defaults(tmp_path):
    (tmp_path / "master.yml").write_text("")

    config = ConfigLoader(config_dir=tmp_path).load_all()

    assert config["master"]["unit_address"] == 1


def test_invalid_values_replaced(tmp_path, caplog):
    with open(tmp_path / "master.yml", "w") as f:
        yaml.dump(
            {
                "master": {
                    "tick_period": -1,
                    "time_acceleration": 0,
                    "time_mode": "warp",
                    "unit_address": 300,
                },
                "executor": {"kind": "serial", "timeout": "soon"},
            },
            f,
        )

    config = ConfigLoader(config_dir=tmp_path).load_all()

    assert config["master"]["tick_period"] == 1.0
    assert config["master"]["time_acceleration"] == 1.0
    assert config["master"]["time_mode"] == "realtime"
    assert config["master"]["unit_address"] == 1
    assert config["executor"]["kind"] == "loopback"
    assert config["executor"]["timeout"] == 2.0
    assert "Invalid tick_period" in caplog.text


def test_points_path_relative_to_config_dir(tmp_path):
    config = ConfigLoader(config_dir=tmp_path).load_all()
    assert config["points_path"] == tmp_path / "points.txt"


def test_points_path_absolute(tmp_path):
    points = tmp_path / "elsewhere" / "mixer.txt"
    with open(tmp_path / "master.yml", "w") as f:
        yaml.dump({"points_file": str(points)}, f)

    config = ConfigLoader(config_dir=tmp_path).load_all()

    assert config["points_path"] == points
