"""Tests for configuration, document I/O, logging and the shared address types."""

import logging

import pytest

from mirrorgrid.config import AlignmentConfig, MirrorGridConfig
from mirrorgrid.types import GridSize, MotorRef, TileAssignment, TileKey, unique_macs
from mirrorgrid.utils.io import load_config, load_data, save_config, save_data
from mirrorgrid.utils.log import PACKAGE_LOGGER, get_logger, setup_logging


@pytest.fixture()
def package_logger():
    logger = logging.getLogger(PACKAGE_LOGGER)
    yield logger
    for handler in list(logger.handlers):
        if not isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(logging.NOTSET)


class TestMirrorGridConfig:
    def test_defaults(self):
        config = MirrorGridConfig()
        assert config.alignment.step_size == 100
        assert config.alignment.eccentricity_target == pytest.approx(1.05)
        assert config.calibration.delta_steps == 1200
        assert config.measurement.samples_per_measurement == 5

    @pytest.mark.parametrize("suffix", [".json", ".yaml"])
    def test_save_load_round_trip(self, tmp_path, suffix):
        config = MirrorGridConfig.create_bench_config()
        config.calibration.roi = {"x": 0.1, "y": 0.2, "width": 0.5, "height": 0.5}
        path = tmp_path / "nested" / f"config{suffix}"
        config.save(path)
        loaded = MirrorGridConfig.load(path)
        assert loaded == config

    def test_from_dict_keeps_missing_sections(self):
        config = MirrorGridConfig.from_dict({"alignment": {"step_size": 40}, "grid_rows": 4})
        assert config.alignment.step_size == 40
        assert config.alignment.min_step_size == AlignmentConfig().min_step_size
        assert config.grid_rows == 4
        assert config.calibration.delta_steps == 1200

    def test_unknown_section_field_rejected(self):
        with pytest.raises(TypeError):
            MirrorGridConfig.from_dict({"alignment": {"learning_rate": 0.1}})

    def test_development_preset(self):
        config = MirrorGridConfig.create_development_config()
        assert config.enable_diagnostics
        assert config.alignment.settling_delay_s == 0.0
        assert config.measurement.capture_delay_s == 0.0

    def test_bench_preset(self):
        config = MirrorGridConfig.create_bench_config()
        assert config.alignment.step_size == 80
        assert config.alignment.min_step_size == 20


class TestDocumentIO:
    def test_format_from_suffix(self, tmp_path):
        data = {"tiles": {"0-0": {"x": 1.5}}, "name": "bench"}
        for name in ("doc.json", "doc.yml"):
            save_data(data, tmp_path / name)
            assert load_data(tmp_path / name) == data

    def test_unsupported_suffix(self, tmp_path):
        with pytest.raises(ValueError):
            save_data({}, tmp_path / "doc.toml")
        with pytest.raises(ValueError):
            load_data(tmp_path / "doc.csv")

    def test_config_helpers_use_yaml(self, tmp_path):
        path = tmp_path / "settings.cfg"
        save_config({"alignment": {"step_size": 60}}, path)
        assert "step_size: 60" in path.read_text()
        assert load_config(path) == {"alignment": {"step_size": 60}}

    def test_empty_config_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path) == {}


class TestLogging:
    def test_loggers_nest_under_package(self):
        assert get_logger("calibration").name == "mirrorgrid.calibration"
        assert get_logger("mirrorgrid.playback.dispatch").name == "mirrorgrid.playback.dispatch"
        assert get_logger(PACKAGE_LOGGER).name == PACKAGE_LOGGER

    def test_setup_writes_log_file(self, tmp_path, package_logger):
        path = tmp_path / "logs" / "run.log"
        logger = setup_logging("debug", log_file=path)
        assert logger is package_logger
        assert logger.level == logging.DEBUG
        get_logger("alignment").debug("probe accepted")
        assert "mirrorgrid.alignment: probe accepted" in path.read_text()

    def test_setup_does_not_stack_handlers(self, package_logger):
        setup_logging()
        setup_logging()
        active = [h for h in package_logger.handlers if not isinstance(h, logging.NullHandler)]
        assert len(active) == 1


class TestAddressTypes:
    def test_tile_key_text_form(self):
        tile = TileKey(2, 11)
        assert str(tile) == "2-11"
        assert TileKey.parse(" 2-11 ") == tile
        assert tile.label == "R2C11"

    @pytest.mark.parametrize("text", ["2", "a-b", "1-2-3", "-1-2", ""])
    def test_tile_key_parse_rejects(self, text):
        with pytest.raises(ValueError):
            TileKey.parse(text)

    def test_tile_key_validation(self):
        with pytest.raises(ValueError):
            TileKey(-1, 0)
        with pytest.raises(TypeError):
            TileKey(1.0, 0)
        with pytest.raises(TypeError):
            TileKey(True, 0)

    def test_tile_keys_order_row_major(self):
        assert sorted([TileKey(1, 0), TileKey(0, 1), TileKey(0, 0)]) == [TileKey(0, 0), TileKey(0, 1), TileKey(1, 0)]

    def test_grid_size(self):
        grid = GridSize(2, 3)
        assert grid.count == 6
        assert list(grid.tiles())[:2] == [TileKey(0, 0), TileKey(0, 1)]
        assert TileKey(1, 2) in grid
        assert TileKey(2, 0) not in grid
        assert (0, 0) not in grid

    def test_motor_refs(self):
        motor = MotorRef("aa:bb", 1)
        assert str(motor) == "aa:bb:1"
        with pytest.raises(ValueError):
            MotorRef("", 0)
        assignment = {
            TileKey(0, 1): TileAssignment(x=MotorRef("cc", 0)),
            TileKey(0, 0): TileAssignment(x=motor, y=MotorRef("aa:bb", 0)),
        }
        assert unique_macs(assignment) == ("aa:bb", "cc")
        assert not assignment[TileKey(0, 1)].is_complete
        assert assignment[TileKey(0, 1)].motor_for("y") is None
