"""Tests for the terminal preview command."""

import argparse

import pytest

from asciimotion.__main__ import build_request, main
from asciimotion.core.config import EngineConfig, RenderConfig


class TestMain:
    """Tests for one-shot rendering."""

    def test_prints_plain_frame(self, capsys):
        code = main(["radio-waves", "-W", "20", "-H", "6", "-n", "3", "--plain"])
        assert code == 0
        lines = capsys.readouterr().out.rstrip("\n").split("\n")
        assert len(lines) == 6
        assert all(len(line) == 20 for line in lines)

    def test_color_output(self, capsys):
        code = main(["turbulent-noise", "-W", "10", "-H", "4", "-n", "2", "--palette", "c64"])
        assert code == 0
        assert "\033[38;2;" in capsys.readouterr().out

    def test_config_supplies_default_ramp(self, capsys, tmp_path):
        path = tmp_path / "config.json"
        EngineConfig(render=RenderConfig(default_character_set=" X")).save(path)
        code = main(["radio-waves", "-W", "20", "-H", "6", "-n", "3", "--plain", "--config", str(path)])
        assert code == 0
        assert set(capsys.readouterr().out) <= {" ", "X", "\n"}

    def test_invalid_setting_fails(self, capsys):
        code = main(["radio-waves", "-W", "10", "-H", "4", "--set", "waveShape=heart"])
        assert code == 1

    def test_unknown_generator(self):
        with pytest.raises(SystemExit):
            main(["fireworks"])


class TestBuildRequest:
    """Tests for option parsing into a preview request."""

    def test_overrides(self):
        args = argparse.Namespace(
            generator="rain-drops", set=["dropFrequency=12", "interferenceEnabled=false"],
            seed=5, frames=40, palette=None, color_mode="closest",
            width=30, height=10, charset=" #", invert=True, dither="bayer4x4",
        )
        request = build_request(args)
        assert request.settings.drop_frequency == 12
        assert request.settings.interference_enabled is False
        assert request.settings.seed == 5
        assert request.settings.frame_count == 40
        assert request.conversion.character_set == (" ", "#")
        assert (request.width, request.height) == (30, 10)
        assert request.conversion.foreground.enabled is False

    def test_charset_defaults_to_config(self):
        args = argparse.Namespace(
            generator="radio-waves", set=None, seed=None, frames=None, palette=None,
            color_mode="closest", width=10, height=4, charset=None, invert=False, dither="none",
        )
        assert build_request(args).conversion.character_set is None
