"""Tests for the command-line interface."""

import pytest
from typer.testing import CliRunner

from caption_translator import cli

runner = CliRunner()


@pytest.fixture
def video(tmp_path):
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"fake video bytes")
    return path


@pytest.fixture(autouse=True)
def fake_pipeline(monkeypatch, pipeline):
    monkeypatch.setattr(cli, "_build_pipeline", lambda: pipeline)
    return pipeline


class TestTranslateCommand:
    def test_writes_output(self, video, tmp_path):
        output = tmp_path / "out" / "translated.mp4"

        result = runner.invoke(
            cli.app,
            [
                "translate",
                str(video),
                "--language",
                "French",
                "--output",
                str(output),
                "--options",
                '{"baseFontSize": 30}',
            ],
        )

        assert result.exit_code == 0, result.output
        assert output.read_bytes() == b"translated-video"

    def test_invalid_options(self, video):
        result = runner.invoke(cli.app, ["translate", str(video), "-l", "French", "--options", "{oops"])

        assert result.exit_code == 1

    def test_missing_video(self, tmp_path):
        result = runner.invoke(cli.app, ["translate", str(tmp_path / "nope.mp4"), "-l", "French"])

        assert result.exit_code != 0


class TestPreviewCommand:
    def test_writes_png(self, video, tmp_path):
        output = tmp_path / "preview.png"

        result = runner.invoke(cli.app, ["preview", str(video), "-l", "French", "--output", str(output)])

        assert result.exit_code == 0, result.output
        assert output.read_bytes().startswith(b"\x89PNG")
