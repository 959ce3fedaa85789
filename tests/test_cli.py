"""
Tests for the piecelink command-line tool.

The device is replaced by the emulated P/ECE from conftest; every
command runs through click's CliRunner.
"""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from piece_sdk.cli.errors import ExitCode, handle_cli_exception
from piece_sdk.cli.piecelink import main
from piece_sdk.comms.session import DeviceSession
from piece_sdk.errors import DeviceNotFoundError, TimeoutError
from piece_sdk.operations import DUMP_SIZE


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def connected(session):
    """Make DeviceSession.open() return the emulated session."""
    with patch.object(DeviceSession, "open", return_value=session) as opener:
        yield opener


class TestLs:
    """Tests for 'piecelink ls'."""

    def test_lists_name_and_length(self, runner, connected, fake_device):
        fake_device.add_slot(1, "SAVE.DAT", 1, 1234)
        fake_device.add_slot(3, "GAME.PEX", 2, 5000)

        result = runner.invoke(main, ["ls"])

        assert result.exit_code == 0
        assert result.stdout.splitlines() == ["SAVE.DAT\t1234", "GAME.PEX\t5000"]
        assert fake_device.closed

    def test_empty_device(self, runner, connected):
        result = runner.invoke(main, ["ls"])
        assert result.exit_code == 0
        assert result.stdout == ""

    def test_no_device(self, runner):
        with patch.object(DeviceSession, "open", side_effect=DeviceNotFoundError(0x0E19, 0x1000)):
            result = runner.invoke(main, ["ls"])
        assert result.exit_code == ExitCode.DEVICE_ERROR
        assert "0e19:1000" in result.output

    def test_timeout_option_reaches_config(self, runner, connected):
        runner.invoke(main, ["--timeout", "2.5", "ls"])
        config = connected.call_args.args[0]
        assert config.timeout == 2.5


class TestDownload:
    """Tests for 'piecelink download'."""

    def test_download(self, runner, connected, fake_device, tmp_path):
        fake_device.add_file(1, "A.TXT", b"0123456789", [1])

        result = runner.invoke(main, ["download", "A.TXT", "-o", str(tmp_path)])

        assert result.exit_code == 0
        assert (tmp_path / "A.TXT").read_bytes() == b"0123456789"
        assert "Saved to:" in result.stdout

    def test_missing_file(self, runner, connected, fake_device, tmp_path):
        result = runner.invoke(main, ["download", "missing.txt", "-o", str(tmp_path)])

        assert result.exit_code == ExitCode.DEVICE_ERROR
        assert "missing.txt" in result.output
        assert fake_device.cluster_reads() == []
        assert list(tmp_path.iterdir()) == []


class TestBackup:
    """Tests for 'piecelink backup'."""

    def test_backup(self, runner, connected, fake_device, tmp_path):
        fake_device.add_file(1, "ONE", b"1" * 100, [1])
        fake_device.add_file(2, "TWO", b"2" * 5000, [2, 3])

        result = runner.invoke(main, ["backup", "-o", str(tmp_path / "out")])

        assert result.exit_code == 0
        assert "ONE" in result.stdout and "TWO" in result.stdout
        assert "2 file(s) saved" in result.stdout
        assert (tmp_path / "out" / "TWO").read_bytes() == b"2" * 5000


class TestScreenshot:
    """Tests for 'piecelink screenshot'."""

    def test_text(self, runner, connected, fake_device):
        result = runner.invoke(main, ["screenshot"])
        assert result.exit_code == 0
        lines = result.stdout.splitlines()
        assert len(lines) == 88
        assert all(line == "▓" * 128 for line in lines)

    def test_png(self, runner, connected, tmp_path):
        png = tmp_path / "screen.png"
        result = runner.invoke(main, ["screenshot", "--png", str(png), "--scale", "1"])
        assert result.exit_code == 0
        assert png.read_bytes().startswith(b"\x89PNG")

    def test_bad_geometry(self, runner, connected, fake_device):
        fake_device.lcd_width = 160
        result = runner.invoke(main, ["screenshot"])
        assert result.exit_code == ExitCode.DEVICE_ERROR
        assert "Screenshot error" in result.output


class TestDump:
    """Tests for 'piecelink dump'."""

    def test_dump(self, runner, connected, tmp_path):
        out = tmp_path / "flash.img"
        result = runner.invoke(main, ["dump", "-o", str(out)])
        assert result.exit_code == 0
        assert out.stat().st_size == DUMP_SIZE

    def test_missing_output_dir_created_before_reading(self, runner, connected, fake_device, tmp_path):
        target = tmp_path / "dumps" / "nested"
        with patch("piece_sdk.cli.piecelink.dump_flash") as dump_flash:
            result = runner.invoke(main, ["dump"], env={"PIECE_OUTPUT_DIR": str(target)})
        assert result.exit_code == 0
        assert target.is_dir()
        assert dump_flash.call_args.args[1] == target / "dump.img"

    def test_output_dir_is_a_file(self, runner, connected, fake_device, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_bytes(b"")
        result = runner.invoke(main, ["dump", "-o", str(blocker / "flash.img")])
        assert result.exit_code == ExitCode.INVALID_ARGS
        assert fake_device.reads == []


class TestInfo:
    """Tests for 'piecelink info'."""

    def test_info(self, runner, connected, fake_device):
        result = runner.invoke(main, ["info"])
        assert result.exit_code == 0
        assert f"PFFS top: {fake_device.pffs_top:#010x}" in result.stdout


class TestErrorHandling:
    """Tests for exit code mapping."""

    @pytest.mark.parametrize("error,code", [
        (TimeoutError("slow"), ExitCode.DEVICE_ERROR),
        (PermissionError("denied"), ExitCode.INVALID_ARGS),
        (RuntimeError("bug"), ExitCode.INTERNAL_ERROR),
    ])
    def test_exit_codes(self, error, code):
        with pytest.raises(SystemExit) as excinfo:
            handle_cli_exception(error)
        assert excinfo.value.code == code

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "piecelink" in result.output
