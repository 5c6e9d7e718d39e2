"""Unit tests for the config command group."""

from pathlib import Path

from cryptctl.cli.main import app
from typer.testing import CliRunner

runner = CliRunner()


class TestConfigShow:
    """Tests for cryptctl config show."""

    def test_show_defaults(self) -> None:
        result = runner.invoke(app, ["config", "show"])

        assert result.exit_code == 0
        assert "using defaults" in result.output
        assert '"luks_type": "luks2"' in result.output

    def test_show_file_values(self, _isolated_config: Path) -> None:
        config_dir = _isolated_config / "cryptctl"
        config_dir.mkdir(parents=True)
        (config_dir / "config.toml").write_text('mount_options = ["noatime"]\n')

        result = runner.invoke(app, ["config", "show"])

        assert result.exit_code == 0
        assert "Config file:" in result.output
        assert '"noatime"' in result.output


class TestConfigInit:
    """Tests for cryptctl config init."""

    def test_init_default_location(self, _isolated_config: Path) -> None:
        result = runner.invoke(app, ["config", "init"])

        assert result.exit_code == 0
        assert (_isolated_config / "cryptctl" / "config.toml").exists()

    def test_init_refuses_overwrite(self, tmp_path: Path) -> None:
        target = tmp_path / "c.toml"
        target.write_text("# mine\n")

        result = runner.invoke(app, ["config", "init", "--path", str(target)])

        assert result.exit_code == 1
        assert "already exists" in result.output
        assert target.read_text() == "# mine\n"

    def test_init_force(self, tmp_path: Path) -> None:
        target = tmp_path / "c.toml"
        target.write_text("# mine\n")

        result = runner.invoke(app, ["config", "init", "--path", str(target), "--force"])

        assert result.exit_code == 0
        assert 'default_filesystem = "ext4"' in target.read_text()
