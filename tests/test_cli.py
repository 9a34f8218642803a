"""
Command-line interface tests.
"""

from typer.testing import CliRunner

from implicitmesh.cli import app

runner = CliRunner()


class TestCLI:
    """Test the typer commands."""

    def test_fields(self):
        """Built-in fields are listed."""
        result = runner.invoke(app, ["fields"])
        assert result.exit_code == 0
        assert "sphere" in result.output
        assert "torus" in result.output

    def test_mesh_and_check(self, tmp_path):
        """A tessellated field can be saved and checked."""
        output = tmp_path / "sphere.obj"
        result = runner.invoke(app, ["mesh", "sphere", "--split", "6", "-p", "radius=0.45", "-o", str(output)])
        assert result.exit_code == 0, result.output
        assert output.exists()
        assert "Saved to" in result.output

        result = runner.invoke(app, ["check", str(output)])
        assert result.exit_code == 0, result.output
        assert "Manifold Test" in result.output

    def test_mesh_unknown_field(self):
        """Unknown fields exit with an error."""
        result = runner.invoke(app, ["mesh", "nosuch"])
        assert result.exit_code == 1
        assert "Unknown field" in result.output

    def test_mesh_invalid_split(self):
        """Invalid lattice settings exit with an error."""
        result = runner.invoke(app, ["mesh", "sphere", "--split", "0"])
        assert result.exit_code == 1

    def test_mesh_bad_param_value(self):
        """A field parameter of the wrong type exits with an error."""
        result = runner.invoke(app, ["mesh", "sphere", "-s", "4", "-p", "radius=abc"])
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_mesh_timing(self):
        """--timing prints one row per pipeline stage."""
        result = runner.invoke(app, ["mesh", "sphere", "-s", "4", "-p", "radius=0.45", "--timing"])
        assert result.exit_code == 0, result.output
        assert "Timing" in result.output
        assert "sampling" in result.output
        assert "halfedge_build" in result.output

    def test_check_missing_file(self, tmp_path):
        """Missing files exit with an error."""
        result = runner.invoke(app, ["check", str(tmp_path / "missing.obj")])
        assert result.exit_code == 1

    def test_gen_config_and_run(self, tmp_path):
        """A generated config runs."""
        config_path = tmp_path / "config.yaml"
        result = runner.invoke(app, ["gen-config", "-o", str(config_path), "-n", "demo"])
        assert result.exit_code == 0
        assert config_path.exists()

        output = tmp_path / "demo.obj"
        result = runner.invoke(app, ["run", "-c", str(config_path), "-o", str(output)])
        assert result.exit_code == 0, result.output
        assert output.exists()

    def test_sweep(self):
        """Sweeps print one row per split."""
        result = runner.invoke(app, ["sweep", "sphere", "--splits", "2,6"])
        assert result.exit_code == 0, result.output
        assert "Sweep" in result.output
