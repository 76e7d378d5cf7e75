"""
Tests for the dream-ontology command line.
"""
import json

import pytest
from typer.testing import CliRunner

from dreamontology.cli.main import app
from dreamontology.config import Settings

runner = CliRunner()


@pytest.fixture
def file_db(tmp_path, mocker):
    """Point the CLI at a SQLite file so state survives between commands."""
    settings = Settings(_env_file=None, database_url=f"sqlite:///{tmp_path}/catalog.db")
    mocker.patch("dreamontology.cli.main.get_settings", return_value=settings)
    return settings


class TestCli:

    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "Dream Ontology v" in result.output

    def test_seed_is_repeatable(self, file_db):
        first = runner.invoke(app, ["seed"])
        assert first.exit_code == 0
        assert "Seeded 7 records (sqlite)" in first.output

        second = runner.invoke(app, ["seed"])
        assert "Seeded 0 records" in second.output

    def test_import_json(self, file_db, tmp_path):
        catalog = tmp_path / "symbols.json"
        catalog.write_text(json.dumps([{"name": "Owl"}, {"name": "owl"}, {"id": "x"}]))

        result = runner.invoke(app, ["import-json", str(catalog)])

        assert result.exit_code == 0
        assert "Created: 1  Skipped: 1  Failed: 1" in result.output
        assert "entry 2:" in result.output

    def test_import_missing_file_exits_nonzero(self, file_db, tmp_path):
        result = runner.invoke(app, ["import-json", str(tmp_path / "missing.json")])
        assert result.exit_code == 1

    def test_mcp_runs_server_with_configured_transport(self, mocker):
        settings = Settings(_env_file=None, mcp_transport="sse")
        mocker.patch("dreamontology.cli.main.get_settings", return_value=settings)
        server = mocker.Mock()
        mocker.patch("dreamontology.mcp_tools.server.create_mcp_server", return_value=server)

        result = runner.invoke(app, ["mcp"])

        assert result.exit_code == 0
        server.run.assert_called_once_with(transport="sse")

    def test_serve_uses_settings(self, mocker):
        settings = Settings(_env_file=None, api_host="0.0.0.0", api_port=8123)
        mocker.patch("dreamontology.cli.main.get_settings", return_value=settings)
        run = mocker.patch("uvicorn.run")

        result = runner.invoke(app, ["serve"])

        assert result.exit_code == 0
        run.assert_called_once_with(
            "dreamontology.api.app:create_default_app",
            factory=True,
            host="0.0.0.0",
            port=8123,
            reload=False,
        )

    def test_logging_configured_per_invocation(self, mocker):
        settings = Settings(_env_file=None, LOG_LEVEL="DEBUG")
        mocker.patch("dreamontology.cli.main.get_settings", return_value=settings)
        configure = mocker.patch("dreamontology.cli.main.setup_logging")

        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        configure.assert_called_once_with(settings)
