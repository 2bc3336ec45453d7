"""Tests for the command-line front end."""

import pytest
from click.testing import CliRunner

from streamcall import cli

from conftest import FakeTransport, sse, text_chunk, tool_chunk

CONFIG = """\
endpoint:
  model: test-model
tools:
  - name: get_weather
    description: Current weather
    parameters:
      type: object
      properties:
        city: {type: string}
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "streamcall.yaml"
    path.write_text(CONFIG)
    return path


class FakeHttpxTransport(FakeTransport):
    """Stands in for HttpxTransport; built from an EndpointSpec."""

    script: list = []

    def __init__(self, endpoint):
        super().__init__(*self.script)
        self.endpoint = endpoint

    async def aclose(self):
        pass


class TestToolsCommand:
    def test_lists_configured_tools(self, config_file):
        result = CliRunner().invoke(cli.main, ["tools", "-c", str(config_file)])
        assert result.exit_code == 0
        assert "get_weather" in result.output
        assert "city" in result.output

    def test_no_tools(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("endpoint:\n  model: m\n")
        result = CliRunner().invoke(cli.main, ["tools", "-c", str(path)])
        assert result.exit_code == 0
        assert "No tools configured" in result.output

    def test_bad_config(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("endpoint: [unclosed\n")
        result = CliRunner().invoke(cli.main, ["tools", "-c", str(path)])
        assert result.exit_code != 0
        assert "Invalid YAML" in result.output


class TestChatCommand:
    def test_single_prompt(self, config_file, monkeypatch):
        FakeHttpxTransport.script = [
            sse(text_chunk("Hello"), text_chunk(" there")),
        ]
        monkeypatch.setattr(cli, "HttpxTransport", FakeHttpxTransport)

        result = CliRunner().invoke(cli.main, ["chat", "-c", str(config_file), "-p", "hi"])

        assert result.exit_code == 0, result.output
        assert "Hello there" in result.output
        assert "completed" in result.output

    def test_unknown_tool_reported_in_output(self, config_file, monkeypatch):
        FakeHttpxTransport.script = [
            sse(tool_chunk(0, "call_1", "translate", '{"text": "hi"}')),
            sse(text_chunk("Cannot translate.")),
        ]
        monkeypatch.setattr(cli, "HttpxTransport", FakeHttpxTransport)

        result = CliRunner().invoke(cli.main, ["chat", "-c", str(config_file), "-p", "hi"])

        assert result.exit_code == 0, result.output
        assert "tool not found: translate" in result.output
        assert "Cannot translate." in result.output

    def test_verbose_traces_session_events(self, config_file, monkeypatch):
        FakeHttpxTransport.script = [sse(text_chunk("Hello"))]
        monkeypatch.setattr(cli, "HttpxTransport", FakeHttpxTransport)

        result = CliRunner().invoke(
            cli.main, ["chat", "-c", str(config_file), "-p", "hi", "-v"],
        )

        assert result.exit_code == 0, result.output
        assert "session.started" in result.output
        assert "turn.finished" in result.output
        assert "session.completed" in result.output
