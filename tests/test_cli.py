import json
from pathlib import Path
from unittest.mock import patch

import yaml
from click.testing import CliRunner

from api_test_synth.cli import main
from api_test_synth.parser.base import Operation, SpecDocument

FIXTURES = Path(__file__).parent / "fixtures"


def _synth(tmp_path, *extra):
    output = tmp_path / "suite.json"
    runner = CliRunner()
    result = runner.invoke(main, [
        "synth", str(FIXTURES / "petstore.yaml"),
        "-d", str(FIXTURES / "testdata.json"),
        "-o", str(output),
        *extra,
    ])
    return result, output


class TestCliSynth:
    def test_writes_suite_json(self, tmp_path):
        result, output = _synth(tmp_path)

        assert result.exit_code == 0, result.output
        suite = json.loads(output.read_text(encoding="utf-8"))
        assert len(suite["scenarios"]) == 9
        assert suite["scenarios"][1]["kind"] == "negative-auth"
        assert suite["payloads"][0]["fields"]["name"]["provenance"] == "manual"
        assert "9 scenarios for 3 operations" in result.output

    def test_writes_yaml_by_suffix(self, tmp_path):
        output = tmp_path / "suite.yaml"
        result = CliRunner().invoke(main, [
            "synth", str(FIXTURES / "orders.swagger.json"), "-o", str(output),
        ])
        assert result.exit_code == 0, result.output
        suite = yaml.safe_load(output.read_text(encoding="utf-8"))
        assert suite["payloads"][0]["endpoint_key"] == "orders/v1/create"

    def test_output_is_reproducible(self, tmp_path):
        _, first = _synth(tmp_path)
        content = first.read_bytes()
        _, second = _synth(tmp_path)
        assert second.read_bytes() == content

    def test_only_filter(self, tmp_path):
        result, output = _synth(tmp_path, "--only", "POST /api/pets")
        assert result.exit_code == 0, result.output
        suite = json.loads(output.read_text(encoding="utf-8"))
        assert {s["method"] for s in suite["scenarios"]} == {"POST"}

    def test_allow_list_config_mode(self, tmp_path):
        result, output = _synth(
            tmp_path, "--filter-mode", "config", "--allow-list", str(FIXTURES / "allow-list.yaml"),
        )
        assert result.exit_code == 0, result.output
        suite = json.loads(output.read_text(encoding="utf-8"))
        assert suite["coverage"]["operations"] == 1

    def test_fallback_field_option(self, tmp_path):
        result, output = _synth(tmp_path, "--fallback-field", "payload")
        suite = json.loads(output.read_text(encoding="utf-8"))
        broken = [s for s in suite["scenarios"] if s["id"] == "GET pets/{petId} positive 200"][0]
        assert broken["primary_field"] == "payload"

    def test_auth_token_from_env(self, tmp_path):
        output = tmp_path / "suite.json"
        result = CliRunner().invoke(
            main,
            ["synth", str(FIXTURES / "petstore.yaml"), "-o", str(output), "--auth-type", "bearer"],
            env={"API_TOKEN": "secret"},
        )
        assert result.exit_code == 0, result.output
        suite = json.loads(output.read_text(encoding="utf-8"))
        assert suite["auth_headers"] == {"Authorization": "Bearer secret"}

    def test_invalid_spec_fails_without_output(self, tmp_path):
        doc = tmp_path / "broken.json"
        doc.write_text('{"openapi": "3.0.0"}')
        output = tmp_path / "suite.json"
        result = CliRunner().invoke(main, ["synth", str(doc), "--format", "openapi", "-o", str(output)])
        assert result.exit_code == 1
        assert "paths" in result.output
        assert not output.exists()
        assert list(tmp_path.iterdir()) == [doc]

    @patch("api_test_synth.parser.markdown.parse_markdown")
    def test_markdown_input_uses_llm_parser(self, mock_parse, tmp_path):
        mock_parse.return_value = SpecDocument(paths={
            "/api/users": {"POST": Operation(method="POST", path="/api/users", responses={"201": None})},
        })
        output = tmp_path / "suite.json"
        result = CliRunner().invoke(main, [
            "synth", str(FIXTURES / "sample-api.md"), "-o", str(output), "--model", "test-model",
        ])
        assert result.exit_code == 0, result.output
        mock_parse.assert_called_once_with(FIXTURES / "sample-api.md", model="test-model")
        suite = json.loads(output.read_text(encoding="utf-8"))
        assert [s["kind"] for s in suite["scenarios"]] == ["positive", "negative-auth"]


class TestCliCoverage:
    def test_prints_grouped_issues(self):
        result = CliRunner().invoke(main, [
            "coverage", str(FIXTURES / "petstore.yaml"), "-d", str(FIXTURES / "testdata.json"),
        ])
        assert result.exit_code == 0, result.output
        assert "Operations: 3" in result.output
        assert "missing-test-data (1):" in result.output
        assert "GET pets/{petId}" in result.output
        assert "unused-test-data (1):" in result.output
        assert "retired/endpoint" in result.output


class TestCliVerify:
    def test_pass_and_fail(self, tmp_path):
        _, suite_file = _synth(tmp_path)
        response = tmp_path / "response.json"

        response.write_text(json.dumps({"status": True, "response": {"id": 1, "name": "Rex"}}))
        result = CliRunner().invoke(main, [
            "verify", str(suite_file), "POST pets positive 201", str(response), "--status", "201",
        ])
        assert result.exit_code == 0, result.output
        assert "FAIL" not in result.output

        response.write_text(json.dumps({"status": True, "response": {"id": 1, "name": "Max"}}))
        result = CliRunner().invoke(main, [
            "verify", str(suite_file), "POST pets positive 201", str(response), "--status", "201",
        ])
        assert result.exit_code == 1
        assert "FAIL equals response.name" in result.output

    def test_unknown_scenario(self, tmp_path):
        _, suite_file = _synth(tmp_path)
        response = tmp_path / "response.json"
        response.write_text("{}")
        result = CliRunner().invoke(main, ["verify", str(suite_file), "nope", str(response), "--status", "200"])
        assert result.exit_code == 1
        assert "no scenario 'nope'" in result.output
