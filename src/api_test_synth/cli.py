"""CLI entry point for api-test-synth."""

import functools
import json
import os
import tempfile
from pathlib import Path

import click
import yaml

from api_test_synth.config import SynthConfig, load_allow_list, load_config
from api_test_synth.errors import SynthError
from api_test_synth.generator.suite import IssueKind, SuiteModel, SuiteSynthesizer
from api_test_synth.generator.validator import validate_response
from api_test_synth.logging_config import setup_logging
from api_test_synth.parser.base import SpecDocument
from api_test_synth.parser.detect import detect_format
from api_test_synth.parser.swagger import load_spec
from api_test_synth.parser.testdata import TestDataStore, load_store


def _parse_doc(file_path: Path, fmt: str, model: str | None) -> SpecDocument:
    """Parse API document based on format."""
    if fmt == "auto":
        fmt = detect_format(file_path)

    if fmt in ("openapi", "swagger"):
        return load_spec(file_path)
    else:
        from api_test_synth.parser.markdown import parse_markdown
        return parse_markdown(file_path, model=model)


def _build_config(
    config_path: Path | None,
    prefixes: tuple[str, ...],
    fallback_field: str | None,
    filter_mode: str | None,
    allow_list: Path | None,
    workers: int | None,
    auth_type: str | None,
    auth_token: str | None,
    auth_user: str | None,
    auth_password: str | None,
) -> SynthConfig:
    auth = None
    if auth_type == "basic":
        auth = {"type": "basic", "username": auth_user or "", "password": auth_password or ""}
    elif auth_type in ("bearer", "jwt"):
        auth = {"type": auth_type, "token": auth_token or ""}
    elif auth_type == "none":
        auth = {"type": "none"}

    return load_config(
        config_path,
        path_prefixes=prefixes or None,
        fallback_field=fallback_field,
        filter_mode=filter_mode,
        allow_list=load_allow_list(allow_list) if allow_list else None,
        workers=workers,
        auth=auth,
    )


def _dump(data: dict, output: Path) -> str:
    if output.suffix in (".yaml", ".yml"):
        return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def _write_atomic(output: Path, text: str) -> None:
    """Write through a temp file so an interrupted run leaves nothing behind."""
    output.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=output.parent, prefix=f".{output.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_name, output)
    except BaseException:
        os.unlink(tmp_name)
        raise


def synth_options(func):
    """Options shared by every command that runs a synthesis pass."""
    options = [
        click.argument("doc_path", type=click.Path(exists=True, path_type=Path)),
        click.option("-d", "--data", "data_path", type=click.Path(exists=True, path_type=Path), help="Test data store (JSON/YAML)."),
        click.option("--config", "config_path", type=click.Path(exists=True, path_type=Path), help="Synthesizer config file (YAML/JSON)."),
        click.option("--prefix", "prefixes", multiple=True, help="Path prefix to strip from endpoint keys (repeatable)."),
        click.option("--fallback-field", default=None, help="Primary response field used when none can be derived."),
        click.option("--filter-mode", default=None, type=click.Choice(["all", "config"]), help="Endpoint filter mode."),
        click.option("--allow-list", type=click.Path(exists=True, path_type=Path), help="Allow-list of {method, path, enabled} entries."),
        click.option("--only", multiple=True, help='Only include matching endpoints, e.g. "POST /pets" or "/pets/*".'),
        click.option("--workers", default=None, type=int, help="Operations processed in parallel."),
        click.option("--auth-type", default=None, type=click.Choice(["none", "basic", "bearer", "jwt"]), envvar="API_AUTH_TYPE"),
        click.option("--auth-token", default=None, envvar="API_TOKEN", help="Bearer/JWT token."),
        click.option("--auth-user", default=None, envvar="API_USER"),
        click.option("--auth-password", default=None, envvar="API_PASSWORD"),
        click.option("--model", default=None, help="LLM model used for markdown input."),
        click.option("--format", "fmt", default="auto", type=click.Choice(["auto", "openapi", "swagger", "markdown"]), help="Document format."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _run(params: dict) -> SuiteModel:
    doc_path = params["doc_path"]
    click.echo(f"Parsing {doc_path} (format: {params['fmt']})...", err=True)
    document = _parse_doc(doc_path, params["fmt"], params["model"])

    store = load_store(params["data_path"]) if params["data_path"] else TestDataStore()
    config = _build_config(
        params["config_path"],
        params["prefixes"],
        params["fallback_field"],
        params["filter_mode"],
        params["allow_list"],
        params["workers"],
        params["auth_type"],
        params["auth_token"],
        params["auth_user"],
        params["auth_password"],
    )

    synthesizer = SuiteSynthesizer(document, store, config)
    return synthesizer.build(params["only"])


def _handle_errors(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SynthError as e:
            raise click.ClickException(str(e)) from e
    return wrapper


@click.group()
@click.option("--log-level", default="WARNING", envvar="API_TEST_SYNTH_LOG_LEVEL",
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
def main(log_level: str):
    """API Test Synth: derive test scenarios and payloads from OpenAPI documents."""
    setup_logging(log_level)


@main.command()
@synth_options
@click.option("-o", "--output", required=True, type=click.Path(path_type=Path), help="Suite output file (.json or .yaml).")
@_handle_errors
def synth(output: Path, **params):
    """Synthesize the test-suite model for an API document."""
    suite = _run(params)

    _write_atomic(output, _dump(suite.model_dump(mode="json"), output))
    click.echo(f"{len(suite.scenarios)} scenarios for {suite.coverage.operations} operations saved to {output}")
    if suite.coverage.issues:
        click.echo(f"{len(suite.coverage.issues)} coverage notes, run `coverage` for details")


@main.command()
@synth_options
@_handle_errors
def coverage(**params):
    """Print the coverage report for an API document and test data store."""
    suite = _run(params)
    report = suite.coverage

    click.echo(f"Operations: {report.operations}")
    if not report.issues:
        click.echo("No coverage gaps.")
        return
    for kind in IssueKind:
        issues = report.of_kind(kind)
        if not issues:
            continue
        click.echo(f"\n{kind.value} ({len(issues)}):")
        for issue in issues:
            detail = f" - {issue.detail}" if issue.detail else ""
            click.echo(f"  {issue.endpoint}{detail}")


@main.command()
@click.argument("suite_path", type=click.Path(exists=True, path_type=Path))
@click.argument("scenario_id")
@click.argument("response_path", type=click.Path(exists=True, path_type=Path))
@click.option("--status", "status_code", required=True, type=int, help="Actual HTTP status code.")
@_handle_errors
def verify(suite_path: Path, scenario_id: str, response_path: Path, status_code: int):
    """Check a recorded response body against one scenario's assertions."""
    try:
        suite = SuiteModel.model_validate(yaml.safe_load(suite_path.read_text(encoding="utf-8")))
        body = yaml.safe_load(response_path.read_text(encoding="utf-8"))
    except (yaml.YAMLError, ValueError) as e:
        raise click.ClickException(f"cannot load input: {e}") from e

    scenario = next((s for s in suite.scenarios if s.id == scenario_id), None)
    if scenario is None:
        raise click.ClickException(f"no scenario '{scenario_id}' in {suite_path}")

    report = validate_response(scenario, status_code, body)
    for result in report.results:
        label = result.assertion.path or "status"
        click.echo(f"{'PASS' if result.passed else 'FAIL'} {result.assertion.kind} {label} {result.message}".rstrip())

    if not report.passed:
        raise SystemExit(1)
