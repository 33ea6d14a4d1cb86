import json

import pytest
from click.testing import CliRunner

from src.cli.main import abtest


EXPERIMENT_YAML = """\
id: hero-button-color-test
name: Hero Button Color Test
description: Test different colors for the main CTA button
variants:
  - id: variant_0
    name: Blue Button
  - id: variant_1
    name: Green Button
traffic_allocation: 50
target_pages: ["/home", "/"]
goals: [purchase_initiated, demo_requested]
"""


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def data_dir(tmp_path):
    return str(tmp_path / "data")


@pytest.fixture
def invoke(runner, data_dir):
    def _invoke(*args, **kwargs):
        return runner.invoke(abtest, ["--data-dir", data_dir, *args], **kwargs)

    return _invoke


@pytest.fixture
def definition_file(tmp_path):
    path = tmp_path / "experiment.yaml"
    path.write_text(EXPERIMENT_YAML, encoding="utf-8")
    return str(path)


@pytest.fixture
def created(invoke, definition_file):
    result = invoke("create", definition_file)
    assert result.exit_code == 0, result.output
    return "hero-button-color-test"


def test_create_and_list(invoke, created):
    result = invoke("list")

    assert result.exit_code == 0
    assert created in result.output
    assert "draft" in result.output


def test_list_json_output(invoke, created):
    result = invoke("--json", "list")

    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert [e["id"] for e in payload] == [created]
    assert payload[0]["trafficAllocation"] == 50
    assert payload[0]["targetPages"] == ["/home", "/"]


def test_list_status_filter(invoke, created):
    result = invoke("--json", "list", "--status", "active")

    assert json.loads(result.output) == []


def test_full_lifecycle(invoke, created):
    assert invoke("start", created).exit_code == 0

    assigned = invoke("--json", "assign", created, "--user", "u1", "--path", "/home")
    assert assigned.exit_code == 0
    assignment = json.loads(assigned.output)
    assert assignment["userId"] == "u1"

    converted = invoke("convert", created, "purchase_initiated", "--user", "u1", "--meta", "amount=99")
    assert converted.exit_code == 0
    assert "コンバージョンを記録しました" in converted.output

    duplicate = invoke("convert", created, "purchase_initiated", "--user", "u1")
    assert "記録されませんでした" in duplicate.output

    results = json.loads(invoke("--json", "results", created).output)
    key = "variantA" if assignment["variantId"] == "variant_0" else "variantB"
    assert results[key]["visitors"] == 1
    assert results[key]["conversions"] == 1

    assert invoke("pause", created).exit_code == 0
    completed = invoke("complete", created)
    assert completed.exit_code == 0
    assert "勝者: -" in completed.output


def test_assign_off_target_page(invoke, created):
    invoke("start", created)

    result = invoke("assign", created, "--user", "u1", "--path", "/pricing")

    assert result.exit_code == 0
    assert "割り当て対象外" in result.output


def test_unknown_experiment_exit_code(invoke):
    result = invoke("start", "exp_missing")

    assert result.exit_code == 2
    assert "[エラー]" in result.output


def test_invalid_transition_exit_code(invoke, created):
    result = invoke("pause", created)

    assert result.exit_code == 1
    assert "Cannot pause" in result.output


def test_create_invalid_yaml(invoke, tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("name: Missing goals\nvariants: [A, B]\n", encoding="utf-8")

    result = invoke("create", str(path))

    assert result.exit_code == 1
    assert "goals" in result.output


def test_create_validation_error(invoke, tmp_path):
    path = tmp_path / "bad_alloc.yaml"
    path.write_text("name: X\nvariants: [A, B]\ngoals: [g]\ntrafficAllocation: 100\n", encoding="utf-8")

    result = invoke("create", str(path))

    assert result.exit_code == 1
    assert "trafficAllocation" in result.output


def test_convert_bad_meta(invoke, created):
    result = invoke("convert", created, "purchase_initiated", "--meta", "novalue")

    assert result.exit_code == 2


def test_export_and_import(invoke, runner, created, tmp_path):
    invoke("start", created)
    invoke("assign", created, "--user", "u1")
    export_path = str(tmp_path / "export.json")

    assert invoke("export", created, "-o", export_path).exit_code == 0

    other_dir = str(tmp_path / "other")
    imported = runner.invoke(abtest, ["--data-dir", other_dir, "import", export_path])
    assert imported.exit_code == 0, imported.output

    again = runner.invoke(abtest, ["--data-dir", other_dir, "import", export_path])
    assert again.exit_code == 1

    overwritten = runner.invoke(abtest, ["--data-dir", other_dir, "import", export_path, "--overwrite"])
    assert overwritten.exit_code == 0


def test_export_to_stdout(invoke, created):
    result = invoke("export", created)

    assert json.loads(result.output)["experiment"]["id"] == created


def test_reset_assignments(invoke, created):
    invoke("start", created)
    invoke("assign", created, "--user", "u1")

    result = invoke("reset-assignments", created, "--yes")

    assert result.exit_code == 0
    assert "1件" in result.output


def test_reset_assignments_aborted(invoke, created):
    result = invoke("reset-assignments", input="n\n")

    assert result.exit_code == 0
    assert "中止しました" in result.output


def test_dashboard(invoke, created):
    result = invoke("--json", "dashboard")

    data = json.loads(result.output)
    assert data["totalExperiments"] == 1
    assert data["draftExperiments"] == 1


def test_version(runner):
    result = runner.invoke(abtest, ["--version"])

    assert result.exit_code == 0
    assert "1.0.0" in result.output
