"""
Tests for scripts/validate_dataset.py.

Run with: pytest tests/test_validate_dataset_cli.py -v
"""

import sys
import json
import pathlib
import importlib.util
sys.path.insert(0, str(pathlib.Path(__file__).resolve().parent.parent))

import pytest

SCRIPT = pathlib.Path(__file__).resolve().parent.parent / "scripts" / "validate_dataset.py"


@pytest.fixture(scope="module")
def cli():
    spec = importlib.util.spec_from_file_location("validate_dataset", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _write(tmp_path, name, data):
    path = tmp_path / name
    path.write_text(json.dumps(data))
    return str(path)


VALID = {
    "clients": [{"ClientID": "C1", "ClientName": "Acme", "PriorityLevel": 2}],
    "workers": [{"WorkerID": "W1", "WorkerName": "Ada", "Skills": "python",
                 "AvailableSlots": [1], "MaxLoadPerPhase": 1}],
    "tasks": [{"TaskID": "T1", "TaskName": "Build", "Duration": 1, "RequiredSkills": "python",
               "MaxConcurrent": 2}],
}


class TestValidateDatasetCli:
    """Exit codes and output modes"""

    def test_valid_file_passes(self, cli, tmp_path, capsys):
        path = _write(tmp_path, "ok.json", VALID)
        assert cli.main(["--file", path]) == 0
        assert "VALIDATION PASSED" in capsys.readouterr().out

    def test_strict_fails_on_warnings(self, cli, tmp_path):
        # MaxConcurrent 2 with a single qualified worker is a warning
        path = _write(tmp_path, "ok.json", VALID)
        assert cli.main(["--file", path, "--strict"]) == 1

    def test_errors_fail(self, cli, tmp_path, capsys):
        data = dict(VALID, tasks=[{"TaskID": "T1", "TaskName": "Build", "Duration": 0,
                                   "RequiredSkills": "python"}])
        path = _write(tmp_path, "bad.json", data)
        assert cli.main(["--file", path]) == 1
        assert "Duration" in capsys.readouterr().out

    def test_json_output(self, cli, tmp_path, capsys):
        path = _write(tmp_path, "ok.json", VALID)
        cli.main(["--file", path, "--json"])
        report = json.loads(capsys.readouterr().out)
        assert report[0]["passed"] == True
        assert report[0]["report"]["summary"]["totalWarnings"] == 1

    def test_missing_file(self, cli, tmp_path):
        assert cli.main(["--file", str(tmp_path / "missing.json")]) == 1

    def test_directory(self, cli, tmp_path):
        _write(tmp_path, "a.json", VALID)
        _write(tmp_path, "b.json", VALID)
        assert cli.main(["--dir", str(tmp_path)]) == 0
