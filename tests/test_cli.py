"""End-to-end tests for the command-line interface."""

import json
import os
import sys
import zipfile

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from tests.create_sample_workbook import create_sample_workbook
from datasheet_generator.config import load_config
from datasheet_generator.main import main
from datasheet_generator.storage import JsonStore, STATE_KEY


@pytest.fixture
def env(tmp_path):
    state_dir = str(tmp_path / "state")
    template = create_sample_workbook(str(tmp_path / "template.xlsx"))

    def run(*args):
        return main(["--state-dir", state_dir, "--log-level", "WARNING", *args])

    return run, state_dir, template, tmp_path


def _state(state_dir):
    return JsonStore(state_dir).load(STATE_KEY)


class TestConfig:
    def test_defaults_without_file(self):
        cfg = load_config(None)
        assert cfg["default_key_field"] == "ItemNo"
        assert cfg["state_dir"] == ".dsgen"

    def test_yaml_overrides(self, tmp_path):
        path = tmp_path / "dsgen.yaml"
        path.write_text("default_key_field: TagNo\nlog_level: DEBUG\n")
        cfg = load_config(str(path))
        assert cfg["default_key_field"] == "TagNo"
        assert cfg["log_level"] == "DEBUG"
        assert cfg["default_prefix"] == "PROJECT_"


class TestBindingCommands:
    def test_bind_and_unbind_persist(self, env):
        run, state_dir, _, _ = env
        assert run("bind-global", "Datasheet", "B2", "Alpha") == 0
        assert run("bind-variable", "TagNo", "Datasheet", "B3") == 0
        state = _state(state_dir)
        assert state["globalEdits"] == {"Datasheet": {"B2": "Alpha"}}
        assert state["fileNameField"] == "TagNo"

        assert run("unbind-global", "Datasheet", "B2") == 0
        assert run("unbind-variable", "Datasheet", "B3") == 0
        state = _state(state_dir)
        assert state["globalEdits"] == {}
        assert state["variableMappings"] == {}
        assert state["fileNameField"] == "ItemNo"

    def test_paste_and_edit_values(self, env):
        run, state_dir, _, tmp_path = env
        paste = tmp_path / "paste.txt"
        paste.write_text("P-1\tP-2\r\nP-3;P-4\n")
        assert run("paste-values", "ItemNo", "--file", str(paste)) == 0
        assert run("add-value", "ItemNo", "P-5") == 0
        assert run("delete-value", "ItemNo", "2") == 0
        assert _state(state_dir)["variableValues"]["ItemNo"] == ["P-1", "P-3", "P-4", "P-5"]
        assert run("clear-values", "ItemNo") == 0
        assert _state(state_dir)["variableValues"]["ItemNo"] == []

    def test_empty_paste_fails(self, env):
        run, _, _, tmp_path = env
        paste = tmp_path / "blank.txt"
        paste.write_text(" \n\t\n")
        assert run("paste-values", "ItemNo", "--file", str(paste)) == 1

    def test_move(self, env):
        run, state_dir, _, _ = env
        run("bind-variable", "ItemNo", "Datasheet", "B3")
        assert run("move", "Datasheet", "B3", "Datasheet", "C3", "--key", "ItemNo") == 0
        assert _state(state_dir)["variableMappings"]["ItemNo"] == [
            {"sheetName": "Datasheet", "addr": "C3"}
        ]
        assert run("move", "Datasheet", "Z9", "Datasheet", "C3") == 1

    def test_delete_field_resets_key(self, env):
        run, state_dir, _, _ = env
        run("bind-variable", "TagNo", "Datasheet", "B3")
        run("delete-field", "TagNo")
        assert _state(state_dir)["fileNameField"] == "ItemNo"


class TestGenerateCommand:
    def test_generate_zip(self, env):
        run, _, template, tmp_path = env
        run("bind-global", "Datasheet", "B2", "Alpha")
        run("bind-variable", "ItemNo", "Datasheet", "B3")
        paste = tmp_path / "items.txt"
        paste.write_text("P-1\nP-2\n")
        run("paste-values", "ItemNo", "--file", str(paste))
        run("naming", "--prefix", "PRJ_", "--suffix", "_DS")

        out = tmp_path / "out.zip"
        assert run("generate", template, "--output", str(out)) == 0
        with zipfile.ZipFile(out) as zf:
            assert zf.namelist() == ["PRJ_P-1_DS.xlsx", "PRJ_P-2_DS.xlsx"]

    def test_generate_without_values_fails(self, env):
        run, _, template, tmp_path = env
        out = tmp_path / "out.zip"
        assert run("generate", template, "--output", str(out)) == 1
        assert not out.exists()

    def test_inspect_and_show(self, env, capsys):
        run, _, template, _ = env
        run("bind-variable", "ItemNo", "Datasheet", "B3")
        run("add-value", "ItemNo", "P-1")
        assert run("inspect", template, "--sheet", "Datasheet") == 0
        out = capsys.readouterr().out
        assert "Sheets (2): Datasheet, Notes" in out
        assert "[V:ItemNo]" in out
        assert run("show") == 0
        out = capsys.readouterr().out
        assert "PROJECT_P-1_Datasheet.xlsx" in out


class TestProfileCommands:
    def test_save_export_import(self, env):
        run, state_dir, _, tmp_path = env
        run("bind-variable", "ItemNo", "Datasheet", "B3")
        assert run("profile", "save", "Plant A") == 0
        assert run("profile", "save", "Plant A") == 1
        assert run("profile", "overwrite", "Plant A") == 0

        doc = tmp_path / "plant_a.json"
        assert run("profile", "export", "Plant A", "--output", str(doc)) == 0
        assert json.loads(doc.read_text())["name"] == "Plant A"

        assert run("reset") == 0
        assert _state(state_dir) is None
        assert run("profile", "import", str(doc)) == 1
        assert run("profile", "import", str(doc), "--force") == 0
        assert run("profile", "load", "Plant A") == 0
        assert _state(state_dir)["variableMappings"]["ItemNo"] == [
            {"sheetName": "Datasheet", "addr": "B3"}
        ]

    def test_load_missing_profile(self, env):
        run, _, _, _ = env
        assert run("profile", "load", "nope") == 1
