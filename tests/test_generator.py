"""Tests for batch generation, file naming and archive packaging."""

import io
import os
import sys
import zipfile

import pytest
from openpyxl import load_workbook

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from tests.create_sample_workbook import create_sample_workbook, sample_workbook_bytes
from datasheet_generator.address_space import Address
from datasheet_generator.archive import archive_name, build_archive, generate_archive
from datasheet_generator.errors import (
    GenerationCancelledError,
    ItemGenerationError,
    NoGenerationTargetError,
    TemplateNotLoadedError,
)
from datasheet_generator.generator import (
    BatchGenerator,
    output_file_name,
    preview_file_names,
    sanitize_file_name,
)
from datasheet_generator.workspace import FileNamingRule, Workspace

SHEET = "Datasheet"


@pytest.fixture(scope="module")
def template():
    return sample_workbook_bytes()


@pytest.fixture
def workspace():
    ws = Workspace()
    ws.bindings.bind_global(Address(SHEET, "B2"), "Alpha Project")
    ws.bind_variable("ItemNo", Address(SHEET, "B3"))
    ws.bind_variable("ItemNo", Address("Notes", "B2"))
    # the editor never stores blanks; persisted state can
    ws.bindings.variable_values["ItemNo"] = ["P-1", "", "P-3"]
    return ws


def _open(data):
    return load_workbook(io.BytesIO(data))


def _blank(value):
    return value in (None, "")


# ---------------------------------------------------------------------------
# Naming
# ---------------------------------------------------------------------------

class TestNaming:
    def test_sanitize(self):
        assert sanitize_file_name('a\\b/c:d*e?f"g<h>i|j') == "a_b_c_d_e_f_g_h_i_j"
        assert sanitize_file_name("  many   spaces\there ") == "many spaces here"

    def test_output_file_name(self):
        rule = FileNamingRule("PRJ_", "_DS")
        assert output_file_name(rule, " P-1 ", 0) == "PRJ_P-1_DS.xlsx"
        assert output_file_name(rule, "", 1) == "PRJ_DS_002_DS.xlsx"
        assert output_file_name(rule, None, 11) == "PRJ_DS_012_DS.xlsx"
        assert output_file_name(rule, "A/B", 0) == "PRJ_A_B_DS.xlsx"

    def test_archive_name(self):
        assert archive_name(FileNamingRule("PROJECT_", "_Datasheet")) == "PROJECT__Datasheet_OUTPUT.zip"
        assert archive_name(FileNamingRule("", "")) == "_OUTPUT.zip"

    def test_preview_names(self):
        ws = Workspace()
        ws.values.bulk_append("ItemNo", ",".join(f"P-{i}" for i in range(12)))
        names = preview_file_names(ws)
        assert len(names) == 11
        assert names[0] == "PROJECT_P-0_Datasheet.xlsx"
        assert names[-1] == "... (+2 more)"

    def test_preview_names_empty(self):
        assert preview_file_names(Workspace()) == []


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

class TestBatchGenerator:
    def test_three_items_named_in_order(self, template, workspace):
        items = list(BatchGenerator(template, workspace))
        assert [name for name, _ in items] == [
            "PROJECT_P-1_Datasheet.xlsx",
            "PROJECT_DS_002_Datasheet.xlsx",
            "PROJECT_P-3_Datasheet.xlsx",
        ]

    def test_values_substituted(self, template, workspace):
        items = list(BatchGenerator(template, workspace))
        for (name, data), expected in zip(items, ["P-1", None, "P-3"]):
            wb = _open(data)
            assert wb[SHEET]["B2"].value == "Alpha Project"
            if expected is None:
                assert _blank(wb[SHEET]["B3"].value)
                assert _blank(wb["Notes"]["B2"].value)
            else:
                assert wb[SHEET]["B3"].value == expected
                assert wb["Notes"]["B2"].value == expected
            assert wb[SHEET]["A1"].value == "Instrument Datasheet"
            wb.close()

    def test_short_value_list_writes_blank(self, template, workspace):
        workspace.bind_variable("Tag", Address(SHEET, "B4"))
        workspace.values.append("Tag", "T-1")
        items = list(BatchGenerator(template, workspace))
        assert _open(items[0][1])[SHEET]["B4"].value == "T-1"
        assert _blank(_open(items[1][1])[SHEET]["B4"].value)

    def test_variable_wins_over_global(self, template, workspace):
        cell = Address(SHEET, "B5")
        workspace.bindings.bind_global(cell, "G")
        workspace.bind_variable("Service", cell)
        workspace.values.bulk_append("Service", "V0,V1,V2")
        items = list(BatchGenerator(template, workspace))
        for i, (_, data) in enumerate(items):
            assert _open(data)[SHEET]["B5"].value == f"V{i}"

    def test_outputs_are_independent(self, template, workspace):
        gen = BatchGenerator(template, workspace)
        first = gen.build_document(0)
        second = gen.build_document(2)
        assert _open(first)[SHEET]["B3"].value == "P-1"
        assert _open(second)[SHEET]["B3"].value == "P-3"
        assert gen.template_bytes == template
        assert _open(template)[SHEET]["B3"].value is None

    def test_snapshot_ignores_later_edits(self, template, workspace):
        gen = BatchGenerator(template, workspace)
        workspace.values.append("ItemNo", "P-4")
        workspace.bindings.bind_global(Address(SHEET, "B2"), "changed")
        items = list(gen)
        assert len(items) == 3
        assert _open(items[0][1])[SHEET]["B2"].value == "Alpha Project"

    def test_unknown_sheet_skipped(self, template, workspace):
        workspace.bindings.bind_global(Address("Missing", "A1"), "x")
        items = list(BatchGenerator(template, workspace))
        assert len(items) == 3

    def test_custom_naming_and_key_field(self, template, workspace):
        workspace.bind_variable("Tag", Address(SHEET, "B4"))
        workspace.values.bulk_append("Tag", "T:1;T/2")
        workspace.set_key_field("Tag")
        workspace.naming.prefix = "X-"
        workspace.naming.suffix = ""
        names = [n for n, _ in BatchGenerator(template, workspace)]
        assert names == ["X-T_1.xlsx", "X-T_2.xlsx"]

    def test_leading_equals_written_as_text(self, template, workspace):
        workspace.bindings.bind_global(Address(SHEET, "B5"), "=1+1")
        workspace.bind_variable("Tag", Address(SHEET, "B4"))
        workspace.values.append("Tag", "=SUM(")
        data = BatchGenerator(template, workspace).build_document(0)
        ws = _open(data)[SHEET]
        assert ws["B5"].value == "=1+1"
        assert ws["B5"].data_type == "s"
        assert ws["B4"].value == "=SUM("
        assert ws["B4"].data_type == "s"


class TestGenerationFailures:
    def test_missing_key_field(self, template):
        ws = Workspace()
        with pytest.raises(NoGenerationTargetError) as exc:
            list(BatchGenerator(template, ws))
        assert exc.value.count == 0
        assert exc.value.key_field == "ItemNo"

    def test_key_field_without_values(self, template):
        ws = Workspace()
        ws.bind_variable("ItemNo", Address(SHEET, "B3"))
        with pytest.raises(NoGenerationTargetError):
            list(BatchGenerator(template, ws))

    def test_no_template(self, workspace):
        with pytest.raises(TemplateNotLoadedError):
            BatchGenerator(None, workspace)
        with pytest.raises(TemplateNotLoadedError):
            BatchGenerator("/nonexistent/template.xlsx", workspace)

    def test_merge_covered_cell_fails_with_index(self, template, workspace):
        # B1 sits inside the merged title A1:D1
        workspace.bindings.bind_global(Address(SHEET, "B1"), "x")
        with pytest.raises(ItemGenerationError) as exc:
            list(BatchGenerator(template, workspace))
        assert exc.value.index == 0
        assert exc.value.file_name == "PROJECT_P-1_Datasheet.xlsx"
        assert exc.value.__cause__ is not None

    def test_cancel_between_items(self, template, workspace):
        calls = []

        def should_cancel():
            calls.append(1)
            return len(calls) > 1

        gen = BatchGenerator(template, workspace, should_cancel=should_cancel)
        produced = []
        with pytest.raises(GenerationCancelledError) as exc:
            for item in gen:
                produced.append(item)
        assert len(produced) == 1
        assert exc.value.completed == 1


# ---------------------------------------------------------------------------
# Archive
# ---------------------------------------------------------------------------

class TestArchive:
    def test_duplicate_names_last_wins(self):
        data = build_archive([("a.xlsx", b"1"), ("b.xlsx", b"2"), ("a.xlsx", b"3")])
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            assert sorted(zf.namelist()) == ["a.xlsx", "b.xlsx"]
            assert zf.read("a.xlsx") == b"3"

    def test_generate_archive(self, tmp_path, workspace):
        tpl = create_sample_workbook(str(tmp_path / "template.xlsx"))
        out = generate_archive(tpl, workspace, output_dir=str(tmp_path / "out"))
        assert os.path.basename(out) == "PROJECT__Datasheet_OUTPUT.zip"
        with zipfile.ZipFile(out) as zf:
            assert zf.namelist() == [
                "PROJECT_P-1_Datasheet.xlsx",
                "PROJECT_DS_002_Datasheet.xlsx",
                "PROJECT_P-3_Datasheet.xlsx",
            ]
            wb = _open(zf.read("PROJECT_P-3_Datasheet.xlsx"))
            assert wb[SHEET]["B3"].value == "P-3"

    def test_failed_batch_writes_nothing(self, tmp_path, template, workspace):
        workspace.bindings.bind_global(Address(SHEET, "C1"), "x")
        out = tmp_path / "result.zip"
        with pytest.raises(ItemGenerationError):
            generate_archive(template, workspace, output_path=str(out))
        assert not out.exists()
