#!/usr/bin/env python
"""
Datasheet Generator - CLI entry point.

Bind template cells once, then generate one workbook per key-field value
and bundle them into a zip archive.  The workspace is saved in the state
directory after every command.

Usage:
    # Look at a template (all sheets, or one)
    python -m datasheet_generator.main inspect template.xlsx [--sheet Sheet1] [--rows 50 --cols 12 | --fit]

    # GLOBAL bindings: same value in every output
    python -m datasheet_generator.main bind-global Sheet1 B2 "ACME Corp"
    python -m datasheet_generator.main unbind-global Sheet1 B2

    # VARIABLE bindings and their values
    python -m datasheet_generator.main bind-variable ItemNo Sheet1 C4
    python -m datasheet_generator.main paste-values ItemNo --file items.txt
    python -m datasheet_generator.main add-value ItemNo P-104

    # Move a binding to another cell
    python -m datasheet_generator.main move Sheet1 C4 Sheet1 D4 [--key ItemNo]

    # Naming and generation
    python -m datasheet_generator.main naming --prefix PRJ_ --suffix _DS --key-field ItemNo
    python -m datasheet_generator.main generate template.xlsx [--output out.zip]

    # Profiles
    python -m datasheet_generator.main profile save "Plant A"
    python -m datasheet_generator.main profile export "Plant A" --output plant_a.json
"""

import argparse
import io
import logging
import sys

from openpyxl import load_workbook

from .address_space import Address, load_sheet_preview, render_preview
from .archive import archive_name, generate_archive
from .config import DEFAULT_CONFIG_FILE, load_config
from .errors import DatasheetError, MalformedRangeError
from .generator import preview_file_names, read_template
from .profiles import ProfileStore
from .relocation import BindingRef
from .storage import JsonStore, STATE_KEY, load_workspace, save_workspace
from .workspace import Workspace

logger = logging.getLogger(__name__)


def setup_logging(level_str: str = "INFO"):
    """Configure logging."""
    level = getattr(logging, level_str.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%H:%M:%S'
    )


def build_parser():
    parser = argparse.ArgumentParser(
        description="Generate one workbook per value from a single Excel template"
    )
    parser.add_argument("--config", default=DEFAULT_CONFIG_FILE,
                        help=f"Path to config YAML file (default: {DEFAULT_CONFIG_FILE})")
    parser.add_argument("--state-dir", default=None,
                        help="Directory holding the saved workspace and profiles (overrides config)")
    parser.add_argument("--log-level", default=None,
                        help="Logging level: DEBUG, INFO, WARNING, ERROR")
    sub = parser.add_subparsers(dest="command", required=True)

    # ---- inspect ----
    p = sub.add_parser("inspect", help="Show template sheets with bound cells marked")
    p.add_argument("template", help="Path to the template workbook (.xlsx)")
    p.add_argument("--sheet", default=None, help="Only show this sheet")
    p.add_argument("--rows", type=int, default=None, help="Preview rows (10-2000)")
    p.add_argument("--cols", type=int, default=None, help="Preview columns (5-500)")
    p.add_argument("--fit", action="store_true", help="Fit the preview to the used range")

    # ---- GLOBAL ----
    p = sub.add_parser("bind-global", help="Bind a cell to one value for every output")
    p.add_argument("sheet")
    p.add_argument("cell")
    p.add_argument("value")

    p = sub.add_parser("unbind-global", help="Remove a GLOBAL binding")
    p.add_argument("sheet")
    p.add_argument("cell")

    sub.add_parser("clear-global", help="Remove every GLOBAL binding")

    # ---- VARIABLE ----
    p = sub.add_parser("bind-variable", help="Map a cell to a VARIABLE field")
    p.add_argument("key", help="Field name, e.g. ItemNo")
    p.add_argument("sheet")
    p.add_argument("cell")

    p = sub.add_parser("unbind-variable",
                       help="Remove a VARIABLE mapping (from every field unless --key)")
    p.add_argument("sheet")
    p.add_argument("cell")
    p.add_argument("--key", default=None)

    p = sub.add_parser("delete-field", help="Delete a VARIABLE field with its values")
    p.add_argument("key")

    p = sub.add_parser("add-value", help="Append one value to a field")
    p.add_argument("key")
    p.add_argument("value")

    p = sub.add_parser("paste-values",
                       help="Append values copied from a spreadsheet range (file or stdin)")
    p.add_argument("key")
    p.add_argument("--file", default=None, help="Text file to read (default: stdin)")

    p = sub.add_parser("delete-value", help="Delete the value at a 1-based position")
    p.add_argument("key")
    p.add_argument("position", type=int)

    p = sub.add_parser("clear-values", help="Delete all values of a field")
    p.add_argument("key")

    # ---- relocation ----
    p = sub.add_parser("move", help="Move a binding to another cell")
    p.add_argument("sheet")
    p.add_argument("cell")
    p.add_argument("to_sheet")
    p.add_argument("to_cell")
    p.add_argument("--key", default=None,
                   help="Move this VARIABLE field's mapping (default: the GLOBAL binding)")

    # ---- naming / summary ----
    p = sub.add_parser("naming", help="Set file-name prefix, suffix and key field")
    p.add_argument("--prefix", default=None)
    p.add_argument("--suffix", default=None)
    p.add_argument("--key-field", default=None)

    sub.add_parser("show", help="Summarize bindings, values and output names")

    # ---- generate ----
    p = sub.add_parser("generate", help="Generate all outputs into one zip archive")
    p.add_argument("template", help="Path to the template workbook (.xlsx)")
    p.add_argument("--output", default=None, help="Archive path (default: derived from naming)")
    p.add_argument("--output-dir", default=None, help="Directory for the default archive path")

    # ---- profiles ----
    p_prof = sub.add_parser("profile", help="Manage named profiles")
    psub = p_prof.add_subparsers(dest="profile_command", required=True)
    for name, help_text in (("save", "Save the workspace as a new profile"),
                            ("overwrite", "Save the workspace, replacing a profile"),
                            ("load", "Replace the workspace with a profile"),
                            ("delete", "Delete a profile")):
        pp = psub.add_parser(name, help=help_text)
        pp.add_argument("name")
    psub.add_parser("list", help="List profiles")
    pp = psub.add_parser("export", help="Write a profile as a JSON document")
    pp.add_argument("name")
    pp.add_argument("--output", default=None, help="Output path (default: <name>.json)")
    pp = psub.add_parser("import", help="Store a profile from a JSON document")
    pp.add_argument("file")
    pp.add_argument("--force", action="store_true", help="Replace an existing profile")

    sub.add_parser("reset", help="Clear the workspace and its saved state")
    return parser


# ------------------------------------------------------------------
# Command handlers
# ------------------------------------------------------------------

def _inspect(args, ws):
    template_bytes = read_template(args.template)
    wb = load_workbook(io.BytesIO(template_bytes))
    print(f"Sheets ({len(wb.sheetnames)}): {', '.join(wb.sheetnames)}")

    ws.set_preview_limits(args.rows, args.cols)
    sheets = [args.sheet] if args.sheet else wb.sheetnames
    for sn in sheets:
        if sn not in wb.sheetnames:
            logger.error(f"Sheet '{sn}' not found in template")
            continue
        try:
            preview = load_sheet_preview(wb, sn)
        except MalformedRangeError as e:
            logger.error(str(e))
            continue
        if args.fit:
            ws.fit_preview_to(preview.used_range)
        ur = preview.used_range
        print()
        print(f"== {sn}  (used range {ur.rows}x{ur.cols}, "
              f"{len(preview.merges.origins)} merged regions)")
        print(render_preview(preview, ws))
    wb.close()


def _show(ws):
    b = ws.bindings
    globals_flat = b.flatten_globals()
    print(f"GLOBAL bindings: {len(globals_flat)}")
    for sheet, addr, value in globals_flat:
        print(f"  {sheet}!{addr} = {value}")

    keys = b.field_keys()
    print(f"VARIABLE fields: {len(keys)}")
    for key in keys:
        marker = " (key field)" if key == ws.key_field else ""
        maps = ", ".join(str(a) for a in b.mappings(key)) or "(none)"
        values = b.values(key)
        print(f"  {key}{marker}: mappings {maps}; {len(values)} value(s)")
        for i, v in enumerate(values, 1):
            print(f"    {i}. {v}")

    count = len(b.values(ws.key_field))
    print(f"File names: prefix={ws.naming.prefix!r} key field={ws.key_field!r} "
          f"suffix={ws.naming.suffix!r}")
    print(f"Files to generate: {count}")
    for name in preview_file_names(ws):
        print(f"  - {name}")
    print(f"Archive: {archive_name(ws.naming)}")


def _move(args, ws):
    source = Address(args.sheet, args.cell)
    ref = BindingRef.variable(args.key, source) if args.key else BindingRef.global_(source)
    if not ws.relocation.arm(ref):
        logger.error(f"No binding to move: {ref}")
        return 1
    ws.relocation.commit(Address(args.to_sheet, args.to_cell))
    return 0


def _profile(args, ws, profiles):
    cmd = args.profile_command
    if cmd == "save":
        profiles.save(args.name, ws.to_state())
    elif cmd == "overwrite":
        profiles.overwrite(args.name, ws.to_state())
    elif cmd == "load":
        ws.load_state(profiles.load(args.name))
        logger.info(f"Loaded profile '{args.name}'")
    elif cmd == "delete":
        profiles.delete(args.name)
    elif cmd == "list":
        entries = profiles.list_profiles()
        if not entries:
            print("(no profiles)")
        for name, updated in entries:
            print(f"{name}\t{updated}")
    elif cmd == "export":
        out = args.output or f"{args.name}.json"
        with open(out, "wb") as f:
            f.write(profiles.export_document(args.name))
        logger.info(f"Exported profile '{args.name}' to {out}")
    elif cmd == "import":
        with open(args.file, "rb") as f:
            name, state = profiles.import_document(f.read())
        if args.force:
            profiles.overwrite(name, state)
        else:
            profiles.save(name, state)
    return 0


def run(args, config):
    """Execute one parsed command against the saved workspace."""
    store = JsonStore(config["state_dir"])
    ws = Workspace(
        default_key_field=config["default_key_field"],
        default_prefix=config["default_prefix"],
        default_suffix=config["default_suffix"],
    )
    load_workspace(store, ws)
    cmd = args.command
    status = 0

    if cmd == "inspect":
        _inspect(args, ws)
    elif cmd == "bind-global":
        ws.bindings.bind_global(Address(args.sheet, args.cell), args.value)
    elif cmd == "unbind-global":
        ws.bindings.unbind_global(Address(args.sheet, args.cell))
    elif cmd == "clear-global":
        ws.bindings.clear_all_global()
    elif cmd == "bind-variable":
        ws.bind_variable(args.key.strip(), Address(args.sheet, args.cell))
    elif cmd == "unbind-variable":
        address = Address(args.sheet, args.cell)
        if args.key:
            removed = ws.unbind_variable(args.key, address)
        else:
            removed = ws.unbind_variable_everywhere(address)
        if not removed:
            logger.warning(f"No VARIABLE mapping at {address}")
    elif cmd == "delete-field":
        ws.delete_field(args.key)
    elif cmd == "add-value":
        ws.values.append(args.key, args.value)
    elif cmd == "paste-values":
        if args.file:
            with open(args.file, "r", encoding="utf-8") as f:
                text = f.read()
        else:
            text = sys.stdin.read()
        ws.values.bulk_append(args.key, text)
    elif cmd == "delete-value":
        ws.values.delete_at(args.key, args.position - 1)
    elif cmd == "clear-values":
        ws.values.clear_all(args.key)
    elif cmd == "move":
        status = _move(args, ws)
    elif cmd == "naming":
        if args.prefix is not None:
            ws.naming.prefix = args.prefix
        if args.suffix is not None:
            ws.naming.suffix = args.suffix
        if args.key_field is not None:
            ws.set_key_field(args.key_field)
    elif cmd == "show":
        _show(ws)
    elif cmd == "generate":
        generate_archive(
            args.template, ws,
            output_dir=args.output_dir or config["output_dir"],
            output_path=args.output,
            extension=config["output_extension"],
        )
    elif cmd == "profile":
        status = _profile(args, ws, ProfileStore(store))
    elif cmd == "reset":
        ws.reset()
        store.remove(STATE_KEY)
        logger.info("Workspace reset")
        return 0

    save_workspace(store, ws)
    return status


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)
    if args.state_dir:
        config["state_dir"] = args.state_dir
    setup_logging(args.log_level or config.get("log_level", "INFO"))

    try:
        status = run(args, config)
    except DatasheetError as e:
        logger.error(str(e))
        status = 1
    except OSError as e:
        logger.error(f"{e.__class__.__name__}: {e}")
        status = 1
    return status


if __name__ == "__main__":
    sys.exit(main())
