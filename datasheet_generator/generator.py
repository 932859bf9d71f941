"""
Batch Generator Module
======================
Builds one output workbook per value of the key field.

For output *i* the template is re-loaded from its bytes (a fully
independent copy), every GLOBAL value is written, then every VARIABLE
field writes ``values[i]`` (or ``""`` when its list is shorter) to all of
its mapped cells, in field registration order.  The workbook is then
serialized and yielded together with its file name.

Items are produced strictly in index order, one at a time.  Any failure
stops the batch with :class:`ItemGenerationError` naming the index.
"""

import io
import logging
import os
import re

from openpyxl import load_workbook

from .bindings import BindingStore
from .errors import (
    GenerationCancelledError,
    ItemGenerationError,
    NoGenerationTargetError,
    TemplateNotLoadedError,
)
from .workspace import FileNamingRule

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = ".xlsx"
PREVIEW_LIMIT = 10

_FORBIDDEN_CHARS_RE = re.compile(r'[\\/:*?"<>|]')
_WHITESPACE_RE = re.compile(r"\s+")


# ------------------------------------------------------------------
# File naming
# ------------------------------------------------------------------

def sanitize_file_name(name):
    """Replace characters that are illegal in file names and tidy whitespace."""
    name = _FORBIDDEN_CHARS_RE.sub("_", str(name))
    return _WHITESPACE_RE.sub(" ", name).strip()


def placeholder_core(index):
    """Name core used when the key value at *index* is blank (``DS_001``...)."""
    return f"DS_{index + 1:03d}"


def output_file_name(naming, value, index, extension=DEFAULT_EXTENSION):
    core = (value or "").strip() or placeholder_core(index)
    return sanitize_file_name(f"{naming.prefix}{core}{naming.suffix}{extension}")


def preview_file_names(workspace, limit=PREVIEW_LIMIT, extension=DEFAULT_EXTENSION):
    """First *limit* output names, blank values shown as ``EMPTY``."""
    values = workspace.bindings.values(workspace.key_field)
    if not values:
        return []
    naming = workspace.naming
    names = [
        sanitize_file_name(
            f"{naming.prefix}{(v or '').strip() or 'EMPTY'}{naming.suffix}{extension}")
        for v in values[:limit]
    ]
    if len(values) > limit:
        names.append(f"... (+{len(values) - limit} more)")
    return names


# ------------------------------------------------------------------
# Template handling
# ------------------------------------------------------------------

def read_template(template):
    """Return the template as bytes; *template* may be bytes or a file path."""
    if template is None:
        raise TemplateNotLoadedError("No template workbook was given")
    if isinstance(template, (bytes, bytearray)):
        return bytes(template)
    if not os.path.exists(template):
        raise TemplateNotLoadedError(f"Template not found: {template}")
    with open(template, "rb") as f:
        return f.read()


# ------------------------------------------------------------------
# Generation
# ------------------------------------------------------------------

class BatchGenerator:
    """Generate output workbooks from a template and a workspace snapshot.

    Parameters
    ----------
    template : bytes or str
        Template workbook bytes or path.
    workspace : Workspace
        Bindings, naming rule and key field.  A snapshot of the bindings is
        taken on construction; later edits to the workspace do not affect
        this generator.
    extension : str
        Extension appended to each output name.
    should_cancel : callable or None
        Checked between items; returning True stops the batch with
        :class:`GenerationCancelledError`.
    """

    def __init__(self, template, workspace, extension=DEFAULT_EXTENSION,
                 should_cancel=None):
        self.template_bytes = read_template(template)
        self.bindings = BindingStore.from_state(workspace.bindings.to_state())
        self.naming = FileNamingRule(workspace.naming.prefix, workspace.naming.suffix)
        self.key_field = workspace.key_field
        self.extension = extension
        self.should_cancel = should_cancel

    @property
    def key_values(self):
        return self.bindings.values(self.key_field)

    def check_target(self):
        """Raise :class:`NoGenerationTargetError` unless there is work to do."""
        if not self.bindings.has_field(self.key_field) or not self.key_values:
            raise NoGenerationTargetError(self.key_field, len(self.key_values))
        return len(self.key_values)

    def file_names(self):
        return [
            output_file_name(self.naming, v, i, self.extension)
            for i, v in enumerate(self.key_values)
        ]

    def build_document(self, index):
        """Return the serialized workbook for output *index*."""
        wb = load_workbook(io.BytesIO(self.template_bytes))
        try:
            for address, value in self.bindings.iter_globals():
                self._write(wb, address, value)

            for key in self.bindings.field_keys():
                values = self.bindings.variable_values.get(key, [])
                v = values[index] if index < len(values) else ""
                for address in self.bindings.variable_mappings.get(key, []):
                    self._write(wb, address, v)

            buf = io.BytesIO()
            wb.save(buf)
            return buf.getvalue()
        finally:
            wb.close()

    @staticmethod
    def _write(wb, address, value):
        if address.sheet_name not in wb.sheetnames:
            logger.warning(f"Sheet '{address.sheet_name}' not in template, skipping {address}")
            return
        cell = wb[address.sheet_name][address.cell_ref]
        cell.value = value
        # openpyxl reads a leading "=" as a formula; values are literal text
        if isinstance(value, str) and value:
            cell.data_type = "s"

    def __iter__(self):
        return self.iter_documents()

    def iter_documents(self):
        """Yield ``(file_name, bytes)`` for each output in index order."""
        count = self.check_target()
        logger.info(f"Generating {count} file(s) from key field '{self.key_field}'")

        for i, file_name in enumerate(self.file_names()):
            if self.should_cancel is not None and self.should_cancel():
                raise GenerationCancelledError(i)
            try:
                data = self.build_document(i)
            except Exception as exc:
                raise ItemGenerationError(i, file_name, exc) from exc
            logger.info(f"  [{i + 1}/{count}] {file_name}")
            yield file_name, data
