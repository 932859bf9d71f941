"""Excel Datasheet Generator.

Turns one ``.xlsx`` template into many output workbooks:

  * **GLOBAL** bindings write one fixed value into every output.
  * **VARIABLE** fields write their *i*-th value into output *i*.

The number of outputs is the number of values in the *key field*, whose
values also name the files.  All outputs are bundled into one zip archive.
Bindings, values and naming rules live in a :class:`Workspace` that can be
saved locally and snapshotted as named profiles.
"""

from .address_space import Address, UsedRange, decode_used_range, build_grid, merge_map
from .archive import archive_name, build_archive, generate_archive
from .bindings import BindingKind, BindingStore
from .generator import BatchGenerator, output_file_name, sanitize_file_name
from .profiles import ProfileStore
from .relocation import BindingRef, RelocationProtocol
from .value_list import ValueListEditor, parse_bulk_values
from .workspace import FileNamingRule, Workspace

__all__ = [
    "Address",
    "UsedRange",
    "decode_used_range",
    "build_grid",
    "merge_map",
    "archive_name",
    "build_archive",
    "generate_archive",
    "BindingKind",
    "BindingStore",
    "BatchGenerator",
    "output_file_name",
    "sanitize_file_name",
    "ProfileStore",
    "BindingRef",
    "RelocationProtocol",
    "ValueListEditor",
    "parse_bulk_values",
    "FileNamingRule",
    "Workspace",
]
