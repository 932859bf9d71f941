"""
Bundle generated workbooks into a single zip archive.
"""

import io
import logging
import os
import zipfile

from .generator import BatchGenerator, sanitize_file_name

logger = logging.getLogger(__name__)

FALLBACK_ARCHIVE_NAME = "output.zip"


def archive_name(naming):
    """``<prefix><suffix>_OUTPUT.zip``, sanitized."""
    return sanitize_file_name(f"{naming.prefix}{naming.suffix or ''}_OUTPUT.zip") or FALLBACK_ARCHIVE_NAME


def build_archive(items):
    """Zip ``(file_name, bytes)`` pairs and return the archive bytes.

    When two items share a name the later one replaces the earlier one,
    with a warning.
    """
    entries = {}
    owners = {}
    for index, (file_name, data) in enumerate(items):
        if file_name in entries:
            logger.warning(
                f"Duplicate output name '{file_name}' (items {owners[file_name] + 1} "
                f"and {index + 1}); keeping item {index + 1}"
            )
        entries[file_name] = data
        owners[file_name] = index

    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for file_name, data in entries.items():
            zf.writestr(file_name, data)
    return buf.getvalue()


def generate_archive(template, workspace, output_dir=".", output_path=None,
                     extension=".xlsx", should_cancel=None):
    """Generate every output and write the zip archive.

    The whole batch is built in memory first, so a failure part-way
    through leaves no archive on disk.

    Returns
    -------
    str
        Path to the written archive.
    """
    generator = BatchGenerator(template, workspace, extension=extension,
                               should_cancel=should_cancel)
    items = list(generator.iter_documents())
    data = build_archive(items)

    if output_path is None:
        output_path = os.path.join(output_dir, archive_name(workspace.naming))
    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
    with open(output_path, "wb") as f:
        f.write(data)

    logger.info(f"Wrote {len(items)} file(s) to archive: {output_path}")
    return output_path
