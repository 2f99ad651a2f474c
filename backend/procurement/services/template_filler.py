# Overview: Writes caller inputs into a copy of a spreadsheet template.

from __future__ import annotations

import os
import zipfile
from typing import Iterable, Mapping

from flask import current_app
from openpyxl import load_workbook
from openpyxl.utils.exceptions import CellCoordinatesException, InvalidFileException

from .template_service import InputCell


MACRO_SUFFIXES = {".xlsm", ".xltm"}


class TemplateFillError(Exception):
    """Raised when the template cannot be read or the filled copy cannot be written."""
    pass


def filled_workbook_name(template_path: str) -> str:
    """filled.xlsm for macro templates, filled.xlsx otherwise."""
    suffix = os.path.splitext(template_path)[1].lower() or ".xlsx"
    return f"filled{suffix}"


def fill(
    template_path: str,
    input_cells: Iterable[InputCell],
    inputs: Mapping[str, str],
    output_path: str,
) -> str:
    """
    Fill a copy of template_path and save it to output_path.

    Every mapped cell receives inputs[key], or "" when the caller did not
    send that key. A mapping that names a sheet the template does not have is
    skipped (logged at debug level) instead of failing the fill; pack
    definitions are allowed to be ahead of, or behind, their templates.

    Exactly one file is written. The template itself is never modified.
    """
    keep_vba = os.path.splitext(template_path)[1].lower() in MACRO_SUFFIXES

    try:
        workbook = load_workbook(template_path, keep_vba=keep_vba)
    except (OSError, InvalidFileException, zipfile.BadZipFile, KeyError) as exc:
        raise TemplateFillError(f"Cannot open template {template_path}: {exc}") from exc

    try:
        sheet_names = set(workbook.sheetnames)
        for mapping in input_cells:
            if mapping.sheet not in sheet_names:
                current_app.logger.debug(
                    "Template %s has no sheet %r; skipped input %r -> %s",
                    os.path.basename(template_path),
                    mapping.sheet,
                    mapping.key,
                    mapping.cell,
                )
                continue
            cell = workbook[mapping.sheet][mapping.cell]
            cell.value = inputs.get(mapping.key, "")
            # openpyxl stores a leading "=" as a formula; inputs are always literal text
            if isinstance(cell.value, str) and cell.value.startswith("="):
                cell.data_type = "s"

        out_dir = os.path.dirname(output_path)
        if out_dir:
            os.makedirs(out_dir, exist_ok=True)
        workbook.save(output_path)
    except (OSError, ValueError, CellCoordinatesException) as exc:
        # Malformed cell coordinates in the pack mapping land here too
        raise TemplateFillError(f"Cannot write filled workbook {output_path}: {exc}") from exc
    finally:
        workbook.close()

    return output_path
