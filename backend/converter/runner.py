# Overview: Subprocess wrappers around LibreOffice and pdfseparate.

"""
Renderer

LibreOffice prints the workbook's sheets (in workbook order, one page per
sheet for the shipped templates) into one PDF. perSheet mode then splits it
with poppler's pdfseparate and renames page i to the i-th requested sheet.

Every subprocess shares one deadline. On expiry subprocess.run kills the
child and RenderTimeout carries whatever it had printed.
"""

from __future__ import annotations

import os
import shutil
import subprocess
import tempfile
import time
from typing import Sequence


class RenderError(Exception):
    """A renderer step failed; logs holds stdout/stderr/returncode."""

    def __init__(self, message: str, logs: dict | None = None):
        super().__init__(message)
        self.logs = logs or {}


class RenderTimeout(RenderError):
    pass


def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def _logs(step: str, stdout, stderr, returncode: int | None) -> dict:
    return {
        "step": step,
        "stdout": _text(stdout)[-4000:],
        "stderr": _text(stderr)[-4000:],
        "returncode": returncode,
    }


def run_step(step: str, args: Sequence[str], deadline: float) -> dict:
    """
    Run one renderer command before the monotonic deadline expires.

    Returns the captured logs. Raises RenderTimeout or RenderError.
    """
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        raise RenderTimeout(f"{step} not started: deadline exceeded", _logs(step, None, None, None))

    try:
        completed = subprocess.run(
            list(args),
            capture_output=True,
            timeout=remaining,
            check=False,
        )
    except subprocess.TimeoutExpired as exc:
        raise RenderTimeout(
            f"{step} timed out after {remaining:.1f}s",
            _logs(step, exc.stdout, exc.stderr, None),
        ) from exc
    except OSError as exc:
        raise RenderError(f"{step} could not be started: {exc}", _logs(step, None, str(exc), None)) from exc

    logs = _logs(step, completed.stdout, completed.stderr, completed.returncode)
    if completed.returncode != 0:
        raise RenderError(f"{step} failed with code {completed.returncode}", logs)
    return logs


def render_pdf(soffice_bin: str, input_path: str, output_dir: str, deadline: float) -> tuple[str, dict]:
    """Convert input_path into output_dir/<stem>.pdf. Returns (pdf path, logs)."""
    stem = os.path.splitext(os.path.basename(input_path))[0]
    pdf_path = os.path.join(output_dir, f"{stem}.pdf")
    # A PDF from an earlier run must not pass for this run's output
    if os.path.exists(pdf_path):
        os.remove(pdf_path)

    logs = run_step(
        "soffice",
        [
            soffice_bin,
            "--headless",
            "--nologo",
            "--nofirststartwizard",
            "--convert-to",
            "pdf:calc_pdf_Export",
            "--outdir",
            output_dir,
            input_path,
        ],
        deadline,
    )
    if not os.path.isfile(pdf_path):
        raise RenderError("PDF output not found", logs)
    return pdf_path, logs


def split_pages(
    pdfseparate_bin: str,
    pdf_path: str,
    output_dir: str,
    sheets: Sequence[str],
    deadline: float,
) -> tuple[list[str], dict]:
    """
    Split pdf_path into one file per page and name page i after sheets[i].

    Raises RenderError when the PDF has fewer pages than requested sheets.
    Pages are split into a fresh directory so files from earlier runs in
    output_dir are never picked up; pages beyond the sheet list are dropped.
    """
    pages_dir = tempfile.mkdtemp(prefix="pages-", dir=output_dir)
    try:
        pattern = os.path.join(pages_dir, "page-%d.pdf")
        logs = run_step("pdfseparate", [pdfseparate_bin, pdf_path, pattern], deadline)

        files: list[str] = []
        for index, sheet in enumerate(sheets, start=1):
            source = os.path.join(pages_dir, f"page-{index}.pdf")
            if not os.path.isfile(source):
                raise RenderError(
                    f"Rendered PDF has {index - 1} pages for {len(sheets)} sheets",
                    logs,
                )
            target = os.path.join(output_dir, f"{sheet}.pdf")
            os.replace(source, target)
            files.append(target)
        return files, logs
    finally:
        shutil.rmtree(pages_dir, ignore_errors=True)
