# Overview: Flask API routes for the converter service; parses input and returns JSON responses.

import os
import time

from flask import Blueprint, request, jsonify, current_app

from .runner import RenderError, RenderTimeout, render_pdf, split_pages


PDF_MODES = ("perSheet", "singlePdf")

convert_bp = Blueprint("convert", __name__)


def _parse_body(body) -> tuple[dict | None, str | None]:
    if not isinstance(body, dict):
        return None, "JSON body required"

    input_path = body.get("inputPath")
    output_dir = body.get("outputDir")
    if not input_path or not output_dir:
        return None, "Missing inputPath or outputDir"

    mode = body.get("mode") or "perSheet"
    if mode not in PDF_MODES:
        return None, f"mode must be one of: {', '.join(PDF_MODES)}"

    sheets = body.get("sheets") or []
    if not isinstance(sheets, list) or not all(isinstance(s, str) and s for s in sheets):
        return None, "sheets must be a list of sheet names"
    if any("/" in s or "\\" in s for s in sheets):
        return None, "sheet names must not contain path separators"

    timeout_ms = body.get("timeoutMs")
    if timeout_ms is not None and (isinstance(timeout_ms, bool) or not isinstance(timeout_ms, (int, float)) or timeout_ms <= 0):
        return None, "timeoutMs must be a positive number"

    return {
        "input_path": input_path,
        "output_dir": output_dir,
        "mode": mode,
        "sheets": sheets,
        "timeout_ms": timeout_ms,
    }, None


@convert_bp.get("/health")
def health():
    return {"status": "healthy"}, 200


@convert_bp.post("/convert")
def convert():
    """
    Render a filled workbook to PDF.

    Body: {inputPath, outputDir, sheets, mode, timeoutMs?}

    Returns:
    - 200 {files, logs}
    - 400 invalid request
    - 500 renderer failure, with logs
    - 504 renderer killed at the deadline, with logs
    """
    params, error = _parse_body(request.get_json(silent=True))
    if error:
        return jsonify({"error": error}), 400

    if not os.path.isfile(params["input_path"]):
        return jsonify({"error": "Input workbook not found"}), 400

    limit = current_app.config["CONVERT_TIMEOUT_SECONDS"]
    if params["timeout_ms"]:
        limit = min(limit, params["timeout_ms"] / 1000)
    deadline = time.monotonic() + limit

    logs: dict = {}
    try:
        os.makedirs(params["output_dir"], exist_ok=True)
        pdf_path, logs["soffice"] = render_pdf(
            current_app.config["SOFFICE_BIN"],
            params["input_path"],
            params["output_dir"],
            deadline,
        )

        if params["mode"] == "singlePdf":
            files = [pdf_path]
        else:
            files, logs["pdfseparate"] = split_pages(
                current_app.config["PDFSEPARATE_BIN"],
                pdf_path,
                params["output_dir"],
                params["sheets"],
                deadline,
            )

    except RenderTimeout as e:
        current_app.logger.error("Conversion of %s timed out: %s", params["input_path"], e)
        logs[e.logs.get("step", "render")] = e.logs
        return jsonify({"error": str(e), "logs": logs}), 504
    except RenderError as e:
        current_app.logger.error("Conversion of %s failed: %s", params["input_path"], e)
        logs[e.logs.get("step", "render")] = e.logs
        return jsonify({"error": str(e), "logs": logs}), 500
    except OSError as e:
        current_app.logger.exception("Conversion output directory unavailable")
        return jsonify({"error": f"Output directory unavailable: {e}", "logs": logs}), 500

    current_app.logger.info("Converted %s into %d file(s)", params["input_path"], len(files))
    return jsonify({"files": files, "logs": logs}), 200
