# Overview: HTTP client for the external spreadsheet -> PDF rendering service.

"""
Conversion Client

Contract with the converter service:

    POST {CONVERTER_URL}/convert
    {"inputPath", "outputDir", "sheets": [...], "mode": "perSheet"|"singlePdf", "timeoutMs"}

    200 -> {"files": [...], "logs": {...}?}
    non-200 -> {"error": "...", "logs": {...}?} or an empty body

The client applies its own hard deadline independent of timeoutMs. It never
retries: the renderer is not idempotent (it accumulates temp files), so a
failure is terminal for the generation attempt.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

import httpx
from flask import current_app


DEFAULT_DEADLINE_SECONDS = 120.0

KIND_TIMEOUT = "timeout"
KIND_SERVICE = "service"
KIND_MALFORMED = "malformed"
KIND_UNREACHABLE = "unreachable"


class ConversionError(Exception):
    """
    Conversion failed. kind tells timeout apart from a service-reported error.

    diagnostics carries whatever the service sent back (status code, error
    field, stdout/stderr/returncode logs) for operators.
    """

    def __init__(self, message: str, *, kind: str, status_code: int | None = None, diagnostics: dict | None = None):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code
        self.diagnostics = diagnostics or {}

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "kind": self.kind,
            "status_code": self.status_code,
            "diagnostics": self.diagnostics,
        }


@dataclass(frozen=True)
class ConversionResult:
    files: list[str]
    logs: dict[str, Any] = field(default_factory=dict)


def _error_detail(response: httpx.Response) -> tuple[str, dict]:
    """Parsed {"error": ...} body when present, else the raw status text."""
    detail = response.reason_phrase or f"HTTP {response.status_code}"
    diagnostics: dict[str, Any] = {}
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        if body.get("error"):
            detail = str(body["error"])
        if isinstance(body.get("logs"), dict):
            diagnostics["logs"] = body["logs"]
    elif response.text:
        diagnostics["body"] = response.text[:2000]
    return detail, diagnostics


class ConversionClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_DEADLINE_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls) -> "ConversionClient":
        return cls(
            current_app.config["CONVERTER_URL"],
            timeout=float(current_app.config.get("CONVERTER_TIMEOUT_SECONDS", DEFAULT_DEADLINE_SECONDS)),
        )

    def convert(
        self,
        workbook_path: str,
        output_dir: str,
        output_sheets: Sequence[str],
        pdf_mode: str,
        deadline: float | None = None,
    ) -> ConversionResult:
        """
        Render workbook_path into output_dir and return the produced files.

        For perSheet mode files[i] corresponds to output_sheets[i].

        Raises ConversionError (kind timeout / service / malformed / unreachable).
        """
        deadline = deadline or self.timeout
        payload = {
            "inputPath": workbook_path,
            "outputDir": output_dir,
            "sheets": list(output_sheets),
            "mode": pdf_mode,
            "timeoutMs": int(deadline * 1000),
        }
        url = f"{self.base_url}/convert"

        timed_out = ConversionError(
            f"Converter did not respond within {deadline:g}s",
            kind=KIND_TIMEOUT,
            diagnostics={"url": url, "deadline_seconds": deadline},
        )
        # httpx timeouts are per phase; the whole call shares one deadline
        expires_at = time.monotonic() + deadline

        try:
            with httpx.Client(timeout=deadline, transport=self._transport) as client:
                with client.stream("POST", url, json=payload) as streamed:
                    chunks = []
                    for chunk in streamed.iter_bytes():
                        if time.monotonic() >= expires_at:
                            raise timed_out
                        chunks.append(chunk)
                    if time.monotonic() >= expires_at:
                        raise timed_out
                    response = httpx.Response(
                        streamed.status_code,
                        headers={"content-type": streamed.headers.get("content-type", "application/json")},
                        content=b"".join(chunks),
                        request=streamed.request,
                    )
        except httpx.TimeoutException as exc:
            raise timed_out from exc
        except httpx.HTTPError as exc:
            raise ConversionError(
                f"Converter unreachable: {exc}",
                kind=KIND_UNREACHABLE,
                diagnostics={"url": url},
            ) from exc

        if response.status_code != 200:
            detail, diagnostics = _error_detail(response)
            # 504 is the converter's own render deadline expiring
            raise ConversionError(
                f"Converter failed: {detail}",
                kind=KIND_TIMEOUT if response.status_code == 504 else KIND_SERVICE,
                status_code=response.status_code,
                diagnostics=diagnostics,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise ConversionError(
                "Converter returned a non-JSON response",
                kind=KIND_MALFORMED,
                status_code=response.status_code,
                diagnostics={"body": response.text[:2000]},
            ) from exc

        files = body.get("files") if isinstance(body, dict) else None
        if not isinstance(files, list) or not all(isinstance(f, str) for f in files):
            raise ConversionError(
                "Converter response is missing a files list",
                kind=KIND_MALFORMED,
                status_code=response.status_code,
                diagnostics={"body": body},
            )
        if pdf_mode == "perSheet" and len(files) != len(output_sheets):
            raise ConversionError(
                f"Converter produced {len(files)} files for {len(output_sheets)} sheets",
                kind=KIND_MALFORMED,
                status_code=response.status_code,
                diagnostics={"files": files, "sheets": list(output_sheets)},
            )

        logs = body.get("logs") if isinstance(body.get("logs"), dict) else {}
        return ConversionResult(files=files, logs=logs)
