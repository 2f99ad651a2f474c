# backend/converter/config.py
from __future__ import annotations
import os


class ConverterConfig:
    # Renderer binaries; override when LibreOffice/poppler live outside PATH
    SOFFICE_BIN = os.environ.get("SOFFICE_BIN", "soffice")
    PDFSEPARATE_BIN = os.environ.get("PDFSEPARATE_BIN", "pdfseparate")

    # Hard limit for one /convert request when the caller sends no timeoutMs
    CONVERT_TIMEOUT_SECONDS = float(os.environ.get("CONVERT_TIMEOUT_SECONDS", "110"))
