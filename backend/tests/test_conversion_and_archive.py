# Overview: Pytest coverage for the conversion client and the archive builder.

import json
import time
import zipfile

import httpx
import pytest

from procurement.services import archive_service
from procurement.services.archive_service import ArchiveError
from procurement.services.conversion_client import (
    ConversionClient,
    ConversionError,
    KIND_MALFORMED,
    KIND_SERVICE,
    KIND_TIMEOUT,
    KIND_UNREACHABLE,
)


SHEETS = ["Request", "Approval"]


def client_for(handler) -> ConversionClient:
    return ConversionClient("http://converter.test/", timeout=5, transport=httpx.MockTransport(handler))


class TestConversionClient:
    def test_success(self, app):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "files": ["/out/Request.pdf", "/out/Approval.pdf"],
                "logs": {"soffice": {"returncode": 0}},
            })

        result = client_for(handler).convert("/work/filled.xlsx", "/out", SHEETS, "perSheet")

        assert result.files == ["/out/Request.pdf", "/out/Approval.pdf"]
        assert result.logs == {"soffice": {"returncode": 0}}
        assert seen["url"] == "http://converter.test/convert"
        assert seen["body"] == {
            "inputPath": "/work/filled.xlsx",
            "outputDir": "/out",
            "sheets": SHEETS,
            "mode": "perSheet",
            "timeoutMs": 5000,
        }

    def test_single_pdf_returns_one_file(self, app):
        def handler(request):
            return httpx.Response(200, json={"files": ["/out/filled.pdf"]})

        result = client_for(handler).convert("/work/filled.xlsx", "/out", SHEETS, "singlePdf")
        assert result.files == ["/out/filled.pdf"]

    def test_client_deadline(self, app):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(ConversionError) as exc_info:
            client_for(handler).convert("/work/filled.xlsx", "/out", SHEETS, "perSheet")
        assert exc_info.value.kind == KIND_TIMEOUT

    def test_trickling_response_hits_deadline(self, app):
        class TrickleStream(httpx.SyncByteStream):
            def __init__(self):
                self.sent = 0

            def __iter__(self):
                for byte in b'{"files": ["/out/a.pdf"]}':
                    time.sleep(0.05)
                    self.sent += 1
                    yield bytes([byte])

        stream = TrickleStream()

        def handler(request):
            return httpx.Response(200, stream=stream)

        client = ConversionClient("http://converter.test", timeout=0.2, transport=httpx.MockTransport(handler))
        started = time.monotonic()
        with pytest.raises(ConversionError) as exc_info:
            client.convert("/work/filled.xlsx", "/out", ["Request"], "perSheet")

        assert exc_info.value.kind == KIND_TIMEOUT
        assert time.monotonic() - started < 1.0
        assert stream.sent < 25

    def test_service_timeout_status(self, app):
        def handler(request):
            return httpx.Response(504, json={"error": "soffice timed out", "logs": {"soffice": {"stderr": "killed"}}})

        with pytest.raises(ConversionError) as exc_info:
            client_for(handler).convert("/work/filled.xlsx", "/out", SHEETS, "perSheet")
        assert exc_info.value.kind == KIND_TIMEOUT
        assert exc_info.value.status_code == 504

    def test_service_error_carries_diagnostics(self, app):
        def handler(request):
            return httpx.Response(500, json={
                "error": "soffice failed with code 1",
                "logs": {"soffice": {"stderr": "source file could not be loaded", "returncode": 1}},
            })

        with pytest.raises(ConversionError) as exc_info:
            client_for(handler).convert("/work/filled.xlsx", "/out", SHEETS, "perSheet")

        err = exc_info.value
        assert err.kind == KIND_SERVICE
        assert err.status_code == 500
        assert "soffice failed with code 1" in str(err)
        assert err.diagnostics["logs"]["soffice"]["returncode"] == 1

    def test_service_error_without_body(self, app):
        def handler(request):
            return httpx.Response(502)

        with pytest.raises(ConversionError) as exc_info:
            client_for(handler).convert("/work/filled.xlsx", "/out", SHEETS, "perSheet")
        assert exc_info.value.kind == KIND_SERVICE
        assert "Bad Gateway" in str(exc_info.value)

    def test_non_json_success(self, app):
        def handler(request):
            return httpx.Response(200, text="<html>ok</html>")

        with pytest.raises(ConversionError) as exc_info:
            client_for(handler).convert("/work/filled.xlsx", "/out", SHEETS, "perSheet")
        assert exc_info.value.kind == KIND_MALFORMED

    def test_missing_files_list(self, app):
        def handler(request):
            return httpx.Response(200, json={"status": "done"})

        with pytest.raises(ConversionError) as exc_info:
            client_for(handler).convert("/work/filled.xlsx", "/out", SHEETS, "perSheet")
        assert exc_info.value.kind == KIND_MALFORMED

    def test_per_sheet_count_mismatch(self, app):
        def handler(request):
            return httpx.Response(200, json={"files": ["/out/Request.pdf"]})

        with pytest.raises(ConversionError) as exc_info:
            client_for(handler).convert("/work/filled.xlsx", "/out", SHEETS, "perSheet")
        assert exc_info.value.kind == KIND_MALFORMED

    def test_unreachable(self, app):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ConversionError) as exc_info:
            client_for(handler).convert("/work/filled.xlsx", "/out", SHEETS, "perSheet")
        assert exc_info.value.kind == KIND_UNREACHABLE

    def test_no_retry(self, app):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500, json={"error": "boom"})

        with pytest.raises(ConversionError):
            client_for(handler).convert("/work/filled.xlsx", "/out", SHEETS, "perSheet")
        assert len(calls) == 1

    def test_from_config(self, app):
        client = ConversionClient.from_config()
        assert client.base_url == "http://converter.test"
        assert client.timeout == app.config["CONVERTER_TIMEOUT_SECONDS"]


class TestArchive:
    def _files(self, tmp_path):
        paths = []
        for name in SHEETS:
            path = tmp_path / f"{name}.pdf"
            path.write_bytes(b"%PDF-1.4 " + name.encode())
            paths.append(str(path))
        return paths

    def test_bundle(self, tmp_path):
        files = self._files(tmp_path)
        archive = archive_service.bundle(files, str(tmp_path / "out"), "hire_general-HIRE-2567-0001.zip")

        with zipfile.ZipFile(archive) as zf:
            assert sorted(zf.namelist()) == ["Approval.pdf", "Request.pdf"]
            assert zf.read("Request.pdf") == b"%PDF-1.4 Request"
            assert all(info.compress_type == zipfile.ZIP_DEFLATED for info in zf.infolist())

    def test_missing_input(self, tmp_path):
        files = self._files(tmp_path) + [str(tmp_path / "Ghost.pdf")]

        with pytest.raises(ArchiveError):
            archive_service.bundle(files, str(tmp_path), "pack.zip")
        assert not (tmp_path / "pack.zip").exists()
