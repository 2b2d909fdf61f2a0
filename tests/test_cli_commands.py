"""Tests for CLI command handlers."""

import httpx
import pytest

from cli import main as cli_main
from cli.commands import handle_cleanup, handle_types, handle_upload
from cli.models import CleanupCommand, TypesCommand, UploadCommand


def test_handle_upload(api_client, temp_config, sample_file, storage_root):
    """Upload through the real app using the injected test client."""
    cmd = UploadCommand(path=str(sample_file), document_type="THESIS", chunk_size=10)

    result = handle_upload(cmd, config=temp_config, http_client=api_client, show_progress=False)

    assert result.startswith("Uploaded test.txt (26 B) as THESIS")
    assert "File ID: test.txt_3_" in result
    assert (storage_root / "thesis" / "test.txt").read_text() == "Sample content for testing"


def test_handle_upload_uses_config_defaults(api_client, temp_config, sample_file, storage_root):
    temp_config.data['document_type'] = 'SYNERGY'

    result = handle_upload(
        UploadCommand(path=str(sample_file)), config=temp_config, http_client=api_client, show_progress=False
    )

    assert "as SYNERGY" in result
    assert (storage_root / "synergy" / "test.txt").exists()


@pytest.mark.parametrize("category,expected", [
    ("Thesis", "THESIS"),
    ("Confluence", "CONFLUENCE"),
    ("Poster", "HELLO"),
])
def test_handle_upload_derives_type_from_category(
    api_client, temp_config, sample_file, storage_root, category, expected
):
    temp_config.data['document_type'] = 'SYNERGY'
    cmd = UploadCommand(path=str(sample_file), category=category)

    result = handle_upload(cmd, config=temp_config, http_client=api_client, show_progress=False)

    assert result.startswith(f"Uploaded test.txt (26 B) as {expected}")
    assert (storage_root / expected.lower() / "test.txt").exists()


def test_explicit_type_wins_over_category(api_client, temp_config, sample_file):
    cmd = UploadCommand(path=str(sample_file), document_type="DISSERTATION", category="Thesis")

    result = handle_upload(cmd, config=temp_config, http_client=api_client, show_progress=False)

    assert "as DISSERTATION" in result


def test_handle_upload_warns_about_unknown_type(api_client, temp_config, sample_file, storage_root):
    cmd = UploadCommand(path=str(sample_file), document_type="POSTER")

    result = handle_upload(cmd, config=temp_config, http_client=api_client, show_progress=False)

    assert result.startswith("Warning: unknown document type 'POSTER'")
    assert "as HELLO" in result
    assert (storage_root / "hello" / "test.txt").exists()


def test_handle_upload_missing_file(temp_config, tmp_path):
    result = handle_upload(UploadCommand(path=str(tmp_path / "nope.pdf")), config=temp_config)

    assert result == f"Error: File not found: {tmp_path / 'nope.pdf'}"


def test_handle_upload_reports_server_error(temp_config, sample_file):
    def reject(request):
        return httpx.Response(500, json={"error": "Failed to store chunk: disk full", "code": "STORAGE_ERROR"})

    client = httpx.Client(transport=httpx.MockTransport(reject), base_url="http://upload.test")

    result = handle_upload(
        UploadCommand(path=str(sample_file)), config=temp_config, http_client=client, show_progress=False
    )

    assert result == "Upload failed: Failed to store chunk: disk full"


def test_handle_upload_progress_line(api_client, temp_config, sample_file, capsys):
    handle_upload(
        UploadCommand(path=str(sample_file), chunk_size=13), config=temp_config, http_client=api_client
    )

    out = capsys.readouterr().out
    assert "\rUploading test.txt:" in out
    assert "100.0%" in out
    assert out.endswith("\n")


def test_handle_cleanup():
    requests = []

    def server(request):
        requests.append(request)
        return httpx.Response(200, json={"message": "Cleanup successful"})

    client = httpx.Client(transport=httpx.MockTransport(server), base_url="http://upload.test")

    result = handle_cleanup(CleanupCommand(file_id="a.pdf_3_abc"), http_client=client)

    assert result == "Cleanup successful: a.pdf_3_abc"
    assert requests[0].url.path == "/api/upload/cleanup"


def test_handle_cleanup_against_server(api_client, upload_service):
    result = handle_cleanup(CleanupCommand(file_id="unknown"), http_client=api_client)
    assert result == "Cleanup successful: unknown"


def test_handle_cleanup_network_error():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.Client(transport=httpx.MockTransport(refuse), base_url="http://upload.test")

    result = handle_cleanup(CleanupCommand(file_id="x"), http_client=client)

    assert result.startswith("Error: Network error occurred")


def test_handle_types_marks_default(temp_config):
    temp_config.data['document_type'] = 'THESIS'

    result = handle_types(TypesCommand(), config=temp_config)

    assert result.splitlines() == [
        "Document types:",
        "  THESIS (default)",
        "  DISSERTATION",
        "  CONFLUENCE",
        "  SYNERGY",
        "  HELLO",
    ]


class TestOneShotMode:

    def test_dispatches_command(self, monkeypatch, capsys):
        seen = []

        def fake_dispatch(cmd):
            seen.append(cmd)
            return "Cleanup successful: abc"

        monkeypatch.setattr(cli_main, "dispatch_command", fake_dispatch)

        assert cli_main.run_once(["cleanup", "abc"]) == 0
        assert seen == [CleanupCommand(file_id="abc")]
        assert capsys.readouterr().out == "Cleanup successful: abc\n"

    def test_failure_exit_code(self, monkeypatch):
        monkeypatch.setattr(cli_main, "dispatch_command", lambda cmd: "Upload failed: boom")

        assert cli_main.run_once(["upload", "a.pdf"]) == 1

    def test_parse_error_exit_code(self, capsys):
        assert cli_main.run_once(["upload"]) == 2
        assert "upload requires a file path" in capsys.readouterr().err

    @pytest.mark.parametrize("arg", ["help", "--help"])
    def test_help(self, arg, capsys):
        assert cli_main.run_once([arg]) == 0
        assert "Available commands" in capsys.readouterr().out
