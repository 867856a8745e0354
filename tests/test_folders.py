"""
Tests for bill folder sources (local directory and Microsoft Graph drive).
"""

import httpx
import pytest
import respx
from src.core.config import settings
from src.services.bill_types import identifier_from_name
from src.services.errors import FolderAccessFailure, DocumentFetchFailure
from src.services.folders import GraphFolderSource, LocalFolderSource, create_folder_source

GRAPH = "https://graph.test/v1.0"
TOKEN_URL = "https://login.microsoftonline.com/tenant-1/oauth2/v2.0/token"


@pytest.mark.parametrize("name,expected", [
    ("INV-2024-001.pdf", "INV-2024-001"),
    ("INV-2024-001.PDF", "INV-2024-001"),
    ("bill.v2.pdf", "bill.v2"),
    ("noext", "noext"),
    ("INV\x01X.pdf", "INVX"),
])
def test_identifier_strips_final_extension(name, expected):
    assert identifier_from_name(name) == expected


def test_local_lists_only_pdfs_sorted(bills_folder):
    (bills_folder / "A-first.pdf").write_bytes(b"%PDF")
    (bills_folder / "sub").mkdir()

    refs = LocalFolderSource(str(bills_folder.parent)).list_documents("bills")

    assert [ref.identifier for ref in refs] == ["A-first", "INV-2024-001", "INV-2024-002"]
    assert all(ref.content_type == "application/pdf" for ref in refs)


def test_local_accepts_absolute_folder(bills_folder):
    refs = LocalFolderSource("/nowhere").list_documents(str(bills_folder))
    assert len(refs) == 2


def test_local_fetch_reads_content(bills_folder):
    source = LocalFolderSource(str(bills_folder.parent))
    ref = source.list_documents("bills")[0]

    document = source.fetch(ref)

    assert document.identifier == "INV-2024-001"
    assert document.name == "INV-2024-001.pdf"
    assert document.content == b"%PDF-1.4 bill one"


def test_local_fetch_of_vanished_file_fails(bills_folder):
    source = LocalFolderSource(str(bills_folder.parent))
    ref = source.list_documents("bills")[0]
    (bills_folder / "INV-2024-001.pdf").unlink()

    with pytest.raises(DocumentFetchFailure) as exc_info:
        source.fetch(ref)
    assert exc_info.value.identifier == "INV-2024-001"


def test_local_missing_folder(tmp_path):
    with pytest.raises(FolderAccessFailure):
        LocalFolderSource(str(tmp_path)).list_documents("missing")


@pytest.fixture
def graph_identity(monkeypatch):
    monkeypatch.setattr(settings, "ms_tenant_id", "tenant-1")
    monkeypatch.setattr(settings, "ms_client_id", "client-1")
    monkeypatch.setattr(settings, "ms_client_secret", "secret-1")


def test_graph_lists_pdfs_across_pages(graph_identity):
    with respx.mock:
        token = respx.post(TOKEN_URL).mock(
            return_value=httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})
        )
        children = respx.get(url__regex=r".*/drives/drive-1/items/folder-1/children.*").mock(side_effect=[
            httpx.Response(200, json={
                "value": [
                    {"id": "item-2", "name": "INV-2024-002.pdf", "file": {"mimeType": "application/pdf"}},
                    {"id": "item-x", "name": "photo.jpg", "file": {"mimeType": "image/jpeg"}},
                    {"id": "dir-1", "name": "archive", "folder": {"childCount": 3}},
                ],
                "@odata.nextLink": f"{GRAPH}/drives/drive-1/items/folder-1/children?$skiptoken=abc",
            }),
            httpx.Response(200, json={
                "value": [
                    {"id": "item-1", "name": "INV-2024-001.pdf", "file": {"mimeType": "application/pdf"}},
                ],
            }),
        ])

        source = GraphFolderSource(drive_id="drive-1", http_client=httpx.Client(), base_url=GRAPH)
        refs = source.list_documents("folder-1")

        assert [ref.identifier for ref in refs] == ["INV-2024-001", "INV-2024-002"]
        assert [ref.location for ref in refs] == ["item-1", "item-2"]
        assert token.call_count == 1
        assert children.call_count == 2
        assert children.calls[0].request.headers["Authorization"] == "Bearer tok"


def test_graph_fetch_downloads_content(graph_identity):
    with respx.mock:
        respx.post(TOKEN_URL).mock(return_value=httpx.Response(200, json={"access_token": "tok"}))
        respx.get(f"{GRAPH}/drives/drive-1/items/item-1/content").mock(
            return_value=httpx.Response(200, content=b"%PDF-1.4 from drive")
        )
        respx.get(url__regex=r".*/children.*").mock(return_value=httpx.Response(200, json={"value": [
            {"id": "item-1", "name": "INV-2024-001.pdf", "file": {"mimeType": "application/pdf"}},
        ]}))

        source = GraphFolderSource(drive_id="drive-1", http_client=httpx.Client(), base_url=GRAPH)
        document = source.fetch(source.list_documents("folder-1")[0])

        assert document.identifier == "INV-2024-001"
        assert document.content == b"%PDF-1.4 from drive"


def test_graph_missing_folder_is_folder_access_failure(graph_identity):
    with respx.mock:
        respx.post(TOKEN_URL).mock(return_value=httpx.Response(200, json={"access_token": "tok"}))
        respx.get(url__regex=r".*/children.*").mock(return_value=httpx.Response(404, json={"error": {}}))

        source = GraphFolderSource(drive_id="drive-1", http_client=httpx.Client(), base_url=GRAPH)
        with pytest.raises(FolderAccessFailure):
            source.list_documents("nope")


def test_graph_download_error_is_per_document(graph_identity):
    with respx.mock:
        respx.post(TOKEN_URL).mock(return_value=httpx.Response(200, json={"access_token": "tok"}))
        respx.get(url__regex=r".*/children.*").mock(return_value=httpx.Response(200, json={"value": [
            {"id": "item-1", "name": "INV-2024-001.pdf", "file": {"mimeType": "application/pdf"}},
        ]}))
        respx.get(url__regex=r".*/items/item-1/content").mock(return_value=httpx.Response(503))

        source = GraphFolderSource(drive_id="drive-1", http_client=httpx.Client(), base_url=GRAPH)
        ref = source.list_documents("folder-1")[0]
        with pytest.raises(DocumentFetchFailure) as exc_info:
            source.fetch(ref)
        assert exc_info.value.stage == "fetch"


def test_graph_requires_identity_settings(monkeypatch):
    monkeypatch.setattr(settings, "ms_tenant_id", None)
    source = GraphFolderSource(drive_id="drive-1", http_client=httpx.Client(), base_url=GRAPH)
    with pytest.raises(FolderAccessFailure):
        source.list_documents("folder-1")


def test_create_folder_source_by_backend():
    assert isinstance(create_folder_source("local"), LocalFolderSource)
    assert isinstance(create_folder_source("graph"), GraphFolderSource)
    with pytest.raises(ValueError):
        create_folder_source("ftp")


def test_graph_lists_folder_by_drive_path(graph_identity):
    with respx.mock:
        respx.post(TOKEN_URL).mock(return_value=httpx.Response(200, json={"access_token": "tok"}))
        children = respx.get(url__regex=r".*/drives/drive-1/root:/Bills/Incoming:/children.*").mock(
            return_value=httpx.Response(200, json={"value": [
                {"id": "item-1", "name": "INV-2024-001.pdf", "file": {"mimeType": "application/pdf"}},
            ]})
        )

        source = GraphFolderSource(drive_id="drive-1", http_client=httpx.Client(), base_url=GRAPH)
        refs = source.list_documents("root:/Bills/Incoming:")

        assert [ref.location for ref in refs] == ["item-1"]
        assert children.call_count == 1


@pytest.mark.parametrize("body", [
    {"error": "invalid_client"},
    "not json",
])
def test_graph_malformed_token_response(graph_identity, body):
    with respx.mock:
        if isinstance(body, dict):
            response = httpx.Response(200, json=body)
        else:
            response = httpx.Response(200, content=body.encode())
        respx.post(TOKEN_URL).mock(return_value=response)

        source = GraphFolderSource(drive_id="drive-1", http_client=httpx.Client(), base_url=GRAPH)
        with pytest.raises(FolderAccessFailure):
            source.list_documents("folder-1")
