"""
Bill folder sources.

A folder source lists candidate documents and downloads them on demand, so
bills that are already in the ledger are never fetched. Only PDFs are
listed; anything else in the folder is ignored.

Implementations:
- GraphFolderSource: a OneDrive / SharePoint drive folder via Microsoft Graph
- LocalFolderSource: a directory on disk (local development, tests)
"""

import mimetypes
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import httpx
from loguru import logger

from .bill_types import DocumentRef, SourceDocument, PDF_CONTENT_TYPE, identifier_from_name
from .errors import FolderAccessFailure, DocumentFetchFailure
from ..core.config import settings


class FolderSource(ABC):
    """Interface shared by every bill folder backend."""

    @abstractmethod
    def list_documents(self, folder_ref: str) -> list[DocumentRef]:
        """
        List the PDF documents in a folder, sorted by file name.

        Args:
            folder_ref: Backend-specific folder reference (drive item id, directory path)

        Returns:
            DocumentRef entries for every PDF in the folder

        Raises:
            FolderAccessFailure: the folder does not exist or cannot be listed
        """
        pass

    @abstractmethod
    def fetch(self, ref: DocumentRef) -> SourceDocument:
        """
        Download one listed document.

        Raises:
            DocumentFetchFailure: the content could not be read
        """
        pass


class LocalFolderSource(FolderSource):

    def __init__(self, root: str = "."):
        self.root = Path(root)

    def _resolve(self, folder_ref: str) -> Path:
        path = Path(folder_ref)
        if not path.is_absolute():
            path = self.root / path
        return path

    def list_documents(self, folder_ref: str) -> list[DocumentRef]:
        folder = self._resolve(folder_ref)
        if not folder.is_dir():
            raise FolderAccessFailure(f"Folder not found: {folder}")

        refs = []
        for path in sorted(folder.iterdir(), key=lambda p: p.name):
            if not path.is_file():
                continue
            content_type, _ = mimetypes.guess_type(path.name)
            if content_type != PDF_CONTENT_TYPE:
                continue
            refs.append(DocumentRef(
                identifier=identifier_from_name(path.name),
                name=path.name,
                content_type=content_type,
                location=str(path),
            ))
        return refs

    def fetch(self, ref: DocumentRef) -> SourceDocument:
        try:
            content = Path(ref.location).read_bytes()
        except OSError as e:
            raise DocumentFetchFailure(f"Could not read {ref.location}: {e}", identifier=ref.identifier)
        return SourceDocument(
            identifier=ref.identifier,
            name=ref.name,
            content=content,
            content_type=ref.content_type,
        )


class GraphFolderSource(FolderSource):
    """
    Drive folder on OneDrive / SharePoint, read through Microsoft Graph.

    Authenticates with the client-credentials flow using the app registration
    from settings (MS_TENANT_ID, MS_CLIENT_ID, MS_CLIENT_SECRET). The access
    token is fetched lazily and reused for the lifetime of the source.
    """

    def __init__(
        self,
        drive_id: Optional[str] = None,
        http_client: Optional[httpx.Client] = None,
        base_url: Optional[str] = None,
    ):
        self.drive_id = drive_id or settings.graph_drive_id
        self.base_url = (base_url or settings.graph_base_url).rstrip("/")
        self.http = http_client or httpx.Client(timeout=30, follow_redirects=True)
        self._token: Optional[str] = None

    def _access_token(self) -> str:
        if self._token:
            return self._token

        if not (settings.ms_tenant_id and settings.ms_client_id and settings.ms_client_secret):
            raise FolderAccessFailure(
                "Microsoft identity not configured. "
                "Set MS_TENANT_ID, MS_CLIENT_ID and MS_CLIENT_SECRET."
            )

        token_url = f"https://login.microsoftonline.com/{settings.ms_tenant_id}/oauth2/v2.0/token"
        try:
            r = self.http.post(token_url, data={
                "grant_type": "client_credentials",
                "client_id": settings.ms_client_id,
                "client_secret": settings.ms_client_secret,
                "scope": settings.graph_scope,
            })
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise FolderAccessFailure(f"Graph token request failed: {e}")

        try:
            self._token = r.json()["access_token"]
        except (ValueError, KeyError, TypeError) as e:
            raise FolderAccessFailure(f"Graph token response has no access token: {e!r}")
        return self._token

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self._access_token()}"}

    def _children_url(self, folder_ref: str) -> str:
        """Drive item id, or a drive path in Graph's ``root:/path/to/folder:`` form"""
        drive_url = f"{self.base_url}/drives/{self.drive_id}"
        if folder_ref.startswith("root:"):
            path = folder_ref[len("root:"):].strip(":/")
            if not path:
                return f"{drive_url}/root/children"
            return f"{drive_url}/root:/{path}:/children"
        return f"{drive_url}/items/{folder_ref}/children"

    def list_documents(self, folder_ref: str) -> list[DocumentRef]:
        if not self.drive_id:
            raise FolderAccessFailure("GRAPH_DRIVE_ID not set")

        url = self._children_url(folder_ref)
        params = {"$select": "id,name,file"}
        refs = []

        while url:
            try:
                r = self.http.get(url, params=params, headers=self._headers())
                r.raise_for_status()
            except httpx.HTTPError as e:
                raise FolderAccessFailure(f"Could not list drive folder {folder_ref}: {e}")

            page = r.json()
            for item in page.get("value", []):
                mime_type = (item.get("file") or {}).get("mimeType")
                if mime_type != PDF_CONTENT_TYPE:
                    continue
                refs.append(DocumentRef(
                    identifier=identifier_from_name(item["name"]),
                    name=item["name"],
                    content_type=mime_type,
                    location=item["id"],
                ))

            # nextLink already carries the query string
            url = page.get("@odata.nextLink")
            params = None

        logger.info("Listed drive folder", folder=folder_ref, pdf_count=len(refs))
        return sorted(refs, key=lambda ref: ref.name)

    def fetch(self, ref: DocumentRef) -> SourceDocument:
        url = f"{self.base_url}/drives/{self.drive_id}/items/{ref.location}/content"
        try:
            r = self.http.get(url, headers=self._headers())
            r.raise_for_status()
        except (httpx.HTTPError, FolderAccessFailure) as e:
            raise DocumentFetchFailure(f"Download failed: {e}", identifier=ref.identifier)

        return SourceDocument(
            identifier=ref.identifier,
            name=ref.name,
            content=r.content,
            content_type=ref.content_type,
        )


def create_folder_source(backend: Optional[str] = None) -> FolderSource:
    """Build the folder source selected by FOLDER_BACKEND."""
    backend = (backend or settings.folder_backend).lower()
    if backend == "graph":
        return GraphFolderSource()
    if backend == "local":
        return LocalFolderSource(settings.local_folder_root)
    raise ValueError(f"Unknown folder backend: {backend}")
