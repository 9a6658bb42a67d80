"""
Purpose: Google Drive asset store for per-batch folders and label files.
What it does:
- Folder layout under the root folder: {delivery_date}/{location}/batch_{batch}
- ensure_batch_folder(): find-or-create the three levels (ids cached for the run)
- pre_create_folders(): one folder per location with a batch, failures kept per location
- upload(): create or replace a file by name inside the batch folder

Rule: googleapiclient is blocking; every call runs in asyncio.to_thread under a timeout.
"""

from __future__ import annotations

import asyncio
import io
import logging
from typing import Dict, Optional, Tuple

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.http import MediaIoBaseUpload

from config.settings import ConfigurationError

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/drive"]
FOLDER_MIME = "application/vnd.google-apps.folder"


def build_drive_service(credentials_file: str):
    creds = service_account.Credentials.from_service_account_file(credentials_file, scopes=SCOPES)
    return build("drive", "v3", credentials=creds, cache_discovery=False)


def _quoted(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


class DriveAssetStore:
    def __init__(
        self,
        root_folder_id: str,
        credentials_file: str = "",
        service=None,
        timeout: float = 60.0,
    ):
        if not root_folder_id:
            raise ConfigurationError("DRIVE_ROOT_FOLDER_ID is not set")
        if service is None and not credentials_file:
            raise ConfigurationError("GOOGLE_CREDENTIALS_FILE is not set")
        self.root_folder_id = root_folder_id
        self.credentials_file = credentials_file
        self.timeout = timeout
        self._service = service
        self._folders: Dict[Tuple[str, str], str] = {}  # (parent id, name) -> folder id

    @classmethod
    def from_settings(cls, settings) -> DriveAssetStore:
        return cls(settings.drive_root_folder_id, settings.google_credentials_file)

    @property
    def service(self):
        if self._service is None:
            self._service = build_drive_service(self.credentials_file)
        return self._service

    # --- blocking helpers (run in a worker thread) ---

    def _find(self, name: str, parent_id: str, folder: bool) -> Optional[str]:
        q = f"trashed = false and '{parent_id}' in parents and name = '{_quoted(name)}'"
        if folder:
            q += f" and mimeType = '{FOLDER_MIME}'"
        resp = (
            self.service.files()
            .list(q=q, fields="files(id,name)", pageSize=10, supportsAllDrives=True, includeItemsFromAllDrives=True)
            .execute()
        )
        files = resp.get("files") or []
        return str(files[0]["id"]) if files else None

    def _ensure_folder(self, name: str, parent_id: str) -> str:
        key = (parent_id, name)
        if key in self._folders:
            return self._folders[key]
        folder_id = self._find(name, parent_id, folder=True)
        if folder_id is None:
            created = (
                self.service.files()
                .create(body={"name": name, "mimeType": FOLDER_MIME, "parents": [parent_id]}, fields="id", supportsAllDrives=True)
                .execute()
            )
            folder_id = str(created.get("id") or "")
            if not folder_id:
                raise RuntimeError(f"Google Drive folder create failed for {name!r}: empty id")
            logger.info(f"Created Drive folder {name} ({folder_id})")
        self._folders[key] = folder_id
        return folder_id

    def _ensure_batch_folder(self, delivery_date: str, location: str, batch: int) -> str:
        date_folder = self._ensure_folder(delivery_date, self.root_folder_id)
        location_folder = self._ensure_folder(location, date_folder)
        return self._ensure_folder(f"batch_{batch}", location_folder)

    def _upload(self, folder_id: str, filename: str, content: bytes, mime_type: str) -> str:
        media = MediaIoBaseUpload(io.BytesIO(content), mimetype=mime_type, resumable=False)
        existing = self._find(filename, folder_id, folder=False)
        files = self.service.files()
        if existing:
            updated = files.update(fileId=existing, media_body=media, fields="id", supportsAllDrives=True).execute()
            return str(updated.get("id") or existing)
        created = files.create(
            body={"name": filename, "parents": [folder_id]}, media_body=media, fields="id", supportsAllDrives=True
        ).execute()
        created_id = str(created.get("id") or "")
        if not created_id:
            raise RuntimeError("Google Drive upload failed: empty file id")
        return created_id

    # --- async API ---

    async def _run(self, func, *args):
        return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=self.timeout)

    async def ensure_batch_folder(self, delivery_date: str, location: str, batch: int) -> str:
        return await self._run(self._ensure_batch_folder, delivery_date, location, batch)

    async def pre_create_folders(self, delivery_date: str, batches: Dict[str, Optional[int]]) -> Dict[str, Dict]:
        """
        {location: {"success": bool, "folder_id"|"error"|"skipped": ...}}
        """
        results: Dict[str, Dict] = {}
        for location, batch in batches.items():
            if batch is None:
                results[location] = {"success": False, "skipped": True, "error": "No batch number assigned"}
                continue
            try:
                folder_id = await self.ensure_batch_folder(delivery_date, location, batch)
            except Exception as e:
                logger.error(f"Drive folder for {location} batch {batch} failed: {e}")
                results[location] = {"success": False, "error": str(e) or e.__class__.__name__}
                continue
            results[location] = {"success": True, "folder_id": folder_id}
        return results

    async def upload(
        self,
        delivery_date: str,
        location: str,
        batch: int,
        filename: str,
        content: bytes,
        mime_type: str = "application/pdf",
    ) -> str:
        folder_id = await self.ensure_batch_folder(delivery_date, location, batch)
        file_id = await self._run(self._upload, folder_id, filename, content, mime_type)
        logger.info(f"Uploaded {filename} to {delivery_date}/{location}/batch_{batch} ({file_id})")
        return file_id
