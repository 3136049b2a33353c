"""Report artifact storage and signed download URLs."""

from __future__ import annotations

import hashlib
import hmac
import re
from pathlib import Path
from typing import Protocol
from urllib.parse import quote, urlencode

import httpx
import structlog

from compliance_monitor.clock import Clock, SystemClock
from compliance_monitor.errors import ReportDeliveryError, ReportNotFound

logger = structlog.get_logger()

SAFE_PATH = re.compile(r"^[a-zA-Z0-9_-]+(/[a-zA-Z0-9_-]+)*\.(pdf|json|html)$")


def is_valid_file_path(path: str) -> bool:
    """Only relative, traversal-free paths with a known extension are accepted."""
    return bool(SAFE_PATH.match(path))


class ReportStorage(Protocol):
    async def upload(self, path: str, data: bytes, content_type: str = "application/pdf") -> None: ...

    async def create_signed_url(self, path: str, expires_in: int) -> str: ...


class LocalReportStorage:
    """Store reports on the local filesystem and sign download links with HMAC-SHA256.

    Links point at ``{files_path}/{path}`` on this service, which checks the
    signature and expiry before serving the file.
    """

    def __init__(
        self,
        root: str | Path,
        base_url: str,
        secret_key: str,
        clock: Clock | None = None,
        files_path: str = "/api/reports/files",
    ) -> None:
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")
        self.files_path = "/" + files_path.strip("/")
        self._secret = secret_key.encode()
        self.clock = clock or SystemClock()

    def _resolve(self, path: str) -> Path:
        if not is_valid_file_path(path):
            raise ReportNotFound(path)
        return self.root / path

    def _sign(self, path: str, expires: int) -> str:
        message = f"{path}:{expires}".encode()
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    async def upload(self, path: str, data: bytes, content_type: str = "application/pdf") -> None:
        if not is_valid_file_path(path):
            raise ReportDeliveryError("upload_report", f"refusing unsafe path {path!r}")
        target = self.root / path
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise ReportDeliveryError("upload_report", str(exc)) from exc
        logger.info("report_stored", path=path, size_bytes=len(data), backend="local")

    async def create_signed_url(self, path: str, expires_in: int) -> str:
        expires = int(self.clock.now().timestamp()) + expires_in
        query = urlencode({"expires": expires, "signature": self._sign(path, expires)})
        return f"{self.base_url}{self.files_path}/{quote(path)}?{query}"

    def verify(self, path: str, expires: int, signature: str) -> bool:
        """True when the signature matches and the link has not expired."""
        if expires < int(self.clock.now().timestamp()):
            return False
        return hmac.compare_digest(self._sign(path, expires), signature)

    def read(self, path: str) -> bytes:
        target = self._resolve(path)
        if not target.is_file():
            raise ReportNotFound(path)
        return target.read_bytes()


class SupabaseReportStorage:
    """Store reports in a Supabase Storage bucket through its REST API."""

    def __init__(
        self,
        supabase_url: str,
        service_key: str,
        bucket: str = "reports",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = supabase_url.rstrip("/")
        self.service_key = service_key
        self.bucket = bucket
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.service_key}", "apikey": self.service_key}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=f"{self.base_url}/storage/v1", transport=self._transport)

    async def upload(self, path: str, data: bytes, content_type: str = "application/pdf") -> None:
        headers = {
            **self._headers(),
            "Content-Type": content_type,
            "cache-control": "3600",
            "x-upsert": "true",
        }
        try:
            async with self._client() as client:
                response = await client.post(f"/object/{self.bucket}/{path}", content=data, headers=headers)
        except httpx.HTTPError as exc:
            raise ReportDeliveryError("upload_report", str(exc)) from exc
        if response.status_code not in (200, 201):
            raise ReportDeliveryError(
                "upload_report", f"Failed to upload PDF: {response.status_code} {response.text}"
            )
        logger.info("report_stored", path=path, size_bytes=len(data), backend="supabase")

    async def create_signed_url(self, path: str, expires_in: int) -> str:
        try:
            async with self._client() as client:
                response = await client.post(
                    f"/object/sign/{self.bucket}/{path}",
                    json={"expiresIn": expires_in},
                    headers=self._headers(),
                )
        except httpx.HTTPError as exc:
            raise ReportDeliveryError("sign_report_url", str(exc)) from exc
        if response.status_code != 200:
            raise ReportDeliveryError(
                "sign_report_url", f"{response.status_code} {response.text}"
            )
        signed = response.json().get("signedURL")
        if not signed:
            raise ReportDeliveryError("sign_report_url", "Failed to generate signed URL")
        return f"{self.base_url}/storage/v1{signed}"
