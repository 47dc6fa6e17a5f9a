"""Rendering collaborator for certificate artifacts.

The cohort service never draws certificates itself. It hands a data
snapshot and a template id to a renderer and stores the returned URL.
Renderers are remote and fallible; every failure surfaces as IssuerError.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

import httpx

from app.config import Settings
from app.exceptions import IssuerError

logger = logging.getLogger(__name__)


@dataclass
class CertificateRenderData:
    """Everything printed on the certificate."""

    certificate_number: str
    student_id: str
    course_id: str
    course_title: str
    issued_date: datetime
    verification_code: str
    verification_url: str
    batch_id: str | None = None

    def to_payload(self) -> dict:
        data = asdict(self)
        data["issued_date"] = self.issued_date.isoformat()
        return data


class CertificateRenderer(Protocol):
    async def render(self, template_id: UUID, data: CertificateRenderData) -> str:
        """Render the artifact and return its URL."""
        ...


class HttpCertificateRenderer:
    """Posts the snapshot to the rendering service and reads back ``{"url": ...}``."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._url = base_url.rstrip("/") + "/render"
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    async def render(self, template_id: UUID, data: CertificateRenderData) -> str:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["api-key"] = self._api_key
        payload = {"template_id": str(template_id), "data": data.to_payload()}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                r = await client.post(self._url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("Certificate renderer request failed: %s", exc)
            raise IssuerError(f"renderer unreachable: {exc}") from exc
        if r.status_code >= 400:
            logger.error("Certificate renderer error %s: %s", r.status_code, r.text[:300])
            raise IssuerError(f"renderer returned {r.status_code}")
        try:
            url = r.json()["url"]
        except (ValueError, KeyError, TypeError) as exc:
            raise IssuerError("renderer response has no url") from exc
        if not isinstance(url, str) or not url:
            raise IssuerError("renderer response has no url")
        return url


class PlaceholderCertificateRenderer:
    """Dev fallback when no renderer is configured: a predictable URL, no I/O."""

    def __init__(self, base_url: str):
        self._base_url = base_url.rstrip("/")

    async def render(self, template_id: UUID, data: CertificateRenderData) -> str:
        return f"{self._base_url}/artifacts/{data.certificate_number}.pdf"


def build_renderer(settings: Settings) -> CertificateRenderer:
    if settings.certificate_renderer_url:
        return HttpCertificateRenderer(
            settings.certificate_renderer_url,
            settings.certificate_renderer_api_key,
            timeout=settings.issuer_timeout_secs,
        )
    logger.warning("CERTIFICATE_RENDERER_URL not set, using placeholder certificate URLs")
    return PlaceholderCertificateRenderer(settings.certificate_base_url)
