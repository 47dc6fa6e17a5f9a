import json
import logging
from datetime import datetime, timezone
from uuid import uuid4

import httpx
import pytest

from app.certificates.issuer import (
    CertificateRenderData,
    HttpCertificateRenderer,
    PlaceholderCertificateRenderer,
    build_renderer,
)
from app.dependencies import get_renderer, get_settings
from app.exceptions import IssuerError


def _data() -> CertificateRenderData:
    return CertificateRenderData(
        certificate_number="GKL-2026-ABCDEF1234",
        student_id=str(uuid4()),
        course_id=str(uuid4()),
        course_title="Sanskrit Foundations",
        issued_date=datetime(2026, 3, 1, tzinfo=timezone.utc),
        verification_code="ABCDEF1234567890",
        verification_url="https://certs.test/verify/ABCDEF1234567890",
    )


def _renderer(handler) -> HttpCertificateRenderer:
    return HttpCertificateRenderer(
        "https://render.test/", api_key="k-1", transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_http_renderer_posts_snapshot() -> None:
    seen = {}
    template_id = uuid4()

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["api_key"] = request.headers.get("api-key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"url": "https://cdn.test/c.pdf"})

    url = await _renderer(handler).render(template_id, _data())

    assert url == "https://cdn.test/c.pdf"
    assert seen["url"] == "https://render.test/render"
    assert seen["api_key"] == "k-1"
    assert seen["body"]["template_id"] == str(template_id)
    assert seen["body"]["data"]["issued_date"] == "2026-03-01T00:00:00+00:00"
    assert seen["body"]["data"]["batch_id"] is None


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(503, text="down"),
        httpx.Response(200, json={"href": "x"}),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"url": ""}),
    ],
)
async def test_http_renderer_failures_raise_issuer_error(response) -> None:
    with pytest.raises(IssuerError):
        await _renderer(lambda request: response).render(uuid4(), _data())


@pytest.mark.asyncio
async def test_http_renderer_network_error_raises_issuer_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(IssuerError):
        await _renderer(handler).render(uuid4(), _data())


@pytest.mark.asyncio
async def test_build_renderer_falls_back_to_placeholder(settings) -> None:
    renderer = build_renderer(settings)
    assert isinstance(renderer, PlaceholderCertificateRenderer)
    assert await renderer.render(uuid4(), _data()) == (
        "https://certs.test/artifacts/GKL-2026-ABCDEF1234.pdf"
    )

    remote = build_renderer(settings.model_copy(update={"certificate_renderer_url": "https://r.test"}))
    assert isinstance(remote, HttpCertificateRenderer)


def test_renderer_dependency_is_built_once(caplog) -> None:
    get_settings.cache_clear()
    get_renderer.cache_clear()
    try:
        with caplog.at_level(logging.WARNING, logger="app.certificates.issuer"):
            first = get_renderer()
            second = get_renderer()
        assert first is second
        placeholder_warnings = [r for r in caplog.records if "placeholder" in r.getMessage()]
        assert len(placeholder_warnings) <= 1
    finally:
        get_renderer.cache_clear()
        get_settings.cache_clear()
