"""Tests for concierge.integrations.storage_gateway.StorageGateway."""

import requests

from concierge.integrations import storage_gateway as gw_module
from concierge.integrations.storage_gateway import StorageGateway


def test_put_returns_public_url(fake_storage):
    result = gw_module.storage_gateway.put("c1/checklist/i1/1-ab.pdf", b"data", "application/pdf")

    assert result.ok is True
    assert result.status_code == 200
    assert result.url == "https://storage.test/storage/v1/object/public/uploads/c1/checklist/i1/1-ab.pdf"


def test_settings_come_from_app_config(fake_storage):
    gw = gw_module.storage_gateway
    assert gw.base_url == "https://storage.test"
    assert gw.bucket == "uploads"
    assert gw.service_key == "test-service-key"


def test_explicit_settings_win_over_config(fake_storage):
    gw = StorageGateway(session=fake_storage, base_url="https://other.test/", bucket="docs", service_key="k")

    gw.put("a.txt", b"x", "text/plain")

    [call] = fake_storage.calls
    assert call["url"] == "https://other.test/storage/v1/object/docs/a.txt"
    assert call["headers"]["Authorization"] == "Bearer k"


def test_server_errors_are_retried(fake_storage):
    fake_storage.fail("POST", 503, "unavailable")
    fake_storage.fail("POST", 502, "bad gateway")

    result = gw_module.storage_gateway.put("a.txt", b"x", "text/plain")

    assert result.ok is True
    assert len(fake_storage.calls) == 3


def test_retries_are_bounded(fake_storage):
    for _ in range(5):
        fake_storage.fail("POST", 500, "boom")

    result = gw_module.storage_gateway.put("a.txt", b"x", "text/plain")

    assert result.ok is False
    assert result.status_code == 500
    assert result.url is None
    assert len(fake_storage.calls) == 3
    assert "HTTP 500" in result.error


def test_client_errors_are_not_retried(fake_storage):
    fake_storage.fail("DELETE", 404, "not found")

    result = gw_module.storage_gateway.remove("a.txt")

    assert result.ok is False
    assert result.status_code == 404
    assert len(fake_storage.calls) == 1


def test_network_errors_are_retried_then_reported(fake_storage, network_error):
    fake_storage.queue("DELETE", network_error, requests.Timeout("slow"), network_error)

    result = gw_module.storage_gateway.remove("a.txt")

    assert result.ok is False
    assert result.status_code is None
    assert "connection refused" in result.error
    assert len(fake_storage.calls) == 3


def test_timeout_then_success(fake_storage):
    fake_storage.queue("DELETE", requests.Timeout("slow"))

    result = gw_module.storage_gateway.remove("a.txt")

    assert result.ok is True
    assert len(fake_storage.calls) == 2


def test_remove_sends_prefix_list(fake_storage):
    gw_module.storage_gateway.remove("c1/checklist/i1/f.pdf")

    [call] = fake_storage.calls
    assert call["method"] == "DELETE"
    assert call["url"] == "https://storage.test/storage/v1/object/uploads"
    assert call["json"] == {"prefixes": ["c1/checklist/i1/f.pdf"]}


def test_unconfigured_store_fails_without_calling_out(app, monkeypatch, fake_storage):
    monkeypatch.setitem(app.config, "STORAGE_URL", "")

    result = gw_module.storage_gateway.put("a.txt", b"x", "text/plain")

    assert result.ok is False
    assert "not configured" in result.error
    assert fake_storage.calls == []


class TestSignedUrl:
    def test_relative_url_is_prefixed(self, fake_storage):
        result = gw_module.storage_gateway.create_signed_url("a.pdf", expires_in=60)
        assert result.url == "https://storage.test/storage/v1/object/sign/uploads/x?token=abc"

    def test_absolute_url_is_kept(self, fake_storage):
        fake_storage.respond("POST", {"signedUrl": "https://cdn.test/signed/a.pdf?token=t"})
        result = gw_module.storage_gateway.create_signed_url("a.pdf")
        assert result.ok is True
        assert result.url == "https://cdn.test/signed/a.pdf?token=t"

    def test_missing_url_is_a_failure(self, fake_storage):
        fake_storage.respond("POST", {"unexpected": True})
        result = gw_module.storage_gateway.create_signed_url("a.pdf")
        assert result.ok is False
        assert result.url is None
        assert "missing" in result.error

    def test_expiry_is_sent(self, fake_storage):
        gw_module.storage_gateway.create_signed_url("c1/a b.pdf", expires_in=120)
        [call] = fake_storage.calls
        assert call["url"] == "https://storage.test/storage/v1/object/sign/uploads/c1/a%20b.pdf"
        assert call["json"] == {"expiresIn": 120}
