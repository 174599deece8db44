"""Tests for admin token extraction."""

from flask import Flask

from utils.auth.admin_auth import get_admin_token_from_request, is_admin_request

app = Flask(__name__)


class TestAdminToken:

    def test_header_takes_precedence(self):
        with app.test_request_context(headers={"X-Admin-Token": "a", "Authorization": "Bearer b"}):
            assert get_admin_token_from_request() == "a"

    def test_bearer_fallback(self):
        with app.test_request_context(headers={"Authorization": "Bearer  b "}):
            assert get_admin_token_from_request() == "b"

    def test_no_token(self):
        with app.test_request_context(headers={"Authorization": "Basic xyz"}):
            assert get_admin_token_from_request() is None

    def test_matching_token(self, monkeypatch):
        monkeypatch.setenv("MEDIA_ADMIN_TOKEN", "secret")
        with app.test_request_context(headers={"X-Admin-Token": "secret"}):
            assert is_admin_request() is True

    def test_unset_expected_token(self, monkeypatch):
        monkeypatch.delenv("MEDIA_ADMIN_TOKEN", raising=False)
        with app.test_request_context(headers={"X-Admin-Token": "secret"}):
            assert is_admin_request() is False
