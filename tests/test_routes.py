"""Tests for the demonstration routes and their log records."""

import pytest

from bastion.app.api.routes import mask_password
from bastion.app.middleware.security_headers import get_security_headers


def _messages(records, level=None):
    return [r["message"] for r in records if level is None or r["level"] == level]


class TestHome:
    """GET / welcomes the client and logs the visit."""

    def test_home_returns_welcome(self, client):
        resp = client.get("/")

        assert resp.status_code == 200
        assert resp.text == "Welcome to the server"

    def test_home_logs_one_info_entry_with_client_address(self, client, combined_records):
        client.get("/")

        visits = [
            m for m in _messages(combined_records(), "info")
            if m.startswith("Access to the main page")
        ]
        assert visits == ["Access to the main page from testclient"]

    def test_home_writes_nothing_to_error_log(self, client, error_records):
        client.get("/")

        assert error_records() == []


class TestSimulatedError:
    """GET /error answers 200 but logs at error level."""

    def test_error_route_returns_200(self, client):
        resp = client.get("/error")

        assert resp.status_code == 200
        assert resp.text == "An error occurred on the server"

    def test_error_route_logs_exactly_one_error(self, client, error_records, combined_records):
        client.get("/error")

        errors = error_records()
        assert len(errors) == 1
        assert errors[0]["level"] == "error"
        assert errors[0]["message"] == "Simulated error - Request from testclient"
        assert "timestamp" in errors[0]
        # The same record also reaches the all-levels sink
        assert "Simulated error - Request from testclient" in _messages(combined_records(), "error")


class TestLogin:
    """POST /login always rejects and masks the password in logs."""

    def test_login_rejects_credentials(self, client):
        resp = client.post("/login", json={"email": "a@b.com", "password": "secret"})

        assert resp.status_code == 401
        assert resp.text == "Invalid credentials"

    def test_login_logs_masked_password(self, client, error_records):
        client.post("/login", json={"email": "a@b.com", "password": "secret"})

        errors = error_records()
        assert len(errors) == 1
        message = errors[0]["message"]
        assert "email=a@b.com" in message
        assert "password=******" in message
        assert message.endswith("password=******")

    def test_login_never_logs_raw_password(self, client, tmp_path):
        client.post("/login", json={"email": "a@b.com", "password": "secret"})

        for log_file in (tmp_path / "logs").iterdir():
            assert "secret" not in log_file.read_text(encoding="utf-8")

    def test_login_without_password_still_rejects(self, client, error_records):
        resp = client.post("/login", json={"email": "a@b.com"})

        assert resp.status_code == 401
        assert resp.text == "Invalid credentials"
        assert error_records()[0]["message"] == "Failed login attempt: email=a@b.com, password="

    def test_login_without_body(self, client, error_records):
        resp = client.post("/login")

        assert resp.status_code == 401
        assert error_records()[0]["message"] == "Failed login attempt: email=, password="

    def test_login_with_array_body_has_no_fields(self, client, error_records):
        resp = client.post("/login", json=["a@b.com", "secret"])

        assert resp.status_code == 401
        assert "secret" not in error_records()[0]["message"]

    def test_login_masks_non_string_password(self, client, error_records):
        resp = client.post("/login", json={"email": "a@b.com", "password": 123456})

        assert resp.status_code == 401
        assert error_records()[0]["message"].endswith("password=******")


class TestMaskPassword:
    """Tests for password masking."""

    @pytest.mark.parametrize(
        ("password", "expected"),
        [
            ("secret", "******"),
            ("", ""),
            (None, ""),
            ("pässwörd", "********"),
            (1234, "****"),
        ],
    )
    def test_mask_password(self, password, expected):
        assert mask_password(password) == expected

    def test_custom_mask_character(self):
        assert mask_password("abc", mask_char="#") == "###"


class TestUnmatchedRoutes:
    """Requests no route serves end in the generic failure response."""

    def test_unknown_path_returns_500(self, client, error_records):
        resp = client.get("/does-not-exist")

        assert resp.status_code == 500
        assert resp.text == "Internal server error"
        errors = error_records()
        assert len(errors) == 1
        assert errors[0]["message"].startswith("Error: ")
        assert "/does-not-exist" in errors[0]["message"]

    def test_wrong_method_returns_500(self, client):
        resp = client.delete("/login")

        assert resp.status_code == 500
        assert resp.text == "Internal server error"

    def test_docs_are_disabled(self, client):
        assert client.get("/docs").status_code == 500
        assert client.get("/openapi.json").status_code == 500


class TestSecurityHeadersOnEveryResponse:
    """The header policy is present regardless of route or outcome."""

    @pytest.mark.parametrize(
        ("method", "path", "kwargs", "status"),
        [
            ("GET", "/", {}, 200),
            ("GET", "/error", {}, 200),
            ("POST", "/login", {"json": {"email": "a@b.com", "password": "x"}}, 401),
            ("GET", "/missing", {}, 500),
            ("POST", "/login", {"content": b"{not json", "headers": {"Content-Type": "application/json"}}, 400),
        ],
    )
    def test_headers_present(self, client, method, path, kwargs, status):
        resp = client.request(method, path, **kwargs)

        assert resp.status_code == status
        for name, value in get_security_headers().items():
            assert resp.headers[name] == value
