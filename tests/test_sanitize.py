import pytest
from starlette.requests import Request

from studio.security.sanitize import (
    check_password_strength,
    extract_json,
    get_client_id,
    is_valid_email,
    sanitize_input,
    slugify,
    strip_code_fences,
)


def make_request(headers=None, client=("10.0.0.9", 5000)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


class TestSanitizeInput:
    def test_escapes_markup(self):
        assert sanitize_input('<a href="/x">\'') == "&lt;a href=&quot;&#x2F;x&quot;&gt;&#x27;"

    def test_empty(self):
        assert sanitize_input("") == ""
        assert sanitize_input(None) == ""


class TestValidation:
    @pytest.mark.parametrize("email", ["a@b.co", "first.last@example.org"])
    def test_valid_emails(self, email):
        assert is_valid_email(email)

    @pytest.mark.parametrize("email", ["", "no-at.example.com", "a@b", "a b@c.de"])
    def test_invalid_emails(self, email):
        assert not is_valid_email(email)

    def test_strong_password(self):
        assert check_password_strength("Str0ng!pass") == []

    def test_weak_password_lists_every_problem(self):
        errors = check_password_strength("abc")
        assert "Password must be at least 8 characters" in errors
        assert "Password must contain an uppercase letter" in errors
        assert "Password must contain a number" in errors
        assert "Password must contain a special character" in errors
        assert len(errors) == 4


class TestJsonExtraction:
    def test_strip_code_fences(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_extract_from_prose(self):
        assert extract_json('Here you go: {"a": {"b": 2}} thanks') == '{"a": {"b": 2}}'

    def test_extract_from_fenced(self):
        assert extract_json('```json\n{"ok": true}\n```') == '{"ok": true}'

    def test_no_object_raises(self):
        with pytest.raises(ValueError):
            extract_json("no json here")


class TestSlugify:
    def test_slugify(self):
        assert slugify("My Guild!") == "my-guild"
        assert slugify("  Iron -- Lifters  ") == "iron-lifters"

    def test_nothing_left(self):
        assert slugify("!!!") == ""


class TestClientId:
    def test_forwarded_for_first_hop(self):
        request = make_request({"X-Forwarded-For": "1.1.1.1, 2.2.2.2", "X-Real-IP": "3.3.3.3"})
        assert get_client_id(request) == "1.1.1.1"

    def test_real_ip(self):
        assert get_client_id(make_request({"X-Real-IP": "3.3.3.3"})) == "3.3.3.3"

    def test_socket_address(self):
        assert get_client_id(make_request()) == "10.0.0.9"

    def test_unknown(self):
        assert get_client_id(make_request(client=None)) == "unknown"
