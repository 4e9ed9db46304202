"""
Input Sanitization

Helpers for cleaning user input and pulling JSON out of LLM output.
"""
import re
from typing import List

from fastapi import Request

_HTML_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#x27;",
    "/": "&#x2F;",
}

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*\n?|\n?```\s*$")
_SLUG_RE = re.compile(r"[^a-z0-9]+")


def sanitize_input(text: str) -> str:
    """HTML-escape characters that could break out of markup"""
    if not text:
        return ""
    return "".join(_HTML_ESCAPES.get(ch, ch) for ch in text)


def is_valid_email(email: str) -> bool:
    return bool(email) and len(email) <= 254 and bool(_EMAIL_RE.match(email))


def check_password_strength(password: str) -> List[str]:
    """Return a list of unmet password requirements (empty when strong)"""
    errors = []
    if len(password or "") < 8:
        errors.append("Password must be at least 8 characters")
    if not re.search(r"[A-Z]", password or ""):
        errors.append("Password must contain an uppercase letter")
    if not re.search(r"[a-z]", password or ""):
        errors.append("Password must contain a lowercase letter")
    if not re.search(r"[0-9]", password or ""):
        errors.append("Password must contain a number")
    if not re.search(r"[^A-Za-z0-9]", password or ""):
        errors.append("Password must contain a special character")
    return errors


def strip_code_fences(text: str) -> str:
    """Remove a leading ```lang line and trailing ``` from model output"""
    return _FENCE_RE.sub("", (text or "").strip()).strip()


def extract_json(text: str) -> str:
    """
    Extract the outermost JSON object from text.

    Raises:
        ValueError: If no object is present
    """
    cleaned = strip_code_fences(text)
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end <= start:
        raise ValueError("No JSON object found in response")
    return cleaned[start:end + 1]


def slugify(name: str) -> str:
    return _SLUG_RE.sub("-", (name or "").lower()).strip("-")


def get_client_id(request: Request) -> str:
    """Best-effort client identifier from proxy headers"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"
