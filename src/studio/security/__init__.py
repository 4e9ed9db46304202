"""
Studio Security

Rate limiting, input sanitization and upload validation.
"""
from .rate_limiter import RateLimiter, RateLimitRule, RateLimitResult, RATE_LIMITS
from .sanitize import (
    sanitize_input,
    is_valid_email,
    check_password_strength,
    extract_json,
    strip_code_fences,
    slugify,
    get_client_id,
)
from .files import (
    ALLOWED_TYPES,
    FileTypeSpec,
    UploadRejected,
    is_dangerous_filename,
    sanitize_filename,
    validate_file_content,
    validate_upload,
)

SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}

__all__ = [
    'RateLimiter',
    'RateLimitRule',
    'RateLimitResult',
    'RATE_LIMITS',
    'SECURITY_HEADERS',
    'sanitize_input',
    'is_valid_email',
    'check_password_strength',
    'extract_json',
    'strip_code_fences',
    'slugify',
    'get_client_id',
    'ALLOWED_TYPES',
    'FileTypeSpec',
    'UploadRejected',
    'is_dangerous_filename',
    'sanitize_filename',
    'validate_file_content',
    'validate_upload',
]
