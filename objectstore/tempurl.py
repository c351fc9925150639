"""Swift-style temporary URL signing (HMAC-SHA1 over method, expiry and path)."""

import hashlib
import hmac
from datetime import datetime
from urllib.parse import quote


def sign_temp_url(key: str, method: str, expires: int, path: str) -> str:
    """
    Compute the temp_url_sig value for a request.

    Args:
        key: Secret temp URL key shared with the object store
        method: HTTP method the URL grants (GET, HEAD, PUT)
        expires: Unix timestamp after which the URL is invalid
        path: URL path of the object, starting with '/'

    Returns:
        Hex encoded signature
    """
    body = f"{method.upper()}\n{expires}\n{path}"
    return hmac.new(key.encode('utf-8'), body.encode('utf-8'), hashlib.sha1).hexdigest()


def build_temp_url(base_url: str, base_path: str, object_path: str, key: str,
                   method: str, expires_at: datetime) -> str:
    """
    Build a complete temporary URL for an object.

    Args:
        base_url: Scheme and host (e.g. https://swift.example.com)
        base_path: Path prefix of the container (e.g. /v1/AUTH_x/registry)
        object_path: Object name inside the container
        key: Secret temp URL key
        method: HTTP method the URL grants
        expires_at: Expiry as a timezone-aware datetime

    Returns:
        Signed URL string
    """
    expires = int(expires_at.timestamp())
    path = f"{base_path.rstrip('/')}/{quote(object_path.lstrip('/'))}"
    signature = sign_temp_url(key, method, expires, path)
    return f"{base_url.rstrip('/')}{path}?temp_url_sig={signature}&temp_url_expires={expires}"
