import warnings

import requests


def verify_password(endpoint: str, password: str, timeout: float = 10.0) -> bool:
    """Check a password against the persistence endpoint.

    Args:
        endpoint: URL accepting ``{"type": "auth", "password": ...}`` posts.
        password: The password to check.
        timeout: Request timeout in seconds.

    Returns:
        True only if the endpoint answers with ``{"success": true}``.
    """
    if not endpoint or not password:
        return False

    try:
        response = requests.post(
            endpoint,
            json={"type": "auth", "password": password},
            timeout=timeout,
        )
        result = response.json()
    except (requests.RequestException, ValueError) as e:
        warnings.warn(f"Password check against {endpoint} failed: {e}", UserWarning)
        return False

    return isinstance(result, dict) and result.get("success") is True
