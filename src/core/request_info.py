"""Helpers to extract the network origin of a request for audit records."""


def get_client_ip(request) -> str:
    """Return the first X-Forwarded-For hop, X-Real-IP, REMOTE_ADDR, or 'unknown'."""
    meta = request.META
    forwarded = meta.get("HTTP_X_FORWARDED_FOR", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return meta.get("HTTP_X_REAL_IP") or meta.get("REMOTE_ADDR") or "unknown"


def get_user_agent(request) -> str:
    return request.META.get("HTTP_USER_AGENT", "")


__all__ = ["get_client_ip", "get_user_agent"]
