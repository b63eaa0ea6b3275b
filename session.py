from typing import Optional

from itsdangerous import BadSignature, URLSafeTimedSerializer

from config import get_settings

SESSION_COOKIE = "session"


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.session_secret, salt="api-session")


def encode_session(access: str, refresh: Optional[str] = None) -> str:
    return _serializer().dumps({"access": access, "refresh": refresh})


def decode_session(value: Optional[str]) -> Optional[dict[str, Optional[str]]]:
    """Return the stored tokens, or None when the cookie is missing, forged or expired."""
    if not value:
        return None
    max_age = get_settings().session_max_age_hours * 3600
    try:
        data = _serializer().loads(value, max_age=max_age)
    except BadSignature:
        return None
    if not isinstance(data, dict) or not data.get("access"):
        return None
    return {"access": data["access"], "refresh": data.get("refresh")}
