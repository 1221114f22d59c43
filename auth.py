from typing import Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from config import get_settings


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.auth_secret, salt="user-token")


def issue_user_token(user_id: int) -> str:
    return _serializer().dumps({"u": user_id})


def read_user_token(token: str, max_age_hours: Optional[int] = None) -> Optional[int]:
    """Return the user id carried by a signed token, or None when it is unusable."""
    if max_age_hours is None:
        max_age_hours = get_settings().token_max_age_hours
    try:
        data = _serializer().loads(token, max_age=max_age_hours * 3600)
    except SignatureExpired:
        return None
    except BadSignature:
        return None

    user_id = data.get("u") if isinstance(data, dict) else None
    if not isinstance(user_id, int) or isinstance(user_id, bool) or user_id < 1:
        return None
    return user_id
