import time
from typing import Optional

from itsdangerous import BadSignature, URLSafeTimedSerializer

from config import get_settings
from errors import Unauthenticated


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.secret_key, salt="ledger-session")


def issue_token(user_id: int) -> str:
    return _serializer().dumps({"u": user_id, "ts": int(time.time())})


def user_id_from_token(token: str, max_age_hours: Optional[int] = None) -> int:
    if max_age_hours is None:
        max_age_hours = get_settings().token_max_age_hours
    try:
        data = _serializer().loads(token, max_age=max_age_hours * 3600)
    except BadSignature as exc:
        raise Unauthenticated("Invalid or expired session token") from exc
    user_id = data.get("u") if isinstance(data, dict) else None
    if not isinstance(user_id, int):
        raise Unauthenticated("Malformed session token")
    return user_id


class Identity:
    def current_user_id(self) -> int:
        raise Unauthenticated()

    def is_authenticated(self) -> bool:
        try:
            self.current_user_id()
        except Unauthenticated:
            return False
        return True


class StaticIdentity(Identity):
    def __init__(self, user_id: Optional[int]) -> None:
        self.user_id = user_id

    def current_user_id(self) -> int:
        if self.user_id is None:
            raise Unauthenticated()
        return self.user_id


class TokenIdentity(Identity):
    def __init__(self, token: Optional[str]) -> None:
        self.token = token

    def current_user_id(self) -> int:
        if not self.token:
            raise Unauthenticated()
        return user_id_from_token(self.token)
