import pytest
from itsdangerous import URLSafeTimedSerializer

from errors import Unauthenticated
from identity import StaticIdentity, TokenIdentity, issue_token, user_id_from_token


def test_issued_token_resolves_to_its_user():
    token = issue_token(7)

    assert user_id_from_token(token) == 7
    assert TokenIdentity(token).current_user_id() == 7
    assert TokenIdentity(token).is_authenticated()


def test_tampered_token_is_rejected():
    token = issue_token(7)
    tampered = "x" + token

    with pytest.raises(Unauthenticated):
        user_id_from_token(tampered)


def test_token_signed_with_another_key_is_rejected():
    forged = URLSafeTimedSerializer("not-the-secret", salt="ledger-session").dumps(
        {"u": 7}
    )

    with pytest.raises(Unauthenticated):
        TokenIdentity(forged).current_user_id()


def test_missing_token_fails_closed():
    assert not TokenIdentity(None).is_authenticated()
    assert not TokenIdentity("").is_authenticated()
    with pytest.raises(Unauthenticated):
        TokenIdentity(None).current_user_id()


def test_static_identity():
    assert StaticIdentity(3).current_user_id() == 3
    assert not StaticIdentity(None).is_authenticated()
