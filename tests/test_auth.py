import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from itsdangerous import URLSafeTimedSerializer
from libris.core import auth
from sqlalchemy.exc import OperationalError
from libris.core.auth import AuthService, AuthSession
from libris.core.models import RevokedToken, Role
from libris.core.exceptions import AuthenticationError, BackendUnavailable, ValidationError
from libris.schemas.auth import SignUpRequest


@pytest.fixture(autouse=True)
def serializer():
    auth.SERIALIZER = URLSafeTimedSerializer(b"123", salt="auth-session")
    yield
    auth.SERIALIZER = None
    AuthService._listeners.clear()


def _student_signup(**kwargs):
    values = dict(email="1cd23is145@cambridge.edu.in", password="correct horse",
                  role="student", name="Asha Rao", student_id="1cd23is145")
    values.update(kwargs)
    return SignUpRequest(**values)


def test_password_hash_roundtrip():
    stored = auth.hash_password("s3cret-pass")
    assert stored.startswith("pbkdf2_sha256$")
    assert auth.verify_password("s3cret-pass", stored)
    assert not auth.verify_password("wrong-pass", stored)
    assert not auth.verify_password("s3cret-pass", "garbage")


def test_session_token_roundtrip():
    session = AuthSession(email="librarian@cambridge.edu.in", role=Role.LIBRARIAN,
                          user_id="7", issued_at=datetime(2024, 1, 1))
    token = auth.create_session_token(session)
    restored = auth.verify_session_token(token)

    assert restored.email == session.email
    assert restored.is_librarian
    assert restored.librarian_id == 7
    assert restored.student_id is None
    assert restored.token == token


def test_tampered_or_foreign_token_is_rejected():
    session = AuthSession(email="a@cambridge.edu.in", role=Role.STUDENT,
                          user_id="1cd23is145", issued_at=datetime(2024, 1, 1))
    token = auth.create_session_token(session)
    assert auth.verify_session_token(token + "x") is None
    assert auth.verify_session_token(None) is None

    auth.SERIALIZER = URLSafeTimedSerializer(b"456", salt="auth-session")
    assert auth.verify_session_token(token) is None


def test_sign_up_student_creates_profile_and_session(db_session):
    session = AuthService(db_session).sign_up(_student_signup())

    assert session.role == Role.STUDENT
    assert session.student_id == "1cd23is145"
    assert AuthService(db_session).get_session(session.token).email == "1cd23is145@cambridge.edu.in"


def test_sign_up_rejects_invalid_student_profile(db_session):
    service = AuthService(db_session)
    with pytest.raises(ValidationError):
        service.sign_up(_student_signup(student_id="bogus"))
    with pytest.raises(ValidationError):
        service.sign_up(_student_signup(email="asha@gmail.com"))
    assert service.accounts.find_by_email("1cd23is145@cambridge.edu.in") is None


def test_sign_up_twice_is_rejected(db_session):
    service = AuthService(db_session)
    service.sign_up(_student_signup())
    with pytest.raises(ValidationError):
        service.sign_up(_student_signup())


def test_sign_in(db_session):
    service = AuthService(db_session)
    service.sign_up(SignUpRequest(email="meera@cambridge.edu.in", password="librarian-pass",
                                  role="librarian", name="Meera"))

    session = service.sign_in("Meera@cambridge.edu.in", "librarian-pass")
    assert session.is_librarian
    assert session.librarian_id == service.librarians.find_by_email("meera@cambridge.edu.in").id

    with pytest.raises(AuthenticationError):
        service.sign_in("meera@cambridge.edu.in", "not-the-password")
    with pytest.raises(AuthenticationError):
        service.sign_in("nobody@cambridge.edu.in", "librarian-pass")


def test_sign_out_revokes_and_notifies(db_session):
    seen = []
    unsubscribe = AuthService.on_auth_state_change(seen.append)

    service = AuthService(db_session)
    session = service.sign_up(_student_signup())
    service.sign_out(session.token)

    assert service.get_session(session.token) is None
    assert [s.email if s else None for s in seen] == ["1cd23is145@cambridge.edu.in", None]

    unsubscribe()
    service.sign_out(None)
    assert len(seen) == 2


def test_failing_listener_does_not_break_sign_in(db_session):
    def explode(session):
        raise RuntimeError("listener bug")

    AuthService.on_auth_state_change(explode)
    assert AuthService(db_session).sign_up(_student_signup()).token


def test_revocation_is_shared_through_the_store(db_session, session_factory):
    session = AuthService(db_session).sign_up(_student_signup())

    # a second connection stands in for another worker
    other = session_factory()
    try:
        assert AuthService(other).get_session(session.token) is not None
        AuthService(db_session).sign_out(session.token)
        assert AuthService(other).get_session(session.token) is None
    finally:
        other.close()


def test_sign_out_twice_keeps_one_revocation(db_session):
    service = AuthService(db_session)
    session = service.sign_up(_student_signup())
    service.sign_out(session.token)
    service.sign_out(session.token)
    assert db_session.query(RevokedToken).count() == 1


def test_expired_revocations_are_pruned(db_session):
    service = AuthService(db_session)
    first = service.sign_up(_student_signup())
    service.sign_out(first.token)

    later = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(seconds=auth.SESSION_TTL + 60)
    assert service.revocations.prune(now=later) == 1
    assert db_session.query(RevokedToken).count() == 0


def test_session_lookup_reports_store_failure(db_session):
    service = AuthService(db_session)
    session = service.sign_up(_student_signup())
    with patch.object(db_session, "execute", side_effect=OperationalError("SELECT", {}, Exception("store down"))):
        with pytest.raises(BackendUnavailable):
            service.get_session(session.token)
        with pytest.raises(BackendUnavailable):
            service.accounts.find_by_email("1cd23is145@cambridge.edu.in")
