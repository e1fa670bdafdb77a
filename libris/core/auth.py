"""
    Accounts and sessions for Libris.

    A session is an explicit `AuthSession` value created at sign-in and
    carried in a signed token; it ends when the token is revoked at
    sign-out or when it outlives SESSION_TTL.
"""

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from itsdangerous import URLSafeTimedSerializer, BadSignature
from pydantic import ValidationError as SchemaValidationError
from libris.configs import SEED, SESSION_TTL
from libris.core.models import Account, RevokedToken, Role
from libris.core.repository import Repository
from libris.core.directory import LibrarianDirectory, StudentDirectory
from libris.core.exceptions import AuthenticationError, ValidationError
from libris.schemas.librarian import LibrarianCreate
from libris.schemas.student import StudentCreate

logger = logging.getLogger(__name__)

SERIALIZER = None  # Will be initialized lazily
PBKDF2_ITERATIONS = 260000


def _get_serializer():
    """Get or initialize the SERIALIZER lazily."""
    global SERIALIZER
    if SERIALIZER is None:
        SERIALIZER = URLSafeTimedSerializer(SEED, salt="auth-session")
    return SERIALIZER


def hash_password(password: str, salt: Optional[str] = None) -> str:
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        'sha256', password.encode('utf-8'), salt.encode('utf-8'), PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        _, iterations, salt, expected = stored.split('$')
    except ValueError:
        return False
    digest = hashlib.pbkdf2_hmac(
        'sha256', password.encode('utf-8'), salt.encode('utf-8'), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


@dataclass(frozen=True)
class AuthSession:
    email: str
    role: Role
    user_id: str
    issued_at: datetime
    token: Optional[str] = None

    @property
    def is_librarian(self) -> bool:
        return self.role == Role.LIBRARIAN

    @property
    def librarian_id(self) -> Optional[int]:
        return int(self.user_id) if self.is_librarian else None

    @property
    def student_id(self) -> Optional[str]:
        return None if self.is_librarian else self.user_id


def create_session_token(session: AuthSession) -> str:
    """Returns a signed token carrying the session."""
    return _get_serializer().dumps({
        "email": session.email,
        "role": session.role.value,
        "user_id": session.user_id,
        "issued_at": session.issued_at.isoformat(),
        "nonce": secrets.token_hex(8),
    })


def verify_session_token(token: Optional[str]) -> Optional[AuthSession]:
    """Returns the session carried by a validly signed, unexpired token,
    else None. Revocation is checked by `AuthService.get_session`.
    """
    if not token:
        return None
    try:
        data = _get_serializer().loads(token, max_age=SESSION_TTL)
        return AuthSession(
            email=data["email"],
            role=Role(data["role"]),
            user_id=data["user_id"],
            issued_at=datetime.fromisoformat(data["issued_at"]),
            token=token,
        )
    except (BadSignature, KeyError, ValueError):
        return None


def _token_hash(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class AccountRepository(Repository):

    model = Account
    not_found = AuthenticationError
    UNIQUE_FIELDS = ('email',)

    def find_by_email(self, email: str) -> Optional[Account]:
        with self.reading('look up'):
            return self.db.query(Account).filter(Account.email == email.strip().lower()).first()


class RevocationRepository(Repository):
    """Signed-out tokens, shared by every worker through the store. Rows
    are pruned once the token is past SESSION_TTL and fails verification
    on its own.
    """

    model = RevokedToken

    def is_revoked(self, token: str) -> bool:
        query = self.db.query(RevokedToken).filter(RevokedToken.token_hash == _token_hash(token))
        return bool(self._count(query))

    def revoke(self, token: str, commit=True):
        if self.is_revoked(token):
            return
        self.db.add(RevokedToken(
            token_hash=_token_hash(token),
            expires_at=_utcnow() + timedelta(seconds=SESSION_TTL),
        ))
        self.prune(commit=False)
        self.save(commit=commit)

    def prune(self, now: Optional[datetime] = None, commit=True) -> int:
        with self.reading('prune'):
            removed = (self.db.query(RevokedToken)
                       .filter(RevokedToken.expires_at < (now or _utcnow()))
                       .delete(synchronize_session=False))
        self.save(commit=commit)
        return removed


class AuthService:

    _listeners = []

    def __init__(self, db):
        self.db = db
        self.accounts = AccountRepository(db)
        self.revocations = RevocationRepository(db)
        self.students = StudentDirectory(db)
        self.librarians = LibrarianDirectory(db)

    @classmethod
    def on_auth_state_change(cls, listener: Callable[[Optional[AuthSession]], None]):
        """Registers `listener`, called with the new session at sign-in and
        with None at sign-out. Returns a function that unregisters it.
        """
        cls._listeners.append(listener)

        def unsubscribe():
            if listener in cls._listeners:
                cls._listeners.remove(listener)
        return unsubscribe

    @classmethod
    def _notify(cls, session: Optional[AuthSession]):
        for listener in list(cls._listeners):
            try:
                listener(session)
            except Exception as e:
                logger.exception(f"Auth state listener failed: {e}")

    def _profile_id(self, account: Account) -> str:
        if account.role == Role.LIBRARIAN:
            librarian = self.librarians.find_by_email(account.email)
            if librarian is None:
                raise AuthenticationError("No librarian profile found for this account.")
            return str(librarian.id)
        student = self.students.find_by_email(account.email)
        if student is None:
            raise AuthenticationError("No student profile found for this account.")
        return student.student_id

    def sign_up(self, request) -> AuthSession:
        """Creates the account and its student or librarian profile, then
        signs the new user in.
        """
        email = request.email.strip().lower()
        role = Role(request.role)
        self.accounts.check_unique({'email': email})
        try:
            if role == Role.STUDENT:
                if not self.students.find_by_email(email):
                    self.students.create(StudentCreate(
                        student_id=request.student_id or '',
                        name=request.name or email.split('@')[0],
                        email=email,
                        contact=request.contact,
                        year=request.year,
                        dept_id=request.dept_id,
                    ), commit=False)
            elif not self.librarians.find_by_email(email):
                self.librarians.create(LibrarianCreate(email=email, name=request.name), commit=False)
        except SchemaValidationError as e:
            self.db.rollback()
            raise ValidationError("; ".join(err['msg'] for err in e.errors()))
        except Exception:
            self.db.rollback()
            raise
        self.accounts.add(Account(
            email=email, password_hash=hash_password(request.password), role=role))
        logger.info(f"Signed up {role.value} <{email}>")
        return self.sign_in(email, request.password)

    def sign_in(self, email: str, password: str) -> AuthSession:
        account = self.accounts.find_by_email(email)
        if account is None or not verify_password(password, account.password_hash):
            logger.warning(f"Failed sign-in for <{email}>")
            raise AuthenticationError("Invalid email or password.")
        session = AuthSession(
            email=account.email,
            role=account.role,
            user_id=self._profile_id(account),
            issued_at=datetime.now(timezone.utc),
        )
        session = replace(session, token=create_session_token(session))
        self._notify(session)
        return session

    def get_session(self, token: Optional[str]) -> Optional[AuthSession]:
        session = verify_session_token(token)
        if session is None or self.revocations.is_revoked(token):
            return None
        return session

    def sign_out(self, token: Optional[str]) -> None:
        """Revokes `token` for every worker until it would expire anyway."""
        if verify_session_token(token):
            self.revocations.revoke(token)
            logger.info("Signed out; session token revoked")
        self._notify(None)
