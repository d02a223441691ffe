"""
Competition Dashboard - Identity Service
Email/password sign-in, role lookup and role-based view gating
"""

import hashlib
import hmac
import secrets
import sqlite3
from datetime import datetime
from typing import Callable, List, NamedTuple, Optional, Tuple

from loguru import logger

from database import DatabaseManager, new_record_id
from models import User, UserRole, utc_now

VIEW_LOGIN = "login"
VIEW_CHECK_IN = "check-in"
VIEW_SCORING = "scoring"
VIEW_DASHBOARD = "dashboard"

VIEW_ROLES = {
    VIEW_CHECK_IN: (UserRole.VOLUNTEER, UserRole.ADMIN),
    VIEW_SCORING: (UserRole.JUDGE, UserRole.ADMIN),
    VIEW_DASHBOARD: (UserRole.ADMIN,),
}

DEFAULT_ITERATIONS = 200_000


class Principal(NamedTuple):
    """What the identity provider knows about a signed-in person"""
    uid: str
    email: str


def can_access(user: Optional[User], view: str) -> bool:
    """Login is open to everyone; every other view needs a role record with an allowed role"""
    if view == VIEW_LOGIN:
        return True
    if user is None:
        return False
    return user.role in VIEW_ROLES.get(view, ())


def allowed_views(user: Optional[User]) -> List[str]:
    return [view for view in VIEW_ROLES if can_access(user, view)]


def default_view(user: Optional[User]) -> str:
    if user is None:
        return VIEW_LOGIN
    if user.role == UserRole.ADMIN:
        return VIEW_DASHBOARD
    if user.role == UserRole.JUDGE:
        return VIEW_SCORING
    return VIEW_CHECK_IN


class Session:
    """A signed-in user plus the subscriptions opened on their behalf.

    One instance per browser session; views receive it explicitly and
    sign-out tears it down.
    """

    def __init__(self, user: User, started_at: datetime):
        self.user: Optional[User] = user
        self.started_at = started_at
        self._closers: List[Callable[[], None]] = []

    @property
    def active(self) -> bool:
        return self.user is not None

    def track(self, unsubscribe: Callable[[], None]) -> None:
        """Register a subscription to cancel when the session ends"""
        self._closers.append(unsubscribe)

    def can_access(self, view: str) -> bool:
        return can_access(self.user, view)

    def close(self) -> None:
        for unsubscribe in self._closers:
            unsubscribe()
        self._closers.clear()
        if self.user is not None:
            logger.info(f"Session closed for {self.user.email}")
        self.user = None


class IdentityProvider:
    """Email/password accounts, stored apart from role records"""

    def __init__(self, db_manager: DatabaseManager, iterations: int = DEFAULT_ITERATIONS,
                 clock: Callable[[], datetime] = utc_now):
        self.db_manager = db_manager
        self.iterations = iterations
        self.clock = clock

    @staticmethod
    def _hash_password(password: str, salt: str, iterations: int) -> str:
        digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), bytes.fromhex(salt), iterations)
        return digest.hex()

    def create_account(self, email: str, password: str,
                       uid: Optional[str] = None) -> Tuple[bool, str, Optional[str]]:
        """Create sign-in credentials. Returns (success, message, uid)"""
        email = (email or "").strip()
        if not email or not password:
            return False, "Email and password are required", None

        uid = uid or new_record_id()
        salt = secrets.token_hex(16)
        password_hash = self._hash_password(password, salt, self.iterations)

        conn = self.db_manager.get_connection()
        try:
            conn.execute("""
                INSERT INTO accounts (uid, email, password_hash, salt, iterations, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (uid, email, password_hash, salt, self.iterations, self.clock().isoformat()))
            conn.commit()
        except sqlite3.IntegrityError:
            return False, f"An account already exists for {email}", None
        except sqlite3.Error:
            logger.exception(f"Error creating account for {email}")
            return False, "Failed to create account", None
        finally:
            conn.close()

        logger.info(f"Account created for {email}")
        return True, f"Account created for {email}", uid

    def set_password(self, email: str, password: str) -> Tuple[bool, str]:
        if not password:
            return False, "Password is required"

        salt = secrets.token_hex(16)
        password_hash = self._hash_password(password, salt, self.iterations)

        conn = self.db_manager.get_connection()
        try:
            cursor = conn.execute("""
                UPDATE accounts SET password_hash = ?, salt = ?, iterations = ?
                WHERE email = ?
            """, (password_hash, salt, self.iterations, (email or "").strip()))
            conn.commit()
            if cursor.rowcount == 0:
                return False, f"No account for {email}"
        except sqlite3.Error:
            logger.exception(f"Error updating password for {email}")
            return False, "Failed to update password"
        finally:
            conn.close()

        return True, f"Password updated for {email}"

    def sign_in(self, email: str, password: str) -> Optional[Principal]:
        """Check credentials. Returns the principal, or None when they don't match"""
        conn = self.db_manager.get_connection()
        try:
            row = conn.execute(
                "SELECT uid, email, password_hash, salt, iterations FROM accounts WHERE email = ?",
                ((email or "").strip(),)
            ).fetchone()
        finally:
            conn.close()

        if row is None:
            return None

        candidate = self._hash_password(password or "", row["salt"], row["iterations"])
        if not hmac.compare_digest(candidate, row["password_hash"]):
            return None
        return Principal(uid=row["uid"], email=row["email"])


class IdentityGate:
    """Resolves signed-in principals to role records"""

    def __init__(self, db_manager: DatabaseManager, provider: Optional[IdentityProvider] = None,
                 clock: Callable[[], datetime] = utc_now):
        self.db_manager = db_manager
        self.provider = provider or IdentityProvider(db_manager, clock=clock)
        self.clock = clock

    def resolve(self, principal: Principal) -> Optional[User]:
        """Fetch the role record for a principal; None means unauthenticated"""
        conn = self.db_manager.get_connection()
        try:
            row = conn.execute("SELECT * FROM users WHERE uid = ?", (principal.uid,)).fetchone()
        finally:
            conn.close()

        if row is None:
            logger.warning(f"No role record for {principal.email}")
            return None

        user = User.from_row(row)
        return user.model_copy(update={"email": principal.email or user.email})

    def sign_in(self, email: str, password: str) -> Tuple[bool, str, Optional[Session]]:
        """Authenticate and resolve the role. Returns (success, message, session)"""
        try:
            principal = self.provider.sign_in(email, password)
            if principal is None:
                logger.info(f"Failed sign-in for {email}")
                return False, "Invalid email or password", None

            user = self.resolve(principal)
        except sqlite3.Error:
            logger.exception(f"Error signing in {email}")
            return False, "Failed to sign in", None

        if user is None:
            return False, "No role assigned to this account", None

        logger.info(f"{user.email} signed in as {user.role.value}")
        return True, f"Welcome, {user.name or user.email}", Session(user, self.clock())

    # Role records are provisioned by the admin tooling (manage_users.py), never by the views

    def provision_user(self, uid: str, email: str, role: str, name: str) -> Tuple[bool, str]:
        try:
            user = User(uid=uid, email=email, role=role, name=name)
        except ValueError:
            return False, f"Invalid role: {role}"

        conn = self.db_manager.get_connection()
        try:
            conn.execute("""
                INSERT INTO users (uid, email, role, name) VALUES (?, ?, ?, ?)
                ON CONFLICT(uid) DO UPDATE SET email = excluded.email,
                    role = excluded.role, name = excluded.name
            """, (user.uid, user.email, user.role.value, user.name))
            conn.commit()
        except sqlite3.Error:
            logger.exception(f"Error provisioning user {email}")
            return False, "Failed to save user"
        finally:
            conn.close()

        return True, f"{email} is now a {user.role.value}"

    def list_users(self) -> List[User]:
        return [User.from_row(row) for row in self.db_manager.fetch_collection("users")]
