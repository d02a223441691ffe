import pytest

from database import TeamProjection
from models import User, UserRole
from services import Principal
from services.identity import (
    VIEW_CHECK_IN,
    VIEW_DASHBOARD,
    VIEW_LOGIN,
    VIEW_SCORING,
    allowed_views,
    can_access,
    default_view,
)

from conftest import PASSWORD


def test_sign_in_resolves_role(gate, users):
    ok, message, session = gate.sign_in("judge@competition.test", PASSWORD)

    assert ok
    assert message == "Welcome, Judge One"
    assert session.user.role == UserRole.JUDGE
    assert session.user.uid == users[UserRole.JUDGE].uid


def test_sign_in_email_is_case_insensitive(gate, users):
    ok, _, session = gate.sign_in("Admin@Competition.Test", PASSWORD)

    assert ok
    assert session.user.role == UserRole.ADMIN


@pytest.mark.parametrize("email, password", [
    ("judge@competition.test", "wrong"),
    ("nobody@competition.test", PASSWORD),
    ("", ""),
])
def test_bad_credentials(gate, users, email, password):
    ok, message, session = gate.sign_in(email, password)

    assert not ok
    assert message == "Invalid email or password"
    assert session is None


def test_account_without_role_is_unauthenticated(gate):
    ok, _, uid = gate.provider.create_account("new@competition.test", PASSWORD)
    assert ok

    assert gate.resolve(Principal(uid=uid, email="new@competition.test")) is None
    ok, message, session = gate.sign_in("new@competition.test", PASSWORD)
    assert not ok
    assert message == "No role assigned to this account"
    assert session is None


def test_duplicate_account_rejected(gate, users):
    ok, message, uid = gate.provider.create_account("judge@competition.test", "other")

    assert not ok
    assert uid is None
    assert "already exists" in message


def test_set_password(gate, users):
    ok, _ = gate.provider.set_password("volunteer@competition.test", "new-secret")
    assert ok

    assert gate.sign_in("volunteer@competition.test", PASSWORD)[0] is False
    assert gate.sign_in("volunteer@competition.test", "new-secret")[0] is True


def test_provision_rejects_unknown_role(gate):
    ok, message = gate.provision_user("uid-1", "x@competition.test", "boss", "X")

    assert not ok
    assert message == "Invalid role: boss"


def test_provision_updates_existing_role(gate, users):
    volunteer = users[UserRole.VOLUNTEER]

    ok, _ = gate.provision_user(volunteer.uid, volunteer.email, "admin", volunteer.name)

    assert ok
    roles = {user.uid: user.role for user in gate.list_users()}
    assert roles[volunteer.uid] == UserRole.ADMIN


@pytest.mark.parametrize("role, views", [
    (UserRole.VOLUNTEER, [VIEW_CHECK_IN]),
    (UserRole.JUDGE, [VIEW_SCORING]),
    (UserRole.ADMIN, [VIEW_CHECK_IN, VIEW_SCORING, VIEW_DASHBOARD]),
])
def test_view_gating(role, views):
    user = User(uid="u", email="u@competition.test", role=role)

    assert allowed_views(user) == views
    assert default_view(user) in views
    assert can_access(user, VIEW_LOGIN)


def test_no_user_sees_only_login():
    assert allowed_views(None) == []
    assert default_view(None) == VIEW_LOGIN
    assert not can_access(None, VIEW_DASHBOARD)


def test_session_close_cancels_subscriptions(gate, users, feed):
    ok, _, session = gate.sign_in("admin@competition.test", PASSWORD)
    assert ok
    projection = TeamProjection()
    session.track(projection.attach(feed))
    session.track(feed.subscribe("team_scores", lambda snapshot: None))

    session.close()

    assert not session.active
    assert not session.can_access(VIEW_DASHBOARD)
    assert feed.subscriber_count("teams") == 0
    assert feed.subscriber_count("team_scores") == 0
