from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from app.core.dependencies import get_current_actor


def request():
    return SimpleNamespace(state=SimpleNamespace())


def test_profile_row_wins_over_token_claim(fake_db):
    actor = get_current_actor(request(), {"id": "recep-1", "app_metadata": {"role": "admin"}}, fake_db)
    assert actor.role == "receptionist"
    assert actor.name == "Front Desk"


def test_token_claim_is_used_when_no_profile_row(fake_db):
    user = {"id": "new-user", "email": "new@studio.test", "app_metadata": {"role": "editor"}}
    actor = get_current_actor(request(), user, fake_db)
    assert actor.role == "editor"
    assert actor.email == "new@studio.test"


def test_no_profile_and_no_claim_has_no_role(fake_db):
    assert get_current_actor(request(), {"id": "new-user"}, fake_db).role is None


def test_profile_lookup_failure_fails_closed(fake_db):
    fake_db.failing_tables.add("users")

    # a deactivated admin must not slip through on the token claim
    with pytest.raises(HTTPException) as exc_info:
        get_current_actor(request(), {"id": "admin-3", "app_metadata": {"role": "admin"}}, fake_db)

    assert exc_info.value.status_code == 503


def test_profile_lookup_failure_over_http(client, fake_db):
    fake_db.failing_tables.add("users")
    response = client.get("/api/v1/auth/me")
    assert response.status_code == 503
    assert response.json()["detail"] == "User profile unavailable"


def test_profile_is_read_once_per_request(fake_db):
    req = request()
    get_current_actor(req, {"id": "admin-1"}, fake_db)
    get_current_actor(req, {"id": "admin-1"}, fake_db)
    assert fake_db.calls.count(("users", "select")) == 1
