from __future__ import annotations

import pytest
from pydantic import ValidationError

from conftest import PROFILE
from lib.principal import UserProfile, deserialize_user, serialize_user


def test_profile_round_trips_through_session() -> None:
    user = UserProfile.model_validate(PROFILE)
    assert deserialize_user(serialize_user(user)) == user


def test_name_falls_back_to_preferred_username() -> None:
    user = UserProfile.model_validate({"sub": "1", "email": "bob@example.com", "preferred_username": "bob"})
    assert user.name == "bob"


def test_unknown_claims_are_dropped() -> None:
    user = UserProfile.model_validate({**PROFILE, "realm_access": {"roles": ["admin"]}})
    assert "realm_access" not in serialize_user(user)


@pytest.mark.parametrize("missing", ["sub", "email"])
def test_required_claims(missing: str) -> None:
    data = {k: v for k, v in PROFILE.items() if k != missing}
    with pytest.raises(ValidationError):
        UserProfile.model_validate(data)


def test_invalid_session_user_is_discarded() -> None:
    assert deserialize_user({"sub": "1"}) is None
    assert deserialize_user(None) is None
