"""Tests for actor resolution."""

from dictionary_editor import Principal, resolve_actor


class TestResolveActor:

    def test_email_wins(self):
        p = Principal(name="sub-1", email="asha@example.org", username="asha")
        assert resolve_actor(p) == "asha@example.org"

    def test_username_when_no_email(self):
        assert resolve_actor(Principal(name="sub-1", email="  ", username="asha")) == "asha"

    def test_name_last(self):
        assert resolve_actor(Principal(name="sub-1")) == "sub-1"

    def test_no_principal(self):
        assert resolve_actor(None) == "system"

    def test_empty_principal(self):
        assert resolve_actor(Principal()) == "system"


class TestFromClaims:

    def test_cognito_claims(self):
        p = Principal.from_claims({
            "sub": "abc",
            "email": "asha@example.org",
            "cognito:username": "asha",
            "cognito:groups": ["editors", "admins"],
        })
        assert p.name == "abc"
        assert p.username == "asha"
        assert p.groups == ("editors", "admins")
        assert resolve_actor(p) == "asha@example.org"

    def test_single_group_string(self):
        assert Principal.from_claims({"groups": "editors"}).groups == ("editors",)

    def test_missing_groups(self):
        assert Principal.from_claims({}).groups == ()

    def test_explicit_name(self):
        p = Principal.from_claims({"sub": "abc"}, name="asha")
        assert p.name == "asha"

    def test_username_claim_fallbacks(self):
        p = Principal.from_claims({"preferred_username": "asha"})
        assert resolve_actor(p) == "asha"
