"""Read-only template routes."""
from tests.conftest import seed_template


class TestTemplates:

    def test_list_active_default_first(self, client, db):
        seed_template(db, template_ref="b-extra", name="A extra", is_default=False)
        seed_template(db, template_ref="standard", name="Standard agreement")
        seed_template(db, template_ref="retired", name="Old", is_default=False, is_active=False)

        refs = [t["template_ref"] for t in client.get("/api/templates/").json()]
        assert refs == ["standard", "b-extra"]

        all_refs = {t["template_ref"] for t in client.get("/api/templates/", params={"include_inactive": True}).json()}
        assert all_refs == {"standard", "b-extra", "retired"}

    def test_get(self, client, db):
        seed_template(db)
        body = client.get("/api/templates/standard").json()
        assert body["is_default"] is True
        assert "@studio_name" in body["content"]

    def test_inactive_is_not_found(self, client, db):
        seed_template(db, template_ref="retired", is_default=False, is_active=False)
        resp = client.get("/api/templates/retired")
        assert resp.status_code == 404
        assert resp.json()["detail"]["error"] == "not_found"
