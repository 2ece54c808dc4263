"""End-to-end tests for POST /add, GET /{sheet_id} and GET /health."""

from __future__ import annotations

import json

from conftest import ADMIN_SECRET
from main import create_app

BODY = {"formSecretKey": "key", "sheetId": "S1", "sheetName": "Sheet1"}


class TestAdd:
    def test_allocates_sequential_ids(self, client):
        first = client.post("/add", json=BODY, headers={"x-admin-secret": ADMIN_SECRET})
        second = client.post("/add", json=BODY, headers={"x-admin-secret": ADMIN_SECRET})
        assert first.status_code == 201
        assert first.json() == {"webhook": "/1"}
        assert second.json() == {"webhook": "/2"}

    def test_secret_in_body(self, client):
        resp = client.post("/add", json={**BODY, "secret": ADMIN_SECRET})
        assert resp.status_code == 201

    def test_bad_secret(self, client, registry):
        resp = client.post("/add", json=BODY, headers={"x-admin-secret": "wrong"})
        assert resp.status_code == 401
        assert resp.json() == {"message": "Unauthorized"}
        assert len(registry) == 0

    def test_no_body_no_secret(self, client):
        assert client.post("/add").status_code == 401

    def test_missing_fields(self, client):
        resp = client.post("/add", json={"sheetId": "S1"}, headers={"x-admin-secret": ADMIN_SECRET})
        assert resp.status_code == 400
        assert resp.json() == {"message": "Missing required fields", "missing": ["formSecretKey", "sheetName"]}

    def test_invalid_json(self, client):
        resp = client.post(
            "/add",
            content=b"{oops",
            headers={"x-admin-secret": ADMIN_SECRET, "content-type": "application/json"},
        )
        assert resp.status_code == 400

    def test_conflict(self, client, registry):
        client.post("/add", json={**BODY, "id": "abc"}, headers={"x-admin-secret": ADMIN_SECRET})
        resp = client.post("/add", json={**BODY, "sheetId": "S2", "id": "abc"}, headers={"x-admin-secret": ADMIN_SECRET})
        assert resp.status_code == 409
        assert resp.json() == {"message": "ID already exists", "id": "abc"}
        assert registry.lookup_by_id("abc").sheet_id == "S1"

    def test_persisted(self, client, registry_path):
        client.post("/add", json=BODY, headers={"x-admin-secret": ADMIN_SECRET})
        with open(registry_path, encoding="utf-8") as f:
            assert json.load(f) == {"1": BODY}

    def test_persistence_failure(self, client, registry):
        from unittest.mock import patch

        with patch("services.form_registry.os.replace", side_effect=OSError(13, "Permission denied")):
            resp = client.post("/add", json=BODY, headers={"x-admin-secret": ADMIN_SECRET})
        assert resp.status_code == 500
        assert resp.json()["message"] == "Failed to save config"
        assert len(registry) == 0

    def test_reserved_id_rejected(self, client, registry):
        resp = client.post("/add", json={**BODY, "id": "add"}, headers={"x-admin-secret": ADMIN_SECRET})
        assert resp.status_code == 400
        assert resp.json() == {"message": "Reserved id", "id": "add"}
        assert len(registry) == 0

    def test_secret_with_surrounding_whitespace_rejected(self, client, registry):
        resp = client.post("/add", json={**BODY, "secret": f" {ADMIN_SECRET} "})
        assert resp.status_code == 401
        assert len(registry) == 0


class TestWiring:
    def test_empty_registry_is_the_one_served(self, client, registry, registry_path):
        assert len(registry) == 0
        assert client.app.state.registry is registry
        client.post("/add", json=BODY, headers={"x-admin-secret": ADMIN_SECRET})
        assert registry.lookup_by_id("1").sheet_id == "S1"
        with open(registry_path, encoding="utf-8") as f:
            assert json.load(f) == {"1": BODY}

    def test_injected_collaborators_kept(self, registry, crypto, sink):
        app = create_app(registry=registry, crypto=crypto, sink=sink, admin_secret=ADMIN_SECRET)
        assert app.state.registry is registry
        assert app.state.ingestion.registry is registry
        assert app.state.ingestion.crypto is crypto
        assert app.state.ingestion.sink is sink
        assert app.state.registry_controller.registry is registry


class TestReverseLookup:
    def test_found(self, client):
        client.post("/add", json=BODY, headers={"x-admin-secret": ADMIN_SECRET})
        resp = client.get("/S1")
        assert resp.status_code == 200
        assert resp.json() == {"id": "1"}

    def test_not_found(self, client):
        resp = client.get("/nothing")
        assert resp.status_code == 404
        assert resp.json() == {"message": "Sheet ID not found"}


class TestHealth:
    def test_health(self, client):
        client.post("/add", json=BODY, headers={"x-admin-secret": ADMIN_SECRET})
        assert client.get("/health").json() == {"status": "ok", "forms": 1}

    def test_registry_bootstrapped_on_startup(self, client, registry_path):
        with open(registry_path, encoding="utf-8") as f:
            assert json.load(f) == {}
