"""
HTTP API Tests

AXIOM UNDER TEST:
=================
The API is a thin adapter: every ledger rejection surfaces with its
ErrorCode unchanged, mapped onto a fixed HTTP status.
"""

import pytest
from fastapi.testclient import TestClient

from milestone_ledger.api.mapper import map_error, status_for_error
from milestone_ledger.api.server import create_app
from milestone_ledger.contracts.base import Error, ErrorCode
from milestone_ledger.engine import (
    AUDIT_MAX_ENV,
    DEFAULT_AUDIT_MAX_ENTRIES,
    OWNER_ENV,
    STORAGE_DIR_ENV,
    LedgerConfig,
    LedgerContext,
)

from .fixtures import (
    CHILD,
    EDUCATOR,
    OTHER_CHILD,
    OWNER,
    PARENT,
    STRANGER,
    caller_headers,
    new_ledger,
    seed_classroom,
)


@pytest.fixture
def classroom():
    return seed_classroom()


@pytest.fixture
def client(classroom):
    with TestClient(create_app(classroom.ledger)) as test_client:
        yield test_client


def error_code(response) -> str:
    return response.json()["detail"]["error"]["code"]


# =============================================================================
# IDENTITY & RELATIONSHIPS
# =============================================================================

class TestUsersAndRelationships:

    def test_register_and_fetch(self, client):
        response = client.post(
            "/api/v1/users", json={"name": "Newcomer", "role": 4},
            headers=caller_headers("new-kid")
        )

        assert response.status_code == 201
        assert response.json()["role"] == "child"
        fetched = client.get("/api/v1/users/new-kid").json()
        assert fetched["name"] == "Newcomer"
        assert fetched["role_id"] == 4

    def test_duplicate_registration_is_conflict(self, client):
        response = client.post(
            "/api/v1/users", json={"name": "Ada", "role": 2},
            headers=caller_headers(EDUCATOR)
        )

        assert response.status_code == 409
        assert error_code(response) == "USER_ALREADY_EXISTS"

    def test_invalid_role_is_unprocessable(self, client):
        response = client.post(
            "/api/v1/users", json={"name": "X", "role": 7},
            headers=caller_headers("someone")
        )

        assert response.status_code == 422
        assert error_code(response) == "INVALID_USER_ROLE"

    def test_missing_caller_header(self, client):
        response = client.post("/api/v1/users", json={"name": "X", "role": 1})

        assert response.status_code == 401

    def test_unknown_user_is_404(self, client):
        assert client.get("/api/v1/users/ghost").status_code == 404

    def test_create_relationship(self, client):
        response = client.post(
            "/api/v1/relationships",
            json={"subject_id": OTHER_CHILD, "kind": "educator-child"},
            headers=caller_headers(EDUCATOR)
        )

        assert response.status_code == 201
        assert response.json()["kind"] == "educator-child"
        fetched = client.get(f"/api/v1/relationships/{EDUCATOR}/{OTHER_CHILD}")
        assert fetched.status_code == 200

    def test_relationship_to_unregistered_subject(self, client):
        response = client.post(
            "/api/v1/relationships",
            json={"subject_id": "ghost", "kind": "parent-child"},
            headers=caller_headers(EDUCATOR)
        )

        assert response.status_code == 404
        assert error_code(response) == "CHILD_NOT_REGISTERED"

    def test_duplicate_relationship(self, client):
        response = client.post(
            "/api/v1/relationships",
            json={"subject_id": CHILD, "kind": "educator-child"},
            headers=caller_headers(EDUCATOR)
        )

        assert response.status_code == 409
        assert error_code(response) == "DUPLICATE_RELATIONSHIP"


# =============================================================================
# CATALOG
# =============================================================================

class TestCatalogEndpoints:

    def test_create_forest_and_milestone(self, client):
        forest = client.post(
            "/api/v1/forests", json={"name": "Reading"},
            headers=caller_headers(EDUCATOR)
        )
        assert forest.status_code == 201
        forest_id = forest.json()["forest_id"]

        milestone = client.post(
            "/api/v1/milestones",
            json={"title": "Phonics", "difficulty": 2, "forest_id": forest_id},
            headers=caller_headers(EDUCATOR)
        )

        assert milestone.status_code == 201
        fetched = client.get(f"/api/v1/milestones/{milestone.json()['milestone_id']}").json()
        assert fetched["title"] == "Phonics"
        assert fetched["forest_id"] == forest_id
        assert fetched["prerequisite_ids"] == []

    def test_milestone_includes_prerequisites(self, client, classroom):
        fetched = client.get(f"/api/v1/milestones/{classroom.addition}").json()

        assert fetched["prerequisite_ids"] == [classroom.counting]
        assert fetched["parent_milestone_id"] == classroom.counting

    def test_unknown_forest(self, client):
        response = client.post(
            "/api/v1/milestones",
            json={"title": "X", "difficulty": 1, "forest_id": 99},
            headers=caller_headers(EDUCATOR)
        )

        assert response.status_code == 404
        assert error_code(response) == "FOREST_NOT_FOUND"

    def test_bad_difficulty(self, client, classroom):
        response = client.post(
            "/api/v1/milestones",
            json={"title": "X", "difficulty": 6, "forest_id": classroom.forest_id},
            headers=caller_headers(EDUCATOR)
        )

        assert response.status_code == 422
        assert error_code(response) == "INVALID_PARAMETERS"

    def test_add_prerequisite(self, client, classroom):
        response = client.post(
            f"/api/v1/milestones/{classroom.multiplication}/prerequisites",
            json={"prerequisite_id": classroom.counting},
            headers=caller_headers(EDUCATOR)
        )

        assert response.status_code == 201
        assert response.json()["prerequisite_id"] == classroom.counting

    def test_unknown_prerequisite(self, client, classroom):
        response = client.post(
            f"/api/v1/milestones/{classroom.counting}/prerequisites",
            json={"prerequisite_id": 404},
            headers=caller_headers(EDUCATOR)
        )

        assert response.status_code == 404
        assert error_code(response) == "PREREQUISITE_NOT_FOUND"

    def test_forest_tree(self, client, classroom):
        body = client.get(f"/api/v1/forests/{classroom.forest_id}/tree").json()

        assert body["roots"] == [classroom.counting]
        assert [(n["title"], n["parent_milestone_id"], n["depth"]) for n in body["nodes"]] == [
            ("Counting", None, 0),
            ("Addition", classroom.counting, 1),
            ("Multiplication", classroom.addition, 2),
        ]

    def test_deep_placement_chain_renders_flat(self, client, classroom):
        parent = classroom.multiplication
        for level in range(1500):
            parent = classroom.ledger.create_milestone(
                EDUCATOR, f"Step {level}", "", "", 1, classroom.forest_id, parent
            ).value.value

        response = client.get(f"/api/v1/forests/{classroom.forest_id}/tree")

        assert response.status_code == 200
        nodes = response.json()["nodes"]
        assert len(nodes) == 1503
        assert nodes[-1]["milestone_id"] == parent
        assert nodes[-1]["depth"] == 1502

    def test_unknown_forest_lookup(self, client):
        assert client.get("/api/v1/forests/99").status_code == 404
        assert client.get("/api/v1/forests/99/tree").status_code == 404


# =============================================================================
# COMPLETIONS
# =============================================================================

class TestCompletionEndpoints:

    def complete(self, client, milestone_id, caller, learner=CHILD, evidence=None):
        return client.post(
            f"/api/v1/milestones/{milestone_id}/completions",
            json={"learner_id": learner, "evidence_url": evidence},
            headers=caller_headers(caller)
        )

    def test_educator_completes_for_child(self, client, classroom):
        response = self.complete(client, classroom.counting, EDUCATOR, evidence="https://e.x/1")

        assert response.status_code == 201
        assert response.json()["verified_by"] == EDUCATOR
        status = client.get(f"/api/v1/milestones/{classroom.counting}/completions/{CHILD}").json()
        assert status["completed"] is True
        assert status["completion"]["evidence_url"] == "https://e.x/1"

    def test_stranger_forbidden(self, client, classroom):
        response = self.complete(client, classroom.counting, STRANGER)

        assert response.status_code == 403
        assert error_code(response) == "NOT_AUTHORIZED"

    def test_owner_allowed(self, client, classroom):
        response = self.complete(client, classroom.counting, OWNER, learner=OTHER_CHILD)

        assert response.status_code == 201

    def test_prerequisites_block(self, client, classroom):
        response = self.complete(client, classroom.addition, EDUCATOR)

        assert response.status_code == 409
        body = response.json()["detail"]["error"]
        assert body["code"] == "PREREQUISITES_NOT_COMPLETED"
        assert body["context"]["missing"] == str(classroom.counting)

    def test_already_completed(self, client, classroom):
        self.complete(client, classroom.counting, EDUCATOR)

        response = self.complete(client, classroom.counting, PARENT)

        assert response.status_code == 409
        assert error_code(response) == "MILESTONE_ALREADY_COMPLETED"

    def test_self_completion(self, client, classroom):
        response = client.post(
            f"/api/v1/milestones/{classroom.counting}/self-completion",
            json={}, headers=caller_headers(OTHER_CHILD)
        )

        assert response.status_code == 201
        assert response.json()["verified_by"] == OTHER_CHILD

    def test_progress_and_available(self, client, classroom):
        self.complete(client, classroom.counting, EDUCATOR)

        progress = client.get(f"/api/v1/forests/{classroom.forest_id}/progress/{CHILD}").json()
        available = client.get(f"/api/v1/forests/{classroom.forest_id}/available/{CHILD}").json()

        assert progress["completed"] == [classroom.counting]
        assert progress["remaining"] == [classroom.addition, classroom.multiplication]
        assert available["milestone_ids"] == [classroom.addition]

    def test_not_completed_status(self, client, classroom):
        status = client.get(f"/api/v1/milestones/{classroom.counting}/completions/{CHILD}").json()

        assert status == {
            "milestone_id": classroom.counting,
            "learner": CHILD,
            "completed": False,
            "completion": None,
        }


# =============================================================================
# DIAGNOSTICS & WIRING
# =============================================================================

class TestDiagnostics:

    def test_health(self, client, classroom):
        body = client.get("/health").json()

        assert body["status"] == "online"
        assert body["operations"] == len(classroom.ledger.event_log)
        assert body["state_hash"] == classroom.ledger.state_hash()

    def test_cycles_reported(self, client, classroom):
        client.post(
            f"/api/v1/milestones/{classroom.counting}/prerequisites",
            json={"prerequisite_id": classroom.multiplication},
            headers=caller_headers(EDUCATOR)
        )

        body = client.get("/api/v1/topology/cycles").json()

        assert body["acyclic"] is False
        assert sorted(body["cycles"][0]) == [
            classroom.counting, classroom.addition, classroom.multiplication
        ]

    def test_audit_report(self, client):
        client.post("/api/v1/forests", json={"name": ""}, headers=caller_headers(EDUCATOR))

        report = client.get("/api/v1/audit").json()

        assert report["operations"]["create_forest"]["INVALID_PARAMETERS"] == 1
        assert report["operations"]["register"]["committed"] == 5

    def test_app_builds_ledger_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv(OWNER_ENV, "env-owner")
        monkeypatch.setenv(STORAGE_DIR_ENV, str(tmp_path))

        with TestClient(create_app()) as test_client:
            response = test_client.post(
                "/api/v1/forests", json={"name": "Math"},
                headers=caller_headers("anyone")
            )
            ledger = test_client.app.state.ledger

        assert response.status_code == 201
        assert ledger.platform_owner.value == "env-owner"
        assert (tmp_path / "transactions.jsonl").exists()


class TestErrorMapping:

    def test_every_code_has_a_status(self):
        for code in ErrorCode:
            assert status_for_error(Error(code=code, message="x")) >= 400

    def test_error_body(self):
        error = Error(code=ErrorCode.NOT_AUTHORIZED, message="no", context=(("caller", "x"),))

        assert map_error(error) == {
            "error": {"code": "NOT_AUTHORIZED", "message": "no", "context": {"caller": "x"}}
        }

    def test_config_from_env_defaults(self):
        config = LedgerConfig.from_env({})

        assert config.platform_owner is None
        assert config.storage.backend_type == "memory"
        assert config.observability.max_entries == DEFAULT_AUDIT_MAX_ENTRIES

    def test_config_from_env_audit_window(self):
        config = LedgerConfig.from_env({AUDIT_MAX_ENV: "3"})
        ledger = LedgerContext(config)

        for attempt in range(10):
            ledger.create_forest(STRANGER, "", f"attempt {attempt}")

        assert len(ledger.audit.get_entries()) == 3
        assert ledger.audit.count("create_forest", "INVALID_PARAMETERS") == 10

    def test_config_from_env_rejects_negative_audit_window(self):
        with pytest.raises(ValueError):
            LedgerConfig.from_env({AUDIT_MAX_ENV: "-1"})

    def test_fresh_ledger_is_healthy(self):
        with TestClient(create_app(new_ledger())) as test_client:
            assert test_client.get("/health").json()["operations"] == 0
