"""
Tests for the HTTP and WebSocket API.
"""

import pytest
from fastapi.testclient import TestClient

from triage_service.api.main import app
from triage_service.core.triage_service import get_triage_service, reset_triage_service
from triage_service.db.feedback_archive import FeedbackArchive
from triage_service.scoring.classifier import RiskClassifier


class UnavailableClassifier(RiskClassifier):
    model_version = "offline"

    def classify(self, vitals):
        raise ConnectionError("model server unreachable")


@pytest.fixture
def client():
    reset_triage_service()
    with TestClient(app) as test_client:
        yield test_client
    reset_triage_service()


class TestHealth:

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_health_components(self, client):
        data = client.get("/health").json()

        assert data["components"]["classifier"] == "rules-1.0"
        assert data["components"]["queue_size"] == 0
        assert data["components"]["feedback_archive"] == "disabled"


class TestPredict:

    def test_assessment_response_shape(self, client, vitals_factory):
        response = client.post("/predict/", json=vitals_factory(patient_id="P1"))

        assert response.status_code == 200
        data = response.json()
        assert data["patient_id"] == "P1"
        assert data["risk_level"] == "low"
        assert data["queue_position"] == 1
        assert data["estimated_wait_time"] == 15
        assert len(data["recommendations"]) == 4
        assert data["details"]["derived_bmi"] == 22.9
        assert data["details"]["derived_map"] == 93.3

    def test_missing_vital_returns_422_with_field(self, client, vitals_factory):
        raw = vitals_factory()
        del raw["Oxygen_Saturation"]

        response = client.post("/predict/", json=raw)

        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"
        assert response.json()["field"] == "oxygen_saturation"

    def test_duplicate_returns_409(self, client, vitals_factory):
        client.post("/predict/", json=vitals_factory(patient_id="P1"))
        response = client.post("/predict/", json=vitals_factory(patient_id="P1"))

        assert response.status_code == 409
        assert response.json()["patient_id"] == "P1"

    def test_classifier_outage_returns_503(self, client, vitals_factory):
        get_triage_service().classifier = UnavailableClassifier()

        response = client.post("/predict/", json=vitals_factory(patient_id="P1"))

        assert response.status_code == 503
        assert response.json()["retryable"] is True
        assert client.get("/queue/").json() == []


class TestQueue:

    def test_queue_is_ordered(self, client, vitals_factory, critical_vitals):
        client.post("/predict/", json=vitals_factory(patient_id="routine"))
        client.post("/predict/", json={**critical_vitals, "patient_id": "urgent"})

        queue = client.get("/queue/").json()

        assert [p["patient_id"] for p in queue] == ["urgent", "routine"]
        assert [p["queue_position"] for p in queue] == [1, 2]
        assert set(queue[0]) == {
            "patient_id", "risk_level", "confidence_score", "priority_score",
            "queue_position", "estimated_wait_time", "timestamp"
        }

    def test_next_on_empty_queue_returns_404(self, client):
        response = client.get("/queue/next/")

        assert response.status_code == 404
        assert response.json()["error"] == "empty_queue"

    def test_next_and_peek(self, client, vitals_factory, critical_vitals):
        client.post("/predict/", json=vitals_factory(patient_id="routine"))
        client.post("/predict/", json={**critical_vitals, "patient_id": "urgent"})

        assert client.get("/queue/peek/").json()["patient_id"] == "urgent"
        assert client.get("/queue/next/").json()["patient_id"] == "urgent"
        assert client.get("/queue/peek/").json()["queue_position"] == 1
        assert len(client.get("/queue/").json()) == 1

    def test_clear(self, client, vitals_factory):
        client.post("/predict/", json=vitals_factory(patient_id="A"))
        client.post("/predict/", json=vitals_factory(patient_id="B"))

        response = client.delete("/queue/clear/")

        assert response.json() == {"status": "cleared", "removed": 2}
        assert client.get("/queue/").json() == []

    def test_update_priorities(self, client, vitals_factory):
        client.post("/predict/", json=vitals_factory(patient_id="A"))

        data = client.post("/queue/update-priorities/").json()

        assert data["status"] == "updated"
        assert data["total"] == 1
        assert data["queue"][0]["patient_id"] == "A"


class TestFeedback:

    def test_feedback_recorded(self, client, vitals_factory):
        client.post("/predict/", json=vitals_factory(patient_id="P1"))

        response = client.post("/feedback/", params={
            "patient_id": "P1",
            "actual_wait_time": 18,
            "satisfaction_score": 0.7,
            "resource_utilization": 0.5
        })

        assert response.status_code == 200
        assert response.json()["tier_stats"]["service_minutes"] == 18.0
        stats = client.get("/stats/").json()
        assert stats["calibration"]["tiers"]["low"]["samples"] == 1

    def test_feedback_unknown_patient(self, client):
        response = client.post("/feedback/", params={
            "patient_id": "ghost", "actual_wait_time": 10, "satisfaction_score": 0.5
        })

        assert response.status_code == 422
        assert response.json()["field"] == "patient_id"

    def test_feedback_score_out_of_range(self, client, vitals_factory):
        client.post("/predict/", json=vitals_factory(patient_id="P1"))

        response = client.post("/feedback/", params={
            "patient_id": "P1", "actual_wait_time": 10, "satisfaction_score": 4
        })

        assert response.status_code == 422
        assert response.json()["field"] == "satisfaction_score"

    def test_recent_feedback_requires_archive(self, client):
        assert client.get("/feedback/recent/").status_code == 404

    def test_recent_feedback_from_archive(self, client, vitals_factory):
        service = get_triage_service()
        archive = FeedbackArchive("sqlite:///:memory:")
        service.feedback_sink = archive
        service.calibrator.sink = archive
        client.post("/predict/", json=vitals_factory(patient_id="P1"))
        client.post("/feedback/", params={
            "patient_id": "P1", "actual_wait_time": 9, "satisfaction_score": 0.6
        })

        response = client.get("/feedback/recent/", params={"limit": 5})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["feedback"][0]["patient_id"] == "P1"
        assert data["feedback"][0]["risk_level"] == "low"

    def test_repeat_feedback_rejected(self, client, vitals_factory):
        client.post("/predict/", json=vitals_factory(patient_id="P1"))
        params = {"patient_id": "P1", "actual_wait_time": 5, "satisfaction_score": 0.0}

        assert client.post("/feedback/", params=params).status_code == 200
        repeat = client.post("/feedback/", params=params)

        assert repeat.status_code == 422
        assert repeat.json()["field"] == "patient_id"

    def test_feedback_wait_beyond_a_day_rejected(self, client, vitals_factory):
        client.post("/predict/", json=vitals_factory(patient_id="P1"))

        response = client.post("/feedback/", params={
            "patient_id": "P1", "actual_wait_time": 1e308, "satisfaction_score": 0.9
        })

        assert response.status_code == 422
        assert response.json()["field"] == "actual_wait_time"
        assert client.post("/queue/update-priorities/").status_code == 200


class TestStats:

    def test_stats(self, client, vitals_factory, critical_vitals):
        client.post("/predict/", json=vitals_factory(patient_id="A"))
        client.post("/predict/", json={**critical_vitals, "patient_id": "B"})

        stats = client.get("/stats/").json()

        assert stats["queue"]["total"] == 2
        assert stats["queue"]["by_risk"]["high"] == 1
        assert stats["classifier"] == "rules-1.0"

    def test_scoring_config(self, client):
        data = client.get("/config/scoring/").json()

        assert data["base_scores"]["high"] == 100.0
        assert data["average_service_minutes"]["low"] == 15.0


class TestWebSocket:

    def test_initial_state_and_ping(self, client, vitals_factory):
        client.post("/predict/", json=vitals_factory(patient_id="P1"))

        with client.websocket_connect("/ws") as websocket:
            initial = websocket.receive_json()
            assert initial["type"] == "initial_state"
            assert initial["data"]["queue"][0]["patient_id"] == "P1"

            websocket.send_json({"type": "ping"})
            assert websocket.receive_json()["type"] == "pong"

            websocket.send_json({"type": "shout"})
            assert websocket.receive_json()["type"] == "error"

    def test_queue_events_broadcast(self, client, vitals_factory):
        with client.websocket_connect("/ws") as websocket:
            websocket.receive_json()

            client.post("/predict/", json=vitals_factory(patient_id="P1"))
            message = websocket.receive_json()

            assert message["type"] == "queue_update"
            assert message["event_type"] == "patient_queued"
            assert message["data"]["patient_id"] == "P1"

    def test_status(self, client):
        data = client.get("/ws/status").json()
        assert data["subscribed_to_events"] is True
