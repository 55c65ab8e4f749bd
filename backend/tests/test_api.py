"""API route tests"""
import json
import pytest
from unittest.mock import Mock, patch

import redis
from fastapi.testclient import TestClient

from conftest import signed_orchestrator_request
from mailflow.db import redis as redis_module
from mailflow.main import app
from mailflow.db.email_queue import queue_depths
from mailflow.models.email_log import EmailLog, EmailStatus


@pytest.mark.critical
class TestEventsEndpoint:
    """POST /api/email/events"""

    def test_signed_event_is_queued(self, client, test_user, orchestrator_secret):
        body, signature = signed_orchestrator_request(
            {"eventType": "quiz.perfect_score", "userId": test_user.id, "eventData": {"quizTitle": "S3 Basics"}}
        )

        response = client.post(
            "/api/email/events",
            content=body,
            headers={"Content-Type": "application/json", "x-mailflow-signature": signature}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["emailType"] == "perfect_score"
        assert queue_depths()["high"] == 1

    def test_missing_fields_returns_400(self, client):
        response = client.post("/api/email/events", json={"userId": "user_123"})

        assert response.status_code == 400
        assert response.json()["reason"] == "INVALID_REQUEST"

    def test_bad_signature_returns_401(self, client, test_user, orchestrator_secret):
        body, _ = signed_orchestrator_request({"eventType": "user.created", "userId": test_user.id})

        response = client.post("/api/email/events", content=body, headers={"x-mailflow-signature": "deadbeef"})

        assert response.status_code == 401
        assert queue_depths()["high"] == 0

    def test_rejection_returns_200(self, client, test_user):
        response = client.post("/api/email/events", json={"eventType": "quiz.started", "userId": test_user.id})

        assert response.status_code == 200
        assert response.json() == {
            "success": False,
            "reason": "NO_MAPPING",
            "message": "No email mapped to quiz.started"
        }


@pytest.mark.high
class TestResendEndpoint:
    """POST /api/email/logs/{log_id}/resend"""

    def test_failed_email_is_requeued(self, client, db_session, sent_email_log, orchestrator_secret):
        sent_email_log.status = EmailStatus.FAILED.value
        db_session.commit()
        body, signature = signed_orchestrator_request({})

        response = client.post(
            f"/api/email/logs/{sent_email_log.id}/resend",
            content=body,
            headers={"x-mailflow-signature": signature}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["retryCount"] == 1
        assert data["messageId"] != sent_email_log.message_id

    def test_unsigned_resend_is_401(self, client, sent_email_log, orchestrator_secret):
        response = client.post(f"/api/email/logs/{sent_email_log.id}/resend")

        assert response.status_code == 401

    def test_unknown_log_is_404(self, client, orchestrator_secret):
        body, signature = signed_orchestrator_request({})

        response = client.post("/api/email/logs/999/resend", content=body, headers={"x-mailflow-signature": signature})

        assert response.status_code == 404

    def test_sent_email_cannot_be_resent(self, client, sent_email_log, orchestrator_secret):
        body, signature = signed_orchestrator_request({})

        response = client.post(
            f"/api/email/logs/{sent_email_log.id}/resend",
            content=body,
            headers={"x-mailflow-signature": signature}
        )

        assert response.status_code == 400
        assert "failed or bounced" in response.json()["detail"]


@pytest.mark.medium
class TestMonitoring:
    """Health and metrics endpoints"""

    def test_health_with_cache(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "cache": True}

    def test_health_degraded_without_cache(self, client):
        broken = Mock()
        broken.ping.side_effect = redis.ConnectionError("connection refused")

        with patch.object(redis_module, '_client', broken):
            response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "degraded", "cache": False}

    def test_metrics_exposes_pipeline_counters(self, client, test_user):
        client.post("/api/email/events", json={"eventType": "user.created", "userId": test_user.id})

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "mailflow_orchestrator_decisions_total" in response.text
        assert 'mailflow_queue_depth{priority="high"} 1.0' in response.text


@pytest.mark.medium
class TestErrorHandling:
    """Unexpected errors surface as JSON 500s"""

    def test_unhandled_error_returns_json_500(self, client, test_user):
        quiet_client = TestClient(app, raise_server_exceptions=False)

        with patch('mailflow.api.email.handle_email_event', side_effect=RuntimeError("boom")):
            response = quiet_client.post("/api/email/events", json={"eventType": "user.created", "userId": test_user.id})

        assert response.status_code == 500
        assert response.json() == {"success": False, "error": "Internal server error"}

    def test_log_rows_untouched_by_rejected_request(self, client, db_session):
        client.post("/api/email/events", content=json.dumps({"eventType": "user.created"}))

        assert db_session.query(EmailLog).count() == 0
