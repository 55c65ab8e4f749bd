"""Producer-side trigger client tests"""
import json
import pytest
import httpx
from unittest.mock import patch

from conftest import ORCHESTRATOR_TEST_SECRET
from mailflow.core.config import settings
from mailflow.core.security import sign_payload
from mailflow.services.trigger_service import (
    trigger_ai_analysis_ready, trigger_email, trigger_perfect_score,
    trigger_quiz_completed, trigger_welcome_email
)

ORCHESTRATOR_URL = "https://mail.clouddojo.tech/api/email/events"


@pytest.fixture
def orchestrator_url():
    with patch.object(settings, 'EMAIL_ORCHESTRATOR_URL', ORCHESTRATOR_URL):
        yield ORCHESTRATOR_URL


def client_returning(status_code: int, body=None, captured: list = None) -> httpx.Client:
    """httpx client whose transport answers every request with a fixed response"""
    def handler(request: httpx.Request) -> httpx.Response:
        if captured is not None:
            captured.append(request)
        if isinstance(body, (dict, list)):
            return httpx.Response(status_code, json=body)
        return httpx.Response(status_code, content=body or b"")

    return httpx.Client(transport=httpx.MockTransport(handler))


@pytest.mark.high
class TestTriggerEmail:
    """trigger_email never raises to the producer"""

    def test_not_configured(self):
        with patch.object(settings, 'EMAIL_ORCHESTRATOR_URL', ""):
            result = trigger_email("user.created", "user_123")

        assert result == {"success": False, "reason": "Email orchestrator not configured"}

    def test_posts_signed_event(self, orchestrator_url, orchestrator_secret):
        captured = []
        client = client_returning(200, {"success": True, "emailType": "welcome"}, captured)

        result = trigger_email("user.created", "user_123", {"username": "Ada"}, client=client)

        assert result == {"success": True, "emailType": "welcome"}
        request = captured[0]
        assert str(request.url) == ORCHESTRATOR_URL
        assert json.loads(request.content) == {
            "eventType": "user.created", "userId": "user_123", "eventData": {"username": "Ada"}
        }
        assert request.headers["x-mailflow-signature"] == sign_payload(request.content, ORCHESTRATOR_TEST_SECRET)

    def test_unsigned_without_secret(self, orchestrator_url):
        captured = []
        with patch.object(settings, 'ORCHESTRATOR_SECRET', ""):
            trigger_email("user.created", "user_123", client=client_returning(200, {"success": True}, captured))

        assert "x-mailflow-signature" not in captured[0].headers

    def test_client_error_body_is_returned(self, orchestrator_url):
        client = client_returning(400, {"success": False, "reason": "INVALID_REQUEST"})

        result = trigger_email("user.created", "", client=client)

        assert result == {"success": False, "reason": "INVALID_REQUEST"}

    def test_server_error_becomes_failure(self, orchestrator_url):
        client = client_returning(500, {"success": False, "error": "Internal server error"})

        result = trigger_email("user.created", "user_123", client=client)

        assert result["success"] is False
        assert "500" in result["reason"]

    def test_connection_error_becomes_failure(self, orchestrator_url):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.Client(transport=httpx.MockTransport(refuse))

        result = trigger_email("user.created", "user_123", client=client)

        assert result == {"success": False, "reason": "connection refused"}

    def test_non_json_response_becomes_failure(self, orchestrator_url):
        result = trigger_email("user.created", "user_123", client=client_returning(200, b"<html>ok</html>"))

        assert result["success"] is False


@pytest.mark.medium
class TestTriggerHelpers:
    """Typed helpers build the right event"""

    @pytest.mark.parametrize("helper, args, event_type, event_data", [
        (trigger_welcome_email, ("user_123", "ada@example.com", "Ada"), "user.created",
         {"email": "ada@example.com", "username": "Ada"}),
        (trigger_quiz_completed, ("user_123", 3, 90.0, "AWS SAA"), "quiz.completed",
         {"quizCount": 3, "score": 90.0, "certificationName": "AWS SAA"}),
        (trigger_perfect_score, ("user_123", "S3 Basics"), "quiz.perfect_score", {"quizTitle": "S3 Basics"}),
        (trigger_ai_analysis_ready, ("user_123", "AWS SAA", 72.5), "ai_analysis.ready",
         {"certificationName": "AWS SAA", "readinessScore": 72.5}),
    ])
    def test_helper_event(self, orchestrator_url, helper, args, event_type, event_data):
        captured = []

        helper(*args, client=client_returning(200, {"success": True}, captured))

        sent = json.loads(captured[0].content)
        assert sent["eventType"] == event_type
        assert sent["userId"] == "user_123"
        assert sent["eventData"] == event_data
