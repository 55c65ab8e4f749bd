"""Client for producers: sends signed domain events to the orchestrator over HTTP

Failures never propagate to the producer: an unconfigured or unreachable
orchestrator yields {"success": False, "reason": ...}.
"""
import json
import logging
from typing import Any, Dict, Optional

import httpx

from mailflow.core.config import settings
from mailflow.core.security import sign_payload

logger = logging.getLogger(__name__)


def trigger_email(
    event_type: str,
    user_id: str,
    event_data: Optional[Dict[str, Any]] = None,
    client: Optional[httpx.Client] = None
) -> Dict[str, Any]:
    """POST a domain event to the orchestrator

    Args:
        event_type: Domain event type, e.g. "quiz.completed"
        user_id: User the event is about
        event_data: Event-specific template data
        client: Optional httpx client (a short-lived one is created otherwise)

    Returns:
        The orchestrator's response body, or a failure dict
    """
    if not settings.EMAIL_ORCHESTRATOR_URL:
        logger.warning("EMAIL_ORCHESTRATOR_URL not configured, email not sent")
        return {"success": False, "reason": "Email orchestrator not configured"}

    body = json.dumps({"eventType": event_type, "userId": user_id, "eventData": event_data or {}}).encode("utf-8")
    headers = {"Content-Type": "application/json"}
    if settings.ORCHESTRATOR_SECRET:
        headers[settings.ORCHESTRATOR_SIGNATURE_HEADER] = sign_payload(body, settings.ORCHESTRATOR_SECRET)

    owns_client = client is None
    if owns_client:
        client = httpx.Client(timeout=settings.TRIGGER_TIMEOUT_SECONDS)

    try:
        response = client.post(settings.EMAIL_ORCHESTRATOR_URL, content=body, headers=headers)
        if response.status_code >= 500:
            raise httpx.HTTPStatusError(
                f"Email orchestrator error: {response.status_code}",
                request=response.request,
                response=response
            )
        # 2xx and 4xx both carry a structured result
        return response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"Error triggering email {event_type} for {user_id}: {e}")
        return {"success": False, "reason": str(e)}
    finally:
        if owns_client:
            client.close()


def trigger_welcome_email(user_id: str, email: str, username: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    """Trigger welcome email on user signup"""
    return trigger_email("user.created", user_id, {"email": email, "username": username}, client=client)


def trigger_quiz_completed(
    user_id: str,
    quiz_count: int,
    score: float,
    certification_name: Optional[str] = None,
    client: Optional[httpx.Client] = None
) -> Dict[str, Any]:
    return trigger_email(
        "quiz.completed",
        user_id,
        {"quizCount": quiz_count, "score": score, "certificationName": certification_name},
        client=client
    )


def trigger_perfect_score(user_id: str, quiz_title: str, client: Optional[httpx.Client] = None) -> Dict[str, Any]:
    return trigger_email("quiz.perfect_score", user_id, {"quizTitle": quiz_title}, client=client)


def trigger_ai_analysis_ready(
    user_id: str,
    certification_name: str,
    readiness_score: float,
    client: Optional[httpx.Client] = None
) -> Dict[str, Any]:
    return trigger_email(
        "ai_analysis.ready",
        user_id,
        {"certificationName": certification_name, "readinessScore": readiness_score},
        client=client
    )
