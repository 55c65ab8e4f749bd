"""Static email lookup tables: event map, preference keys, senders, subjects, priorities"""
import logging
from typing import Any, Dict, Optional

from mailflow.core.config import settings
from mailflow.schemas.email import EmailPriority

logger = logging.getLogger(__name__)

# Domain event type -> email type
EVENT_EMAIL_TYPES: Dict[str, str] = {
    "user.created": "welcome",
    "quiz.completed": "quiz_basic",
    "quiz.perfect_score": "perfect_score",
    "ai_analysis.ready": "ai_analysis_notification",
    "user.inactive_3d": "inactive_3day",
    "user.inactive_7d": "inactive_7day",
    "user.inactive_14d": "inactive_14day",
    "progress.weekly_report": "weekly_progress",
    "certification.monthly_readiness": "monthly_certification_readiness",
    "quiz.milestone": "quiz_milestone",
    "badge.unlocked": "badge_unlocked",
    "streak.milestone": "streak_milestone",
    "level.up": "level_up",
    "feature.adoption": "feature_adoption",
    "marketing.announcement": "marketing",
}

# Email type -> EmailPreferences toggle column; unmapped types are always allowed
PREFERENCE_KEYS: Dict[str, str] = {
    "welcome": "product_updates",
    "quiz_basic": "product_updates",
    "inactive_3day": "product_updates",
    "inactive_7day": "product_updates",
    "inactive_14day": "product_updates",
    "perfect_score": "milestone_emails",
    "quiz_milestone": "milestone_emails",
    "badge_unlocked": "milestone_emails",
    "streak_milestone": "milestone_emails",
    "level_up": "milestone_emails",
    "ai_analysis_notification": "ai_analysis_notifs",
    "weekly_progress": "weekly_progress_report",
    "monthly_certification_readiness": "weekly_progress_report",
    "feature_adoption": "feature_updates",
    "marketing": "marketing_emails",
}

FROM_ADDRESSES: Dict[str, str] = {
    "welcome": "CloudDojo <welcome@clouddojo.tech>",
    "ai_analysis_notification": "CloudDojo <analysis@clouddojo.tech>",
    "marketing": "CloudDojo <hello@clouddojo.tech>",
}

# Subjects may interpolate event data with str.format fields
SUBJECTS: Dict[str, str] = {
    "welcome": "Welcome to CloudDojo! 🚀",
    "quiz_basic": "Great progress, {username}! 🎯",
    "perfect_score": "Perfect Score! You're on fire! 🔥",
    "ai_analysis_notification": "Your AI Analysis is Ready! 📊",
    "inactive_3day": "We miss you! Come back and practice 📚",
    "inactive_7day": "Your progress is waiting for you 💪",
    "inactive_14day": "Last chance to continue your journey 🎓",
    "weekly_progress": "Your Weekly Progress Report 📈",
    "monthly_certification_readiness": "Your {certificationName} Readiness Report 📊",
    "quiz_milestone": "{quizCount} Quizzes Completed! 🎯",
    "badge_unlocked": "Badge Unlocked: {badgeName}! 🏆",
    "streak_milestone": "{currentStreak}-Day Streak! 🔥",
    "level_up": "Level Up! You're now Level {newLevel}! ⚡",
    "feature_adoption": "Unlock {featureName} - You're Missing Out! 💡",
}
DEFAULT_SUBJECT = "CloudDojo Update"

HIGH_PRIORITY_TYPES = frozenset({"welcome", "ai_analysis_notification", "perfect_score"})
LOW_PRIORITY_TYPES = frozenset({"marketing", "weekly_progress", "feature_adoption"})

# Dedup windows for campaign emails; everything else uses DEDUP_WINDOW_HOURS
DEDUP_WINDOW_HOURS: Dict[str, int] = {
    "inactive_3day": 72,
    "inactive_7day": 72,
    "inactive_14day": 72,
    "weekly_progress": 6 * 24,
    "monthly_certification_readiness": 27 * 24,
}


def map_event_to_email_type(event_type: str) -> Optional[str]:
    """Return the email type for a domain event, or None if it sends nothing"""
    return EVENT_EMAIL_TYPES.get(event_type)


def get_preference_key(email_type: str) -> Optional[str]:
    return PREFERENCE_KEYS.get(email_type)


def get_from_address(email_type: str) -> str:
    return FROM_ADDRESSES.get(email_type, f"CloudDojo <{settings.DEFAULT_FROM_EMAIL}>")


class _KeepMissing(dict):
    def __missing__(self, key):
        return "{" + key + "}"


def get_subject(email_type: str, template_data: Optional[Dict[str, Any]] = None) -> str:
    """Subject line for an email type, filled from template data

    Placeholders with no matching data are left as-is rather than failing.
    """
    subject = SUBJECTS.get(email_type, DEFAULT_SUBJECT)
    try:
        return subject.format_map(_KeepMissing(template_data or {}))
    except (ValueError, IndexError) as e:
        logger.warning(f"Could not format subject for {email_type}: {e}")
        return subject


def get_priority(email_type: str) -> EmailPriority:
    if email_type in HIGH_PRIORITY_TYPES:
        return EmailPriority.HIGH
    if email_type in LOW_PRIORITY_TYPES:
        return EmailPriority.LOW
    return EmailPriority.NORMAL


def get_dedup_window_hours(email_type: str) -> int:
    return DEDUP_WINDOW_HOURS.get(email_type, settings.DEDUP_WINDOW_HOURS)
