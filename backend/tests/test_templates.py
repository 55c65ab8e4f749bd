"""Email template rendering tests"""
import pytest

from mailflow.models.email_template import EmailTemplate
from mailflow.services.email_catalog import EVENT_EMAIL_TYPES
from mailflow.services.template_service import (
    TemplateRenderError, render_component, render_email, render_fallback
)
from mailflow.utils.email_templates import FALLBACK_TEMPLATES, TEMPLATE_COMPONENTS


SAMPLE_DATA = {
    "username": "Ada",
    "score": 85,
    "quizTitle": "IAM Deep Dive",
    "certificationName": "AWS Solutions Architect",
    "readinessScore": 72,
    "quizzesCompleted": 5,
    "averageScore": 81,
    "xpEarned": 420,
    "recommendations": ["Review VPC peering", "Practice S3 lifecycle rules"],
    "quizCount": 50,
    "badgeName": "Cloud Ninja",
    "badgeDescription": "Completed 10 quizzes in a week",
    "currentStreak": 30,
    "longestStreak": 30,
    "newLevel": 7,
    "featureName": "AI Analysis",
    "featureDescription": "See exactly where you stand.",
}


@pytest.mark.critical
class TestFallbackTemplates:
    """Built-in templates for every email type"""

    def test_every_templated_email_type_has_fallback(self):
        for email_type in EVENT_EMAIL_TYPES.values():
            if email_type == "marketing":
                continue
            assert email_type in FALLBACK_TEMPLATES

    @pytest.mark.parametrize("email_type", sorted(FALLBACK_TEMPLATES))
    def test_fallback_renders_full_document(self, email_type):
        html = render_fallback(email_type, SAMPLE_DATA)

        assert html.startswith("<!DOCTYPE html>")
        assert "</html>" in html

    def test_unknown_type_has_no_fallback(self):
        assert render_fallback("marketing", SAMPLE_DATA) is None

    def test_values_are_html_escaped(self):
        html = render_fallback("welcome", {"username": "<script>alert(1)</script>"})

        assert "<script>" not in html
        assert "&lt;script&gt;" in html

    def test_missing_values_render_empty(self):
        html = render_fallback("level_up", {})

        assert "Level Up! You're now Level !" in html

    def test_readiness_recommendations_are_listed(self):
        html = render_fallback("monthly_certification_readiness", SAMPLE_DATA)

        assert "<li>Review VPC peering</li>" in html
        assert "Next report: Next month" in html


@pytest.mark.high
class TestTemplateComponents:
    """Registered branded components"""

    @pytest.mark.parametrize("component_ref", sorted(TEMPLATE_COMPONENTS))
    def test_component_renders_with_layout(self, component_ref):
        html = render_component(component_ref, SAMPLE_DATA)

        assert "Manage preferences" in html
        assert "%(" not in html

    def test_inactive_components_share_layout_with_own_copy(self):
        three_day = render_component("inactive_3day", SAMPLE_DATA)
        two_week = render_component("inactive_14day", SAMPLE_DATA)

        assert "We miss you!" in three_day
        assert "Last chance" in two_week

    def test_unknown_component_raises(self):
        with pytest.raises(TemplateRenderError):
            render_component("emails/nope", SAMPLE_DATA)


@pytest.mark.high
class TestRenderEmail:
    """Registry lookup with fallback"""

    def test_without_registry_row_uses_fallback(self, db_session):
        html = render_email("perfect_score", SAMPLE_DATA, db_session)

        assert "IAM Deep Dive" in html
        assert "Manage preferences" not in html

    def test_registry_row_selects_component(self, db_session):
        db_session.add(EmailTemplate(name="perfect_score", component_ref="perfect_score", is_active=True))
        db_session.commit()

        html = render_email("perfect_score", SAMPLE_DATA, db_session)

        assert "Manage preferences" in html

    def test_no_template_anywhere_returns_none(self, db_session):
        assert render_email("marketing", SAMPLE_DATA, db_session) is None


@pytest.mark.medium
class TestSeedTemplates:
    """Registry seeding script"""

    def test_seed_registers_every_component(self, db_session):
        from scripts.seed_email_templates import seed_templates

        assert seed_templates(db_session) == len(TEMPLATE_COMPONENTS)
        assert seed_templates(db_session) == 0
        assert db_session.query(EmailTemplate).filter(EmailTemplate.is_active == True).count() == len(TEMPLATE_COMPONENTS)  # noqa: E712

    def test_deactivated_template_falls_back(self, db_session):
        from scripts.seed_email_templates import deactivate_template, seed_templates

        seed_templates(db_session)
        assert deactivate_template(db_session, "welcome") is True
        assert deactivate_template(db_session, "nope") is False

        html = render_email("welcome", {"username": "Ada"}, db_session)
        assert "Manage preferences" not in html

    def test_overwrite_reactivates(self, db_session):
        from scripts.seed_email_templates import deactivate_template, seed_templates

        seed_templates(db_session)
        deactivate_template(db_session, "welcome")

        assert seed_templates(db_session, overwrite=True) == len(TEMPLATE_COMPONENTS)
        assert render_email("welcome", {"username": "Ada"}, db_session).count("Manage preferences") == 1
