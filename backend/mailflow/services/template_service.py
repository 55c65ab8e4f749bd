"""Template registry lookup and HTML rendering"""
import logging
from typing import Any, Dict, Optional

from jinja2 import TemplateError
from sqlalchemy.orm import Session

from mailflow.models.email_template import EmailTemplate
from mailflow.utils.email_templates import FALLBACK_TEMPLATES, TEMPLATE_COMPONENTS, template_env

logger = logging.getLogger(__name__)


class TemplateRenderError(Exception):
    """A registered template component could not be rendered"""


def find_active_template(name: str, db: Session) -> Optional[EmailTemplate]:
    """Get the active registry entry for an email type"""
    return db.query(EmailTemplate).filter(
        EmailTemplate.name == name,
        EmailTemplate.is_active == True  # noqa: E712
    ).first()


def render_component(component_ref: str, data: Dict[str, Any]) -> str:
    """Render a registered template component

    Raises:
        TemplateRenderError: Unknown component_ref or the template failed to render
    """
    if component_ref not in TEMPLATE_COMPONENTS:
        raise TemplateRenderError(f"Unknown template component: {component_ref}")

    template_name, fixed_context = TEMPLATE_COMPONENTS[component_ref]
    try:
        return template_env.get_template(template_name).render({**fixed_context, **data})
    except TemplateError as e:
        raise TemplateRenderError(f"Failed to render {component_ref}: {e}") from e


def render_fallback(email_type: str, data: Dict[str, Any]) -> Optional[str]:
    """Render the built-in template for an email type, or None if there is none"""
    template_name = FALLBACK_TEMPLATES.get(email_type)
    if template_name is None:
        return None
    try:
        return template_env.get_template(template_name).render(data)
    except TemplateError as e:
        logger.error(f"Fallback template for {email_type} failed to render: {e}")
        return None


def render_email(email_type: str, data: Dict[str, Any], db: Session) -> Optional[str]:
    """Render the HTML body for an email

    The active registry entry wins; a missing entry or a render failure falls
    back to the built-in template. Returns None if neither produces HTML.
    """
    template = find_active_template(email_type, db)
    if template is None:
        logger.warning(f"No template found for {email_type}, using fallback")
        return render_fallback(email_type, data)

    try:
        return render_component(template.component_ref, data)
    except TemplateRenderError as e:
        logger.error(f"Error rendering template {template.component_ref}: {e}")
        return render_fallback(email_type, data)
