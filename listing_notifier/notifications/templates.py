"""Jinja2 rendering of notification subjects and bodies.

Each kind ships three files under ``email_templates/``:
``<kind>_subject.j2``, ``<kind>_body.html.j2`` and ``<kind>_body.txt.j2``.
Autoescaping is switched on for the HTML body alone, so subjects and
plain text carry listing and message text verbatim.
"""

import logging
from typing import Any, Dict, Mapping

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError, select_autoescape

from .models import NotificationTemplateError

logger = logging.getLogger(__name__)

LISTING_MATCH = "listing_match"
CONVERSATION_MESSAGE = "conversation_message"
DIRECT_MESSAGE = "direct_message"
WELCOME = "welcome"

TEMPLATE_KINDS = (LISTING_MATCH, CONVERSATION_MESSAGE, DIRECT_MESSAGE, WELCOME)

# rendered key -> template filename suffix
_PARTS = {
    "subject": "_subject.j2",
    "html_body": "_body.html.j2",
    "text_body": "_body.txt.j2",
}


class TemplateRenderer:
    """Loads the packaged templates once and renders them per delivery.

    Undefined variables raise instead of rendering as blanks.
    """

    def __init__(self, template_dir: str = "email_templates"):
        self.env = Environment(
            loader=PackageLoader("listing_notifier.notifications", template_dir),
            autoescape=select_autoescape(enabled_extensions=("html.j2",), default_for_string=False, default=False),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, kind: str, context: Mapping[str, Any]) -> Dict[str, str]:
        """Render ``subject``, ``html_body`` and ``text_body`` for ``kind``.

        The subject is collapsed onto one line and the text body always
        ends with a single newline.

        Raises:
            NotificationTemplateError: Unknown kind, or a template failed
        """
        if kind not in TEMPLATE_KINDS:
            raise NotificationTemplateError(f"Unknown notification template '{kind}'")

        rendered: Dict[str, str] = {}
        try:
            for key, suffix in _PARTS.items():
                rendered[key] = self.env.get_template(kind + suffix).render(context)
        except TemplateError as e:
            logger.error(
                f"Could not render {kind} email: {e}",
                extra={"event": "template.render_failed", "template": kind},
            )
            raise NotificationTemplateError(f"Could not render {kind} email: {e}") from e

        rendered["subject"] = " ".join(rendered["subject"].split())
        rendered["text_body"] = rendered["text_body"].strip() + "\n"
        return rendered
