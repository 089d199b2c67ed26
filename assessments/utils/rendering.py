"""Rendering of author-supplied instructions and grader feedback."""
from __future__ import annotations

import markdown
from django.utils.html import linebreaks
from django.utils.safestring import mark_safe

from assessments.models import Assessment
from assessments.utils.sanitize import sanitize_html

_MARKDOWN_EXTENSIONS = [
    "markdown.extensions.extra",
    "markdown.extensions.sane_lists",
]


def render_rich_text(value: str | None, content_format: str | None) -> str:
    """Render ``value`` to safe HTML according to ``content_format``.

    Markdown is converted first and then passed through the allow-list
    sanitizer, HTML is sanitized as-is, and anything else is escaped with
    paragraph breaks preserved.
    """

    if not value:
        return ""
    if content_format == Assessment.ContentFormat.MARKDOWN:
        html = markdown.markdown(
            value,
            extensions=_MARKDOWN_EXTENSIONS,
            output_format="html",
        )
        return mark_safe(sanitize_html(html))
    if content_format == Assessment.ContentFormat.HTML:
        return mark_safe(sanitize_html(value))
    return linebreaks(value, autoescape=True)


def render_instructions(assessment: Assessment) -> str:
    return render_rich_text(assessment.instructions, assessment.instructions_format)


def render_feedback(feedback: str | None) -> str:
    # Graders write feedback in markdown.
    return render_rich_text(feedback, Assessment.ContentFormat.MARKDOWN)
