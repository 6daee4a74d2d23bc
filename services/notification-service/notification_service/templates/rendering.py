"""Jinja environment and the plain-text email templates rendered through it."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateError,
    select_autoescape,
)

from notification_service.core.errors import TemplateRenderError
from notification_service.templates.formatting import format_amount, greeting_name

TEMPLATE_DIR = Path(__file__).parent

_DEFAULT_CONTEXT: dict[str, Any] = {
    "display_name": None,
    "store_name": "our store",
    "line_items": [],
    "provider_reference": None,
}


@lru_cache
def get_environment() -> Environment:
    env = Environment(
        loader=FileSystemLoader(TEMPLATE_DIR),
        autoescape=select_autoescape(["html", "xml"]),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["format_amount"] = format_amount
    env.filters["greeting_name"] = greeting_name
    return env


@dataclass(frozen=True)
class EmailTemplate:
    """A subject/body pair stored as ``<name>.subject.j2`` and ``<name>.body.j2``."""

    name: str

    def render(self, context: dict[str, Any]) -> dict[str, str]:
        env = get_environment()
        values = {**_DEFAULT_CONTEXT, **context}
        try:
            subject = env.get_template(f"{self.name}.subject.j2").render(values)
            body = env.get_template(f"{self.name}.body.j2").render(values)
        except TemplateError as exc:
            raise TemplateRenderError(self.name, str(exc)) from exc
        return {"subject": subject.strip(), "body": body}
