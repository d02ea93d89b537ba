"""
Template adapter — render a ``{var}`` template into a file.

Simple string replacement, no Jinja. ``{{`` and ``}}`` stand for literal
braces, and ``${VAR}`` is left alone for systemd to expand. Rendering
with an unresolved placeholder left over is an error, not a silent blank.
"""

from __future__ import annotations

import re
from pathlib import Path

from provisioner.adapters.base import ExecutionContext
from provisioner.adapters.host.file import FileAdapter

_TOKEN = re.compile(r"\{\{|\}\}|(?<!\$)\{([a-zA-Z_][a-zA-Z0-9_]*)\}")
_ESCAPES = {"{{": "{", "}}": "}"}


class TemplateError(ValueError):
    """The template could not be rendered completely."""


def render_template(template: str, context: dict[str, str]) -> str:
    """Substitute ``{key}`` placeholders with context values.

    Raises:
        TemplateError: A ``{word}`` placeholder has no value.
    """
    unresolved = unresolved_placeholders(template, context)
    if unresolved:
        names = ", ".join(f"{{{name}}}" for name in sorted(set(unresolved)))
        raise TemplateError(f"Unresolved template variables: {names}")

    def substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        return _ESCAPES[match.group(0)] if name is None else str(context[name])

    return _TOKEN.sub(substitute, template)


def unresolved_placeholders(template: str, context: dict[str, str] | None = None) -> list[str]:
    """Return the ``{word}`` placeholders in ``template`` with no value in ``context``.

    ``{}``, index-style ``{0}``, escaped ``{{word}}`` and systemd's
    ``${word}`` are not placeholders.
    """
    context = context or {}
    return [
        name
        for name in (m.group(1) for m in _TOKEN.finditer(template))
        if name is not None and name not in context
    ]


class TemplateAdapter(FileAdapter):
    """Converge files rendered from a template.

    Resource params:
        template (str): Path of the template file.
        context (dict[str, str]): Values for the placeholders.
    """

    @property
    def name(self) -> str:
        return "template"

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        if not context.params.get("template"):
            return False, "Missing required param: 'template'"
        if context.resource.ensure != "present":
            return False, f"Unsupported ensure '{context.resource.ensure}' (expected 'present')"
        return super().validate(context)

    def desired_content(self, context: ExecutionContext) -> bytes | None:
        """Render the template.

        Raises:
            OSError: The template cannot be read.
            TemplateError: Placeholders left unresolved.
        """
        text = Path(context.params["template"]).read_text(encoding="utf-8")
        return render_template(text, context.params.get("context", {})).encode("utf-8")
