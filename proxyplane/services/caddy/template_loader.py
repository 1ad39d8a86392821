"""
Caddyfile template rendering.

render_template() expands the websocket-headers snippet first, then
interpolates {{variables}}. Unknown placeholders are left in place so a
half-rendered config is easy to spot in `caddy validate` output.
"""

import re
from typing import Any, Mapping, Optional

from .errors import TemplateNotFound
from .templates import TEMPLATES, TemplateStore, WEBSOCKET_HEADERS, WEBSOCKET_HEADERS_PLACEHOLDER

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")
_WEBSOCKET_LINE = re.compile(r"^([ \t]*)" + re.escape(WEBSOCKET_HEADERS_PLACEHOLDER), re.MULTILINE)


def expand_snippet(template: str, snippet: str) -> str:
    """
    Splice a multi-line snippet at every {{WEBSOCKET_HEADERS}} line.

    The first snippet line takes the placeholder's place; each following line
    is prefixed with the whitespace found before the placeholder.
    """
    lines = snippet.strip().split("\n")

    def _splice(match: re.Match) -> str:
        indent = match.group(1)
        return indent + ("\n" + indent).join(lines)

    return _WEBSOCKET_LINE.sub(_splice, template)


def interpolate(template: str, variables: Mapping[str, Any]) -> str:
    """Replace {{key}} with str(variables[key]); unmatched keys stay verbatim."""

    def _replace(match: re.Match) -> str:
        key = match.group(1)
        if key in variables:
            return str(variables[key])
        return match.group(0)

    return _PLACEHOLDER.sub(_replace, template)


class TemplateRenderer:
    """Renders named templates from an immutable template store."""

    def __init__(self, store: TemplateStore = TEMPLATES, snippet: str = WEBSOCKET_HEADERS):
        self.store = store
        self.snippet = snippet

    def render(self, name: str, variables: Optional[Mapping[str, Any]] = None) -> str:
        """
        Render a template by name.

        Args:
            name: Template name (e.g. "project-dynamic-path")
            variables: Values for {{placeholders}}

        Returns:
            Rendered Caddyfile text

        Raises:
            TemplateNotFound: If the store has no template with this name
        """
        try:
            template = self.store[name]
        except KeyError:
            raise TemplateNotFound(name) from None

        return interpolate(expand_snippet(template, self.snippet), variables or {})


def render_template(name: str, variables: Optional[Mapping[str, Any]] = None) -> str:
    """Render using the default template store."""
    return TemplateRenderer().render(name, variables)
