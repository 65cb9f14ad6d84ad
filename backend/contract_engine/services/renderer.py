"""Default rendering collaborator: template-variable substitution.

Contract bodies reference data with ``@name`` or ``{name}`` tokens. Rendering is
a pure function of (content, data_context); nothing here touches storage.
"""
import html
import re
from typing import Any, Mapping, Optional

_HTML_TAG = re.compile(r"<[^>]+>")
# "@name" only at a word boundary so e-mail addresses survive; both forms in one pass
_TOKEN = re.compile(r"(?<![\w.])@([A-Za-z_]\w*)|\{([A-Za-z_]\w*)\}")


def _substitute(content: str, data: Mapping[str, Any], escape: bool) -> str:
    def _value(match: re.Match) -> str:
        name = match.group(1) or match.group(2)
        if name in data and data[name] is not None:
            value = str(data[name])
            return html.escape(value) if escape else value
        return "{%s}" % name

    return _TOKEN.sub(_value, content)


def substitute_variables(content: str, data_context: Optional[Mapping[str, Any]] = None) -> str:
    """Replace known tokens with ``data_context`` values.

    Unknown tokens are normalised to the visible ``{name}`` placeholder. Inserted
    values are never scanned for tokens again.
    """
    return _substitute(content, data_context or {}, escape=False)


def render_content(content: str, data_context: Optional[Mapping[str, Any]] = None) -> str:
    """Render a contract body as HTML for display.

    Plain-text bodies are escaped and get their line breaks converted to
    ``<br>``; HTML bodies keep their own structure. Data values are always
    escaped.
    """
    if not content:
        return ""
    if _HTML_TAG.search(content):
        return _substitute(content, data_context or {}, escape=True)
    body = html.escape(content, quote=False).replace("\n", "<br>")
    return _substitute(body, data_context or {}, escape=True)
