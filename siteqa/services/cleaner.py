"""Whitespace and artefact cleanup for extracted page text."""

import re

# Runs of spaces, tabs and non-breaking spaces inside a line
_INLINE_WS_RE = re.compile(r"[ \t\u00a0]+")

# Cloudflare email obfuscation leaves "[email protected]" in the rendered text
_EMAIL_PROTECTED_RE = re.compile(r"\[email(?:\s|\u00a0|&#160;)*protected\]", re.IGNORECASE)

# Markdown horizontal rules carry no content
_RULE_RE = re.compile(r"^(?:[-*_]\s*){3,}$")


def clean_text(text: str) -> str:
    """Trim every line, drop empty lines and rules, and collapse inline whitespace."""
    text = _EMAIL_PROTECTED_RE.sub("", text)
    lines = []
    for line in text.splitlines():
        line = _INLINE_WS_RE.sub(" ", line).strip()
        if not line or _RULE_RE.match(line):
            continue
        lines.append(line)
    return "\n".join(lines)
