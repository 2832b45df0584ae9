"""Filesystem-safe names for downloaded artifacts.

Slugs are derived from display names and are not unique: two projects named
"Site A" and "site   a" produce the same slug. Callers that need uniqueness
must add an id themselves.
"""
import re

_WHITESPACE = re.compile(r"\s+")
_NON_ALNUM = re.compile(r"[^a-z0-9]", re.IGNORECASE)
_UNSAFE = re.compile(r"[^a-z0-9\-_.]")


def slugify(name: str | None, fallback: str = "untitled") -> str:
    """Lowercase, collapse whitespace runs to ``-`` and drop unsafe characters."""
    text = (name or "").strip().lower()
    text = _WHITESPACE.sub("-", text)
    text = _UNSAFE.sub("", text)
    text = re.sub(r"-{2,}", "-", text).strip("-")
    return text or fallback


def underscore_name(title: str | None, fallback: str = "document") -> str:
    """Replace every non-alphanumeric character with ``_`` (case preserved)."""
    text = _NON_ALNUM.sub("_", title or "")
    return text or fallback


def qr_filename(kind: str, name: str | None) -> str:
    return f"{kind}-{slugify(name)}-qr.png"


def signon_report_filename(kind: str, name: str | None) -> str:
    return f"{kind}-signon-report-{slugify(name)}.pdf"


def sign_sheet_filename(title: str | None) -> str:
    return f"{underscore_name(title)}_SignOnSheet.pdf"
