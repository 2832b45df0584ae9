"""Sign-on deep links and their QR codes.

``SIGN_ROUTES`` is shared with ``siteportal.api.sign_on`` so the URL printed
in a QR code always resolves to the route that serves it.
"""
from __future__ import annotations

import base64
import enum
import io
import logging
from dataclasses import dataclass
from urllib.parse import parse_qs, urlencode, urlsplit

import qrcode
from qrcode.constants import ERROR_CORRECT_M

from siteportal.config import settings
from siteportal.services.filenames import qr_filename

logger = logging.getLogger(__name__)


class SignLinkKind(enum.Enum):
    project = "project"
    document = "document"


@dataclass(frozen=True)
class SignRoute:
    path: str
    param: str


SIGN_ROUTES: dict[SignLinkKind, SignRoute] = {
    SignLinkKind.project: SignRoute(path="project-sign", param="project"),
    SignLinkKind.document: SignRoute(path="document-sign", param="doc"),
}


@dataclass(frozen=True)
class SignLink:
    kind: SignLinkKind
    entity_id: str
    url: str


def _normalize_base_path(base_path: str | None) -> str:
    base = (settings.app_base_path if base_path is None else base_path).strip()
    base = base.rstrip("/")
    if base and not base.startswith("/"):
        base = "/" + base
    return base


def build_sign_on_url(
    kind: SignLinkKind | str,
    entity_id,
    origin: str | None = None,
    base_path: str | None = None,
) -> str:
    kind = SignLinkKind(kind)
    route = SIGN_ROUTES[kind]
    origin = (settings.app_origin if origin is None else origin).rstrip("/")
    query = urlencode({route.param: str(entity_id)})
    return f"{origin}{_normalize_base_path(base_path)}/{route.path}?{query}"


def sign_link(kind: SignLinkKind | str, entity_id) -> SignLink:
    kind = SignLinkKind(kind)
    return SignLink(
        kind=kind, entity_id=str(entity_id), url=build_sign_on_url(kind, entity_id)
    )


def resolve_sign_on_url(url: str) -> tuple[SignLinkKind, str]:
    """Return the (kind, id) a sign-on URL routes to."""
    parts = urlsplit(url)
    segment = parts.path.rstrip("/").rsplit("/", 1)[-1]
    query = parse_qs(parts.query)
    for kind, route in SIGN_ROUTES.items():
        if segment != route.path:
            continue
        values = query.get(route.param)
        if not values or not values[0]:
            raise ValueError(f"Sign-on URL is missing the '{route.param}' parameter")
        return kind, values[0]
    raise ValueError(f"Not a sign-on URL: {url}")


def render_qr_png(
    url: str, box_size: int | None = None, border: int | None = None
) -> bytes:
    qr = qrcode.QRCode(
        error_correction=ERROR_CORRECT_M,
        box_size=box_size or settings.qr_box_size,
        border=settings.qr_border if border is None else border,
    )
    qr.add_data(url)
    qr.make(fit=True)
    image = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    image.save(buf)
    return buf.getvalue()


def qr_data_uri(url: str, box_size: int | None = None) -> str | None:
    """PNG data URI for ``url``; ``None`` if the encoder fails."""
    try:
        png = render_qr_png(url, box_size=box_size)
    except Exception as e:
        logger.exception("Failed to generate QR code for %s: %s", url, e)
        return None
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")


def download_name(kind: SignLinkKind | str, name: str | None) -> str:
    return qr_filename(SignLinkKind(kind).value, name)
