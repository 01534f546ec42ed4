import json
import logging
from html import escape
from string import Template

from fastapi.responses import HTMLResponse, RedirectResponse, Response
from sqlalchemy.orm import Session

from qrtracker.core.config import get_settings
from qrtracker.core.exceptions import AppException
from qrtracker.services.fingerprint_service import ClientFingerprint, resolve_fingerprint
from qrtracker.services.qr_service import get_qr_by_code
from qrtracker.services.scan_service import record_scan

settings = get_settings()
logger = logging.getLogger(__name__)

REDIRECT_DELAY_MS = 100

TAG_MANAGER_PAGE = Template(
    """<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <script>(function(w,d,s,l,i){w[l]=w[l]||[];w[l].push({'gtm.start':
    new Date().getTime(),event:'gtm.js'});var f=d.getElementsByTagName(s)[0],
    j=d.createElement(s),dl=l!='dataLayer'?'&l='+l:'';j.async=true;j.src=
    'https://www.googletagmanager.com/gtm.js?id='+i+dl;f.parentNode.insertBefore(j,f);
    })(window,document,'script','dataLayer',$gtm_id_js);</script>
    <script>
        window.dataLayer = window.dataLayer || [];
        window.dataLayer.push($event_js);
        setTimeout(function() {
            window.location.href = $target_js;
        }, $delay);
    </script>
</head>
<body>
    <noscript><iframe src="https://www.googletagmanager.com/ns.html?id=$gtm_id_attr"
    height="0" width="0" style="display:none;visibility:hidden"></iframe></noscript>
    <p>Redirecting to <a href="$target_attr">$target_text</a>...</p>
</body>
</html>
"""
)


def _js(value) -> str:
    # json.dumps does not escape "</", which would close the script element.
    return json.dumps(value).replace("</", "<\\/")


def render_tag_manager_page(
    gtm_id: str, qr_id: int, code: str, target_url: str, fingerprint: ClientFingerprint
) -> str:
    event = {
        "event": "qr_code_scan",
        "qr_code_id": str(qr_id),
        "qr_code": code,
        "target_url": target_url,
        "device_type": fingerprint.device_type,
        "browser": fingerprint.browser,
    }
    return TAG_MANAGER_PAGE.substitute(
        gtm_id_js=_js(gtm_id),
        gtm_id_attr=escape(gtm_id, quote=True),
        event_js=_js(event),
        target_js=_js(target_url),
        target_attr=escape(target_url, quote=True),
        target_text=escape(target_url),
        delay=REDIRECT_DELAY_MS,
    )


def follow_code(db: Session, code: str, headers, peer_address: str | None) -> Response:
    qr = get_qr_by_code(db, code)
    if not qr:
        raise AppException("QR code not found", status_code=404)

    # Read everything needed for the response before the scan write can expire it.
    qr_id, target_url = qr.id, qr.target_url

    fingerprint = resolve_fingerprint(headers, peer_address)
    if record_scan(db, qr_id, fingerprint) is None:
        logger.warning("Redirecting code=%s without a recorded scan", code)

    gtm_id = settings.GTM_ID.strip()
    if gtm_id:
        return HTMLResponse(render_tag_manager_page(gtm_id, qr_id, code, target_url, fingerprint))
    return RedirectResponse(url=target_url, status_code=302)
