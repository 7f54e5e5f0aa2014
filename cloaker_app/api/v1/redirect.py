import html
import json
import random
import time
import uuid
from email.utils import formatdate

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from cloaker_app.dependencies import get_dispatcher
from cloaker_app.enums import RedirectMethod
from cloaker_app.services.redirect_dispatcher import ClientInfo, RedirectDispatcher

router = APIRouter(tags=["redirect"])

COOKIE_MAX_AGE = 31536000
STATIC_COOKIES = (
    "uclick=mr7ZxwtaaNs1gOWlamCY4hIUD7craeFLJuyMJz3hmBMFe4/9c70RDu5SgPFmEHXMW9DJfw==; SameSite=Lax; Max-Age=31536000",
    "bcid=d0505amc402c73djlgl0; SameSite=Lax; Max-Age=31536000",
)


def _processing_time(started: float) -> str:
    return f"{(time.perf_counter() - started) * 1000:.2f}ms"


def _meta_refresh_page(target_url: str, with_script: bool) -> str:
    attr = html.escape(target_url, quote=True)
    script = ""
    if with_script:
        # json.dumps gives a quoted JS string; escape "</" so it can't end the script tag
        js_target = json.dumps(target_url).replace("</", "<\\/")
        script = f"<script>window.location.href = {js_target};</script>"
    return (
        "<!DOCTYPE html><html><head>"
        f'<meta http-equiv="refresh" content="0;url={attr}">'
        "<title></title><style>body{display:none}</style>"
        f"{script}</head><body></body></html>"
    )


def _cdn_fingerprint_response(target_url: str) -> Response:
    """307 with the header set of a CDN-fronted origin."""
    random_id = f"{random.getrandbits(32):08x}"
    expires = formatdate(time.time() + COOKIE_MAX_AGE, usegmt=True)

    response = Response(status_code=status.HTTP_307_TEMPORARY_REDIRECT)
    response.headers["date"] = formatdate(usegmt=True)
    response.headers["location"] = target_url
    response.headers["server"] = "cloudflare"
    response.headers["x-request-id"] = str(uuid.uuid4())
    response.headers["cf-cache-status"] = "DYNAMIC"
    response.headers.append(
        "set-cookie", f"bc45=fpc0|{random_id}::351:55209; SameSite=Lax; Max-Age={COOKIE_MAX_AGE}; Expires={expires}"
    )
    response.headers.append(
        "set-cookie", f"rc45=fpc0|{random_id}::28; SameSite=Lax; Max-Age={COOKIE_MAX_AGE}; Expires={expires}"
    )
    for cookie in STATIC_COOKIES:
        response.headers.append("set-cookie", cookie)
    response.headers["cf-ray"] = f"{random.getrandbits(36):09x}a3fe-EWR"
    response.headers["alt-svc"] = 'h3=":443"; ma=86400'
    return response


def build_redirect_response(method: RedirectMethod, target_url: str, started: float) -> Response:
    """Render exactly one redirect in the campaign's style."""
    if method == RedirectMethod.META_REFRESH:
        return HTMLResponse(_meta_refresh_page(target_url, with_script=False))

    if method == RedirectMethod.DOUBLE_META_REFRESH:
        return HTMLResponse(_meta_refresh_page(target_url, with_script=True))

    if method == RedirectMethod.HTTP_307:
        return RedirectResponse(
            url=target_url,
            status_code=status.HTTP_307_TEMPORARY_REDIRECT,
            headers={"X-Processing-Time": _processing_time(started)},
        )

    if method == RedirectMethod.HTTP2_307_TEMPORARY:
        return RedirectResponse(
            url=target_url,
            status_code=status.HTTP_307_TEMPORARY_REDIRECT,
            headers={
                "X-Processing-Time": _processing_time(started),
                "X-HTTP2-Version": "HTTP/2.0",
                "Alt-Svc": 'h2=":443"; ma=86400',
                "X-Protocol-Version": "h2",
                "Cache-Control": "no-cache",
                "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
                "X-Powered-By": "ViralEngine/2.0",
            },
        )

    if method == RedirectMethod.HTTP2_FORCED_307:
        return _cdn_fingerprint_response(target_url)

    return RedirectResponse(
        url=target_url,
        status_code=status.HTTP_302_FOUND,
        headers={"X-Processing-Time": _processing_time(started)},
    )


def _client(request: Request) -> ClientInfo:
    return ClientInfo(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        referer=request.headers.get("referer"),
    )


@router.get("/views/{custom_path}")
async def redirect_by_custom_path(
    custom_path: str,
    request: Request,
    dispatcher: RedirectDispatcher = Depends(get_dispatcher)
):
    """
    Public campaign link.

    404 when no campaign has this path, 410 when it has no active URL left.
    """
    started = time.perf_counter()
    decision = await dispatcher.dispatch_by_path(custom_path, _client(request))
    return build_redirect_response(decision.campaign.redirect_method, decision.url.target_url, started)


@router.get("/c/{campaign_id}")
async def redirect_by_campaign(
    campaign_id: int,
    request: Request,
    dispatcher: RedirectDispatcher = Depends(get_dispatcher)
):
    """Weighted redirect addressed by campaign id."""
    started = time.perf_counter()
    decision = await dispatcher.dispatch_by_campaign(campaign_id, _client(request))
    return build_redirect_response(decision.campaign.redirect_method, decision.url.target_url, started)


@router.get("/r/{campaign_id}/{url_id}")
async def redirect_to_url(
    campaign_id: int,
    url_id: int,
    request: Request,
    dispatcher: RedirectDispatcher = Depends(get_dispatcher)
):
    """Redirect to one URL of a campaign, bypassing the weighted pick."""
    started = time.perf_counter()
    decision = await dispatcher.dispatch_to_url(campaign_id, url_id, _client(request))
    return build_redirect_response(decision.campaign.redirect_method, decision.url.target_url, started)
