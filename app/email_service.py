"""Outbound transactional email through an HTTP email API."""

from __future__ import annotations

import html
import logging

import httpx

from app.http_client import build_async_httpx_client
from app.settings import settings

logger = logging.getLogger(__name__)

BRAND = "BuildTrust Africa"

_LAYOUT = """\
<div style="max-width: 600px; margin: 0 auto; padding: 20px; font-family: Arial, sans-serif;">
  <div style="background: #226F75; color: white; padding: 32px 20px; text-align: center; border-radius: 8px 8px 0 0;">
    <h1 style="margin: 0 0 10px 0;">{title}</h1>
    <p style="margin: 0; font-size: 14px;">{brand}</p>
  </div>
  <div style="background: #f8f9fa; padding: 32px 20px; color: #555;">
    <p>{intro}</p>
    <p style="text-align: center;">
      <a href="{url}" style="display: inline-block; background: #226F75; color: white; padding: 14px 40px; text-decoration: none; border-radius: 6px;">{action}</a>
    </p>
    <p style="text-align: center; font-size: 12px; word-break: break-all;">{url}</p>
    <p style="font-size: 13px;">If the button doesn't work, enter this token manually:</p>
    <div style="background: #f0f0f0; padding: 10px; font-family: monospace; word-break: break-all;">{token}</div>
  </div>
  <div style="padding: 24px 20px; text-align: center; font-size: 13px; color: #888;">
    <p>{footer}</p>
    <p><strong>{brand}</strong></p>
  </div>
</div>
"""


def render_email(
    *, title: str, intro: str, action: str, url: str, token: str, footer: str
) -> str:
    return _LAYOUT.format(
        title=html.escape(title),
        brand=html.escape(BRAND),
        intro=html.escape(intro),
        action=html.escape(action),
        url=html.escape(url, quote=True),
        token=html.escape(token),
        footer=html.escape(footer),
    )


async def send_email(to: str, subject: str, html_body: str) -> bool:
    """POST one message to the email API. Never raises; returns success."""
    if settings.EMAIL_DRY_RUN:
        logger.info(
            "📧 EMAIL_DRY_RUN", extra={"meta": {"to": to, "subject": subject}}
        )
        return True
    if not settings.EMAIL_API_URL:
        logger.warning(
            "📧 EMAIL_NOT_CONFIGURED", extra={"meta": {"to": to, "subject": subject}}
        )
        return False

    payload = {
        "email": to,
        "subject": subject,
        "message": html_body,
        "isHtml": True,
        "contentType": "text/html; charset=UTF-8",
    }
    try:
        async with build_async_httpx_client(headers={"X-Email-Format": "html"}) as client:
            resp = await client.post(settings.EMAIL_API_URL, json=payload)
        result = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error(
            "📧 EMAIL_SEND_ERROR",
            extra={"meta": {"to": to, "error": str(e), "error_type": type(e).__name__}},
        )
        return False

    message = str(result.get("message") or "") if isinstance(result, dict) else ""
    ok = isinstance(result, dict) and (
        result.get("status") == "success" or "sent successfully" in message
    )
    if ok:
        logger.info("📧 EMAIL_SENT", extra={"meta": {"to": to, "subject": subject}})
    else:
        logger.error(
            "📧 EMAIL_REJECTED",
            extra={"meta": {"to": to, "status_code": resp.status_code, "message": message}},
        )
    return ok


async def send_verification_email(to: str, token: str) -> bool:
    url = f"{settings.FRONTEND_URL.rstrip('/')}/verify-email?token={token}"
    body = render_email(
        title="Verify Your Email",
        intro=f"Thank you for signing up with {BRAND}! Please verify your email address.",
        action="Verify Email Address",
        url=url,
        token=token,
        footer=(
            f"This link expires in {settings.VERIFICATION_TOKEN_TTL_HOURS} hours. "
            "If you didn't request this, please ignore this email."
        ),
    )
    return await send_email(to, f"Verify Your Email - {BRAND}", body)


async def send_password_reset_email(to: str, token: str) -> bool:
    url = f"{settings.FRONTEND_URL.rstrip('/')}/reset-password?token={token}"
    body = render_email(
        title="Reset Your Password",
        intro=f"We received a request to reset the password for your {BRAND} account.",
        action="Reset Password",
        url=url,
        token=token,
        footer=(
            f"This link expires in {settings.RESET_TOKEN_TTL_HOURS} hour(s). "
            "If you did not request a password reset, ignore this email."
        ),
    )
    return await send_email(to, f"Reset Your Password - {BRAND}", body)
