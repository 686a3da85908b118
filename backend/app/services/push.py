"""
Waitlist alerts to players' phones via Apple Push Notification service (APNs).

PlayerNotificationService pushes the urgent and high priority messages: "a seat is available"
(notified), "you've been seated" and expiry warnings. Each alert carries a `waitlist` block
(notification type, entry id, status, minutes remaining) so the app can open the right entry, and
is threaded per entry so repeated alerts for one seat collapse together on the lock screen.
Urgent alerts are sent as time-sensitive.

Requires APNS_KEY_ID, APNS_TEAM_ID, APNS_BUNDLE_ID, and APNS_KEY_P8_PATH or APNS_KEY_P8_BASE64 in env.
If not configured, send_apns and send_push_to_devices no-op (log and return).
"""
import base64
import logging
import os
import time
from pathlib import Path

import httpx
import jwt

logger = logging.getLogger(__name__)

# APNs host: sandbox for dev builds, production for release
APNS_SANDBOX = "https://api.sandbox.push.apple.com"
APNS_PRODUCTION = "https://api.push.apple.com"

# JWT cache: (token_string, expiry_epoch). APNs accepts tokens with iat within last hour.
_jwt_cache: tuple[str, float] | None = None
_JWT_EXPIRY_SECONDS = 55 * 60  # refresh a bit before 1 hour


def _load_p8_key() -> str | None:
    """Load .p8 key from APNS_KEY_P8_PATH or APNS_KEY_P8_BASE64. Return None if not set."""
    base64_content = os.getenv("APNS_KEY_P8_BASE64")
    if base64_content:
        try:
            return base64.b64decode(base64_content).decode("utf-8")
        except Exception as e:
            logger.warning("APNS_KEY_P8_BASE64 decode failed: %s", e)
            return None
    path = os.getenv("APNS_KEY_P8_PATH")
    if path and Path(path).exists():
        try:
            return Path(path).read_text(encoding="utf-8")
        except OSError as e:
            logger.warning("APNS_KEY_P8_PATH read failed: %s", e)
            return None
    return None


def _get_apns_jwt() -> str | None:
    """Build and cache JWT for APNs. Returns None if config missing."""
    global _jwt_cache
    key_id = os.getenv("APNS_KEY_ID")
    team_id = os.getenv("APNS_TEAM_ID")
    if not key_id or not team_id:
        return None
    p8 = _load_p8_key()
    if not p8:
        return None
    now = time.time()
    if _jwt_cache and _jwt_cache[1] > now:
        return _jwt_cache[0]
    try:
        token = jwt.encode(
            {"iss": team_id, "iat": int(now)},
            p8,
            algorithm="ES256",
            headers={"alg": "ES256", "kid": key_id},
        )
        _jwt_cache = (token, now + _JWT_EXPIRY_SECONDS)
        return token
    except Exception as e:
        logger.warning("APNs JWT build failed: %s", e, exc_info=True)
        return None


def apns_configured() -> bool:
    return bool(os.getenv("APNS_BUNDLE_ID")) and _get_apns_jwt() is not None


def send_apns(
    device_token: str,
    title: str,
    body: str,
    bundle_id: str | None = None,
    data: dict | None = None,
    urgent: bool = False,
) -> bool:
    """
    Send one waitlist alert to an iOS device via APNs. `data` is attached as the `waitlist` block.
    Returns True if sent successfully, False otherwise (config missing or APNs error).
    """
    bundle_id = bundle_id or os.getenv("APNS_BUNDLE_ID")
    if not bundle_id:
        logger.debug("APNS_BUNDLE_ID not set; skipping push")
        return False
    jwt_token = _get_apns_jwt()
    if not jwt_token:
        logger.debug("APNs not configured (key/team/bundle); skipping push")
        return False
    use_sandbox = os.getenv("APNS_USE_SANDBOX", "true").lower() in ("1", "true", "yes")
    base_url = APNS_SANDBOX if use_sandbox else APNS_PRODUCTION
    url = f"{base_url}/3/device/{device_token}"
    headers = {
        "authorization": f"bearer {jwt_token}",
        "apns-topic": bundle_id,
        "apns-push-type": "alert",
        "apns-priority": "10",
    }
    aps = {"alert": {"title": title, "body": body}, "sound": "default"}
    if urgent:
        aps["interruption-level"] = "time-sensitive"
    payload: dict = {"aps": aps}
    if data:
        payload["waitlist"] = data
        if data.get("entry_id"):
            aps["thread-id"] = f"waitlist-{data['entry_id']}"
    try:
        with httpx.Client(http2=True, timeout=10.0) as client:
            resp = client.post(url, json=payload, headers=headers)
        if resp.status_code == 200:
            return True
        logger.warning("APNs returned %s for token %s...: %s", resp.status_code, device_token[:20], resp.text)
        return False
    except httpx.HTTPError as e:
        logger.warning("APNs request failed: %s", e, exc_info=True)
        return False


def send_push_to_devices(
    device_tokens: list[str],
    title: str,
    body: str,
    bundle_id: str | None = None,
    data: dict | None = None,
    urgent: bool = False,
) -> int:
    """Send the same waitlist alert to every token of a player. Returns count of successful sends."""
    if not device_tokens or not apns_configured():
        return 0
    sent = 0
    for token in device_tokens:
        if send_apns(token, title, body, bundle_id=bundle_id, data=data, urgent=urgent):
            sent += 1
    return sent
