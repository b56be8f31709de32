"""Youdao dictionary client.

Requests are signed with the provider's v3 scheme:

    sign = sha256(appKey + truncate(q) + salt + curtime + appSecret)

where salt is the current time in milliseconds and curtime in seconds.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import time
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Dict, Optional, Tuple

from .config import Settings
from .errors import DictionaryConfigError, LookupFailure

logger = logging.getLogger(__name__)


def truncate(text: str) -> str:
    """Texts over 20 characters are signed as first 10 + length + last 10."""
    if len(text) <= 20:
        return text
    return f"{text[:10]}{len(text)}{text[-10:]}"


def sign(app_key: str, text: str, salt: str, curtime: str, app_secret: str) -> str:
    raw = f"{app_key}{truncate(text)}{salt}{curtime}{app_secret}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def target_language(source: str) -> str:
    return "zh-CHS" if source == "en" else "en"


def build_params(
    text: str,
    source: str,
    app_key: str,
    app_secret: str,
    now: Optional[float] = None,
) -> Dict[str, str]:
    now = time.time() if now is None else now
    salt = str(int(now * 1000))
    curtime = str(int(round(now)))
    return {
        "q": text,
        "appKey": app_key,
        "salt": salt,
        "from": source,
        "to": target_language(source),
        "sign": sign(app_key, text, salt, curtime, app_secret),
        "signType": "v3",
        "curtime": curtime,
    }


class YoudaoDictionary:
    """Dictionary port backed by the Youdao open API."""

    def __init__(
        self,
        app_key: str,
        app_secret: str,
        api_url: str = "https://openapi.youdao.com/api",
        timeout_s: float = 15.0,
    ) -> None:
        self.app_key = app_key
        self.app_secret = app_secret
        self.api_url = api_url
        self.timeout_s = timeout_s

    @classmethod
    def from_settings(cls, settings: Settings) -> "YoudaoDictionary":
        return cls(
            app_key=settings.youdao_app_key,
            app_secret=settings.youdao_app_secret,
            api_url=settings.youdao_api_url,
            timeout_s=settings.youdao_timeout_s,
        )

    def _post(self, params: Dict[str, str]) -> Any:
        req = urllib.request.Request(
            self.api_url,
            data=urllib.parse.urlencode(params).encode("utf-8"),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            method="POST",
        )
        with urllib.request.urlopen(req, timeout=self.timeout_s) as resp:
            raw = resp.read().decode("utf-8")
        return json.loads(raw)

    def request(self, text: str, source: str) -> Any:
        """Blocking signed request; returns the provider's JSON payload."""
        if not self.app_key or not self.app_secret:
            raise DictionaryConfigError(text, "API credentials are required")
        params = build_params(text, source, self.app_key, self.app_secret)
        logger.debug("Requesting %s (from=%s, to=%s)", self.api_url, source, params["to"])
        try:
            return self._post(params)
        except (urllib.error.URLError, TimeoutError, OSError) as e:
            raise LookupFailure(text, f"request failed: {e}") from e
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise LookupFailure(text, f"invalid JSON from provider: {e}") from e

    async def lookup(self, text: str, source: str) -> Any:
        # urllib blocks; keep the event loop free while the request is in flight.
        return await asyncio.to_thread(self.request, text, source)

    def translate_proxy(self, text: str, source: str) -> Tuple[int, Any]:
        """Pass the provider response through, or an error envelope with status 500.

        The envelope carries only `error` and `errorCode`; no `debug` field is sent.
        """
        logger.info("Translate request: from=%s, %d chars", source, len(text or ""))
        try:
            return 200, self.request(text, source)
        except LookupFailure as e:
            logger.error("Translate proxy failed: %s", e.reason)
            return 500, {"error": e.reason, "errorCode": "500"}
