"""Facebook login for happn: dialog URL, token extraction, browser flow.

happn exchanges a Facebook user access token for its own session. The token
is obtained through Facebook's implicit-grant dialog registered to happn's
app id; Facebook redirects to happn's site with the token in the fragment.
"""

import logging
from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse

from patchright.async_api import TimeoutError as PlaywrightTimeoutError

from src.core.config import FacebookOAuthConfig
from src.core.errors import NotAuthorizedError

logger = logging.getLogger(__name__)


def build_authorize_url(oauth: FacebookOAuthConfig) -> str:
    """Build the Facebook OAuth dialog URL for happn's Facebook app."""
    params = {
        "client_id": oauth.client_id,
        "redirect_uri": oauth.redirect_uri,
        "scope": oauth.scope,
        "response_type": oauth.response_type,
    }
    return f"{oauth.dialog_url}?{urlencode(params)}"


def extract_access_token(url: str) -> str | None:
    """Return ``access_token`` from a redirect URL's fragment or query, if any."""
    parsed = urlparse(url)
    for part in (parsed.fragment, parsed.query):
        values = parse_qs(part).get("access_token")
        if values and values[0]:
            return values[0]
    return None


def is_redirect(url: str, oauth: FacebookOAuthConfig) -> bool:
    """True once the browser has landed on the redirect URI."""
    target = urlparse(oauth.redirect_uri)
    current = urlparse(url)
    return current.netloc == target.netloc and current.scheme == target.scheme


async def login(
    page: Any,
    oauth: FacebookOAuthConfig,
    *,
    timeout_ms: int,
) -> str:
    """Drive the dialog in ``page`` until Facebook redirects back with a token.

    The user completes the Facebook login by hand in the opened window.
    Raises NotAuthorizedError on timeout or when the redirect has no token.
    """
    url = build_authorize_url(oauth)
    logger.info("Opening Facebook login dialog (waiting up to %ds)", timeout_ms // 1000)
    await page.goto(url)

    try:
        await page.wait_for_url(lambda u: is_redirect(u, oauth), timeout=timeout_ms)
    except PlaywrightTimeoutError as e:
        msg = "Timed out waiting for Facebook login to complete"
        raise NotAuthorizedError(msg) from e

    token = extract_access_token(page.url)
    if token is None:
        msg = "Facebook redirected without an access token"
        raise NotAuthorizedError(msg)
    logger.info("Obtained Facebook access token")
    return token
