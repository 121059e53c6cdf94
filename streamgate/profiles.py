"""Browser-identity header profiles for the share-link resolution API.

Some link APIs sit behind a bot filter that answers non-browser clients with
an HTML challenge page instead of JSON.  A profile makes the resolution call
look like it came from the API's own web page.  Profiles are selected by name
through ``BROWSER_PROFILE`` so that impersonation is always an explicit
operator choice and shows up in the startup log.
"""

from urllib.parse import urlsplit

BROWSER_PROFILES: dict[str, dict[str, str]] = {
    "none": {},
    "chrome-desktop": {
        "User-Agent": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
        ),
        "Accept": "application/json, text/plain, */*",
        "Accept-Language": "en-US,en;q=0.9",
        "X-Requested-With": "XMLHttpRequest",
    },
    "firefox-desktop": {
        "User-Agent": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) "
            "Gecko/20100101 Firefox/125.0"
        ),
        "Accept": "application/json, text/plain, */*",
        "Accept-Language": "en-US,en;q=0.5",
        "X-Requested-With": "XMLHttpRequest",
    },
}


def browser_headers(profile: str, api_url: str) -> dict[str, str]:
    """Return the headers for ``profile``, with Origin/Referer pointing at the API's site.

    Raises KeyError for an unknown profile name.
    """
    headers = dict(BROWSER_PROFILES[profile])
    if not headers:
        return headers
    parts = urlsplit(api_url)
    if parts.scheme and parts.netloc:
        origin = f"{parts.scheme}://{parts.netloc}"
        headers["Origin"] = origin
        headers["Referer"] = origin + "/"
    return headers
