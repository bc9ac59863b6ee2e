"""URL normalization and classification helpers."""

from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

TRACKING_PARAMS = {
    "fbclid", "gclid", "dclid", "msclkid", "mc_cid", "mc_eid", "_ga", "_gl",
    "ref", "ref_src", "igshid", "yclid", "spm",
}
TRACKING_PREFIXES = ("utm_",)
DEFAULT_PORTS = {"http": 80, "https": 443}
MULTI_PART_SUFFIXES = {
    "co.uk", "org.uk", "ac.uk", "gov.uk", "com.au", "net.au", "org.au", "gov.au",
    "co.nz", "co.jp", "co.in", "com.br", "com.cn", "com.mx", "co.za",
}
HOMEPAGE_PATHS = {"", "/", "/index.html", "/index.htm", "/index.php", "/home", "/en", "/en/"}
SYNTHETIC_URL_MARKERS = ("multiple_sources_synthesis", "synthesis:")


def _is_tracking(param: str) -> bool:
    name = param.lower()
    return name in TRACKING_PARAMS or name.startswith(TRACKING_PREFIXES)


def normalize_url(url: Optional[str]) -> Optional[str]:
    """Normalize a URL for comparison.

    Lowercases scheme and host, drops www., default ports, fragments and
    tracking parameters, sorts the remaining query and strips trailing slashes.
    Returns None for empty input. Unparseable input is returned stripped.
    """
    if not url or not url.strip():
        return None
    url = url.strip()
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return url

    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    netloc = host
    if port and DEFAULT_PORTS.get(scheme) != port:
        netloc = f"{host}:{port}"

    path = parts.path or ""
    while path.endswith("/"):
        path = path[:-1]

    query_pairs = [
        (k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if not _is_tracking(k)
    ]
    query = urlencode(sorted(query_pairs))

    return urlunsplit((scheme, netloc, path, query, ""))


def urls_equal(left: Optional[str], right: Optional[str]) -> bool:
    left_n, right_n = normalize_url(left), normalize_url(right)
    return left_n is not None and left_n == right_n


def extract_domain(url: Optional[str]) -> Optional[str]:
    """Host without www., or None."""
    if not url:
        return None
    try:
        host = (urlsplit(url.strip()).hostname or "").lower()
    except ValueError:
        return None
    if host.startswith("www."):
        host = host[4:]
    return host or None


def root_domain(url: Optional[str]) -> Optional[str]:
    """Registrable domain: news.example.co.uk -> example.co.uk."""
    host = extract_domain(url)
    if not host:
        return None
    labels = host.split(".")
    if len(labels) >= 3 and ".".join(labels[-2:]) in MULTI_PART_SUFFIXES:
        return ".".join(labels[-3:])
    return ".".join(labels[-2:])


def is_homepage(url: Optional[str]) -> bool:
    """True when the URL points at a site root rather than a specific page."""
    if not url:
        return False
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return False
    return parts.path.lower() in HOMEPAGE_PATHS and not parts.query


def is_valid_url(url: Optional[str]) -> bool:
    """True for http(s) URLs with a host that are not synthesis placeholders."""
    if not url:
        return False
    lowered = url.strip().lower()
    if any(marker in lowered for marker in SYNTHETIC_URL_MARKERS):
        return False
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return False
    return parts.scheme.lower() in ("http", "https") and bool(parts.hostname)
