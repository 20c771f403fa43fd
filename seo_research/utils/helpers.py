"""URL and domain helpers used by the adapters and analytics."""

from urllib.parse import urlparse


def extract_domain(url: str) -> str:
    """Extract the domain from a URL.

    Args:
        url: Full URL string or bare host.

    Returns:
        Lower-cased domain name without protocol, path or ``www.`` prefix.
    """
    if not url:
        return ""
    parsed = urlparse(url if "://" in url else f"https://{url}")
    host = (parsed.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return host


def url_path_depth(url: str) -> int:
    """Number of path segments after the host (``https://a.com/x/y`` -> 2).

    A bare root URL or a trailing-slash root both count as depth 0.
    """
    if not url:
        return 0
    parsed = urlparse(url if "://" in url else f"https://{url}")
    return len([segment for segment in parsed.path.split("/") if segment])


def same_domain(url_or_domain: str, domain: str) -> bool:
    """True when ``url_or_domain`` belongs to ``domain`` or one of its subdomains."""
    host = extract_domain(url_or_domain)
    target = extract_domain(domain)
    if not host or not target:
        return False
    return host == target or host.endswith("." + target)
