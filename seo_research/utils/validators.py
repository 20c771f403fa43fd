"""Input validation utilities for research parameters."""

import re


def validate_domain(domain: str) -> tuple[bool, str]:
    """Validate a domain name.

    Args:
        domain: The domain name to validate.  May include protocol prefix.

    Returns:
        Tuple of (is_valid, error_message).
    """
    if not domain or not isinstance(domain, str):
        return False, "Domain is empty or not a string."
    domain = domain.strip().lower()
    if "://" in domain:
        domain = domain.split("://", 1)[1]
    domain = domain.split("/")[0].split(":")[0]
    if len(domain) > 253:
        return False, "Domain exceeds maximum length (253 chars)."
    if "." not in domain:
        return False, "Domain must contain at least one dot."
    for label in domain.split("."):
        if not label:
            return False, "Domain contains empty label (double dot)."
        if len(label) > 63:
            return False, f"Label '{label}' exceeds 63 chars."
        if not re.match(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$", label):
            return False, f"Label '{label}' contains invalid characters."
    return True, ""


def validate_keyword_list(
    keywords: list[str],
    min_count: int = 1,
    max_count: int = 10,
    label: str = "keyword",
) -> tuple[bool, str]:
    """Check that ``keywords`` is a list of non-empty strings within bounds.

    Returns:
        Tuple of (is_valid, error_message).
    """
    if not isinstance(keywords, (list, tuple)):
        return False, f"{label.capitalize()}s must be a list."
    cleaned = [kw for kw in keywords if isinstance(kw, str) and kw.strip()]
    if len(cleaned) != len(keywords):
        return False, f"Every {label} must be a non-empty string."
    if len(cleaned) < min_count:
        return False, f"At least {min_count} {label}(s) required."
    if len(cleaned) > max_count:
        return False, f"Maximum {max_count} {label}s allowed, got {len(cleaned)}."
    return True, ""
