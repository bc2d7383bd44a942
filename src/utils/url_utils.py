import hashlib
import re
from urllib.parse import urlparse

from ..exceptions import ValidationError


URL_PATTERN = re.compile(
    r'^https?://'
    r'(?:(?:[A-Z0-9](?:[A-Z0-9-]{0,61}[A-Z0-9])?\.)+[A-Z]{2,63}\.?|'
    r'localhost|'
    r'\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})'
    r'(?::\d+)?'
    r'(?:/?|[/?]\S+)$', re.IGNORECASE
)


def validate_url(url: str) -> None:
    if not url or not isinstance(url, str) or not URL_PATTERN.match(url):
        raise ValidationError(f"Invalid URL: {url}", details={"url": url})


def is_valid_url(url: str) -> bool:
    return bool(url) and isinstance(url, str) and URL_PATTERN.match(url) is not None


def extract_domain(url: str) -> str:
    parsed = urlparse(url)
    return parsed.netloc


def document_key(url: str) -> str:
    """Store key for a URL: SHA-256 hex digest, always 64 characters."""
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


def deduplicate_urls(urls: list[str]) -> list[str]:
    seen = set()
    unique = []
    for url in urls:
        if url in seen:
            continue
        seen.add(url)
        unique.append(url)
    return unique
