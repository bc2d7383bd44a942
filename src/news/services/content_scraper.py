"""
Content Scraper Service
Extracts readable article text from news URLs. Fails soft: every failure
yields an empty string.
"""

from typing import Optional

import httpx
import structlog
from bs4 import BeautifulSoup

from ...utils.string_utils import clean_text, truncate_text
from ...utils.url_utils import is_valid_url

logger = structlog.get_logger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)

CONTENT_SELECTORS = [
    'article',
    '.article-body',
    '.article-content',
    '.story-body',
    '.entry-content',
    '.post-content',
    'main',
]

META_DESCRIPTION_SELECTORS = [
    'meta[name="description"]',
    'meta[property="og:description"]',
    'meta[name="twitter:description"]',
]

UNWANTED_TAGS = ['script', 'style', 'noscript', 'nav', 'footer', 'header', 'aside', 'form']

MIN_CONTENT_LENGTH = 200


def extract_text_from_html(html: str) -> str:
    """Article-body selectors, then meta description, then the first paragraph."""
    soup = BeautifulSoup(html, 'html.parser')

    # Meta tags live in <head>, read them before stripping the page
    meta_description = ""
    for selector in META_DESCRIPTION_SELECTORS:
        element = soup.select_one(selector)
        if element and element.get('content', '').strip():
            meta_description = element['content']
            break

    for element in soup(UNWANTED_TAGS):
        element.decompose()

    content = ""
    for selector in CONTENT_SELECTORS:
        for element in soup.select(selector):
            text = element.get_text(separator=' ', strip=True)
            if len(text) > len(content):
                content = text
    if len(content) >= MIN_CONTENT_LENGTH:
        return clean_text(content)

    if meta_description:
        return clean_text(meta_description)

    for paragraph in soup.find_all('p'):
        text = paragraph.get_text(separator=' ', strip=True)
        if text:
            return clean_text(text)

    return clean_text(content)


class ContentScraperService:
    """Single-attempt page fetch with a bounded timeout, no retries"""

    def __init__(self, timeout_seconds: float = 10.0, max_chars: Optional[int] = 4000):
        self.timeout_seconds = timeout_seconds
        self.max_chars = max_chars

    async def _fetch_html(self, url: str) -> str:
        async with httpx.AsyncClient(
            timeout=self.timeout_seconds,
            headers={'User-Agent': USER_AGENT},
            follow_redirects=True,
        ) as client:
            response = await client.get(url)
            response.raise_for_status()

        content_type = response.headers.get('content-type', '').lower()
        if content_type and 'html' not in content_type:
            logger.warning("Skipping non-HTML response", url=url, content_type=content_type)
            return ""
        return response.text

    async def extract(self, url: str) -> str:
        if not is_valid_url(url):
            logger.warning("Cannot extract content from invalid URL", url=url)
            return ""

        try:
            html = await self._fetch_html(url)
        except httpx.TimeoutException:
            logger.warning("Content fetch timed out", url=url, timeout=self.timeout_seconds)
            return ""
        except httpx.HTTPStatusError as e:
            logger.warning("Content fetch failed", url=url, status_code=e.response.status_code)
            return ""
        except httpx.HTTPError as e:
            logger.warning("Content fetch failed", url=url, error=str(e))
            return ""

        if not html:
            return ""

        text = extract_text_from_html(html)
        if self.max_chars and text:
            text = truncate_text(text, self.max_chars)

        logger.info("Content extracted", url=url, length=len(text))
        return text
