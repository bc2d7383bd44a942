"""
Prompts for the rewrite service.
Built only from the input values so the same article always yields the same prompt.
"""

import json
from typing import Any, Dict, List, Optional

SYSTEM_PROMPT = "You are a news content rewriter."

SINGLE_REWRITE_PROMPT = """Rephrase the following news article's title and description so they are unique but keep the meaning.
If the title is missing, create one from the description or the article text.

Return ONLY a JSON object with exactly two keys, "title" and "description". No markdown, no extra keys.
{{"title": "...", "description": "..."}}

Article:
{article}
"""

BATCH_REWRITE_PROMPT = """Rephrase the following news articles' titles and descriptions so they are unique but keep the meaning.
If a title is missing, create one from the description.

Return ONLY a JSON array with exactly {count} objects, in the same order as the input.
Each object has exactly two keys, "title" and "description". No markdown, no extra keys.

Articles:
{articles}
"""


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, sort_keys=True, ensure_ascii=False)


def build_single_prompt(
    title: Optional[str] = None,
    description: Optional[str] = None,
    raw_text: Optional[str] = None
) -> str:
    article = {
        "title": title or "",
        "description": description or "",
        "text": raw_text or "",
    }
    return SINGLE_REWRITE_PROMPT.format(article=_dump(article))


def build_batch_prompt(items: List[Dict[str, str]]) -> str:
    articles = [
        {"title": item.get("title") or "", "description": item.get("description") or ""}
        for item in items
    ]
    return BATCH_REWRITE_PROMPT.format(count=len(articles), articles=_dump(articles))
