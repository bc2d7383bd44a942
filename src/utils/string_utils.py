import re


CODE_FENCE_PATTERN = re.compile(r'^```(?:json)?\s*(.*?)\s*```$', re.DOTALL | re.IGNORECASE)


def clean_text(text: str) -> str:
    return ' '.join(text.split())


def truncate_text(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length - 3] + "..."


def strip_code_fences(text: str) -> str:
    stripped = text.strip()
    match = CODE_FENCE_PATTERN.match(stripped)
    return match.group(1) if match else stripped
