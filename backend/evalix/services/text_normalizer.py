import re


def normalize_text(value: object) -> str:
    if value is None:
        return ""
    cleaned = str(value).replace("\u0000", "")
    cleaned = re.sub(r"\s+", " ", cleaned)
    return cleaned.strip()
