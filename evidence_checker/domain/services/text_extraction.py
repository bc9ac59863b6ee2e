"""Plain-text extraction from captured payloads."""

import re

from bs4 import BeautifulSoup

HTML_SUFFIXES = (".html", ".htm", ".xhtml")
NOISE_TAGS = ["script", "style", "noscript", "svg", "template"]
LAYOUT_TAGS = ["nav", "footer", "header", "aside", "form", "button"]


def clean_text(text: str) -> str:
    """Collapse runs of spaces and blank lines."""
    lines = [re.sub(r"[ \t ]+", " ", line).strip() for line in text.splitlines()]
    cleaned = "\n".join(line for line in lines if line)
    return cleaned.strip()


def extract_html_text(html: str) -> str:
    """Visible article text of an HTML page, layout chrome removed."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(NOISE_TAGS):
        tag.decompose()
    for name in LAYOUT_TAGS:
        for tag in soup.find_all(name):
            tag.decompose()

    article = soup.find("article")
    root = article if article is not None else (soup.body or soup)
    return clean_text(root.get_text(separator="\n"))


def extract_text(payload: bytes, filename: str) -> str:
    """Extract text from a payload file. The same bytes always give the same text."""
    decoded = payload.decode("utf-8", errors="replace")
    if filename.lower().endswith(HTML_SUFFIXES):
        return extract_html_text(decoded)
    return clean_text(decoded)
