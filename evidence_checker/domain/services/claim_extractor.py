"""Claim and key-term extraction from narrative text."""

import re
from typing import List, Optional

from ..models.claim import ExtractedClaim
from .citation_extractor import CITATION_PATTERN
from .statistics import extract_statistics

CONTEXT_CHARS = 300
MIN_CLAIM_LENGTH = 15

SKIP_LINE_PATTERNS = [
    re.compile(r"^#{1,6}\s+"),  # headings
    re.compile(r"^[-*+]\s*$"),  # empty bullets
    re.compile(r"^[-*+]?\s*\[S\d{3,}\]\("),  # source list entries
    re.compile(r"^>\s?"),  # blockquotes
    re.compile(r"^\|"),  # tables
]
CODE_FENCE = re.compile(r"^(```|~~~)")
BOILERPLATE_CLAUSE = re.compile(
    r"^(according to|as reported (by|in)|reported by|source[s]?:?|see( also)?|via|cited in|per)\b[\w\s.'&-]{0,40}$",
    re.IGNORECASE,
)
SENTENCE_BREAK = re.compile(r"(?<=[.!?;])\s+")
DECORATION = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+")

# Capitalized words that follow lowercase text or punctuation, i.e. not at clause start.
KEY_TERM = re.compile(r"(?<=[a-z0-9,;:] )[A-Z][a-zA-Z]{2,}(?:\s[A-Z][a-zA-Z]+)*")
KEY_TERM_STOPWORDS = {
    "The", "This", "That", "These", "Those", "However", "According", "In", "On",
    "At", "For", "And", "But", "Monday", "Tuesday", "Wednesday", "Thursday",
    "Friday", "Saturday", "Sunday", "January", "February", "March", "April",
    "May", "June", "July", "August", "September", "October", "November", "December",
}


def strip_markup(text: str) -> str:
    """Remove emphasis, links and inline code while keeping their text."""
    text = re.sub(r"\[([^\]]+)\]\([^)]*\)", r"\1", text)
    text = re.sub(r"[*_`]{1,3}", "", text)
    return re.sub(r"\s+", " ", text).strip()


def _bound(text: str, limit: int) -> str:
    """Keep the last ``limit`` characters, cut at a word boundary."""
    if len(text) <= limit:
        return text
    tail = text[-limit:]
    space = tail.find(" ")
    return tail[space + 1:] if 0 <= space < len(tail) - 1 else tail


def _clause_before(segment: str) -> str:
    """The last sentence fragment of the text preceding a marker."""
    parts = [p for p in SENTENCE_BREAK.split(segment) if p.strip()]
    clause = parts[-1] if parts else ""
    clause = DECORATION.sub("", clause)
    clause = strip_markup(clause)
    return clause.rstrip(" ,;:(").strip()


def is_claim_candidate(clause: str, min_length: int = MIN_CLAIM_LENGTH) -> bool:
    if len(clause) < min_length:
        return False
    return not BOILERPLATE_CLAUSE.match(clause.rstrip(".").strip())


def extract_claims(
    text: str,
    context_chars: int = CONTEXT_CHARS,
    min_length: int = MIN_CLAIM_LENGTH,
) -> List[ExtractedClaim]:
    """Extract atomic claims, one per (clause, citation marker).

    Consecutive markers share the clause in front of them, so
    ``X rose 5% [S001][S002]`` yields the same claim for both sources.
    """
    claims: List[ExtractedClaim] = []
    seen = set()
    in_code = False

    for line_no, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if CODE_FENCE.match(stripped):
            in_code = not in_code
            continue
        if in_code or not stripped:
            continue
        if any(pattern.match(stripped) for pattern in SKIP_LINE_PATTERNS):
            continue

        previous_end = 0
        clause: Optional[str] = None
        for match in CITATION_PATTERN.finditer(line):
            segment = line[previous_end:match.start()]
            if segment.strip():
                clause = _bound(_clause_before(segment), context_chars)
            previous_end = match.end()
            if clause is None or not is_claim_candidate(clause, min_length):
                continue

            source_id = match.group(1)
            key = (clause, source_id)
            if key in seen:
                continue
            seen.add(key)
            claims.append(ExtractedClaim(
                text=clause,
                source_id=source_id,
                line=line_no,
                statistics=extract_statistics(clause),
            ))
    return claims


def extract_key_terms(text: str) -> List[str]:
    """Proper-noun phrases that do not start the clause."""
    terms = []
    for match in KEY_TERM.finditer(text):
        words = [w for w in match.group(0).split() if w not in KEY_TERM_STOPWORDS]
        term = " ".join(words)
        if term and term not in terms:
            terms.append(term)
    return terms


def key_term_ratio(terms: List[str], evidence_text: str) -> float:
    """Share of key terms appearing literally (case-insensitive) in evidence."""
    if not terms:
        return 1.0
    lowered = evidence_text.lower()
    hits = sum(1 for term in terms if term.lower() in lowered)
    return hits / len(terms)
