"""Citation marker parsing."""

import re
from typing import Dict, List

from ..models.citation import Citation

# [S001] or [S001](https://example.org/page)
CITATION_PATTERN = re.compile(r"\[(S\d{3,})\](?:\(([^)\s]+)\))?")


def extract_citations(text: str) -> List[Citation]:
    """Collect citations from narrative text.

    Repeated markers for the same source fold into one citation that keeps
    every line and every distinct inline URL. Citations come back in order of
    first appearance.
    """
    found: Dict[str, Citation] = {}
    for line_no, line in enumerate(text.splitlines(), start=1):
        for match in CITATION_PATTERN.finditer(line):
            source_id, url = match.group(1), match.group(2)
            citation = found.get(source_id)
            if citation is None:
                citation = Citation(source_id=source_id)
                found[source_id] = citation
            if line_no not in citation.lines:
                citation.lines.append(line_no)
            if url and url not in citation.urls:
                citation.urls.append(url)
    return list(found.values())
