"""
Documentation Retrieval Service
Keyword search over the documentation corpus used to enrich generation prompts.

This is a lexical heuristic, not semantic search. Relevance numbers are
persisted on DocUsage rows and shown to users, so the weighting is fixed:
a keyword found in the title counts 2, in the body 1, and the sum is
divided by the number of keywords.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from forgecraft.core.config import settings
from forgecraft.models.doc import DocEntry, DocUsage

logger = logging.getLogger(__name__)


STOP_WORDS = frozenset([
    'a', 'an', 'the', 'is', 'are', 'was', 'were', 'be', 'been', 'being',
    'have', 'has', 'had', 'do', 'does', 'did', 'will', 'would', 'could',
    'should', 'may', 'might', 'must', 'shall', 'can', 'need', 'dare',
    'to', 'of', 'in', 'for', 'on', 'with', 'at', 'by', 'from', 'as',
    'into', 'through', 'during', 'before', 'after', 'above', 'below',
    'between', 'under', 'again', 'further', 'then', 'once', 'here',
    'there', 'when', 'where', 'why', 'how', 'all', 'each', 'few', 'more',
    'most', 'other', 'some', 'such', 'no', 'nor', 'not', 'only', 'own',
    'same', 'so', 'than', 'too', 'very', 'just', 'and', 'but', 'if', 'or',
    'because', 'until', 'while', 'that', 'which', 'who', 'what', 'this',
    'these', 'those', 'i', 'me', 'my', 'we', 'our', 'you', 'your', 'it',
    'create', 'make', 'build', 'add', 'want', 'plugin', 'bot', 'mod',
])

# ASCII word characters only; accented letters split words
_NON_WORD = re.compile(r"[^\w\s]", re.ASCII)

MAX_DOCS_PER_GENERATION = 5


@dataclass
class DocSearchResult:
    """A ranked documentation hit."""
    id: str
    title: str
    platform: str
    version: str
    content: str
    relevance: float


def extract_keywords(text: str) -> List[str]:
    """Lowercase words longer than two characters, minus stop words, deduplicated in order."""
    words = _NON_WORD.sub(" ", (text or "").lower()).split()
    keywords = []
    seen = set()
    for word in words:
        if len(word) <= 2 or word in STOP_WORDS or word in seen:
            continue
        seen.add(word)
        keywords.append(word)
    return keywords


def score_relevance(title: str, content: str, keywords: List[str]) -> float:
    """(2 per keyword in title + 1 per keyword in content) / number of keywords."""
    if not keywords:
        return 0.0
    lower_title = (title or "").lower()
    lower_content = (content or "").lower()
    relevance = 0
    for keyword in keywords:
        if keyword in lower_title:
            relevance += 2
        if keyword in lower_content:
            relevance += 1
    return relevance / len(keywords)


class DocumentationService:
    """Searches DocEntry rows for a prompt and records which ones a job used."""

    def __init__(self, db: Session, limit: Optional[int] = None):
        self.db = db
        self.limit = min(limit or settings.DOCS_SEARCH_LIMIT, MAX_DOCS_PER_GENERATION)

    def search_for_generation(self, prompt: str, platform: str) -> List[DocSearchResult]:
        """
        Ranked docs for a generation prompt.

        Returns an empty list when the prompt has no usable keywords; there
        are no generic fallback docs.
        """
        keywords = extract_keywords(prompt)
        if not keywords:
            return []

        matchers = []
        for keyword in keywords:
            matchers.append(func.lower(DocEntry.title).contains(keyword, autoescape=True))
            matchers.append(func.lower(DocEntry.content).contains(keyword, autoescape=True))

        docs = (
            self.db.query(DocEntry)
            .filter(DocEntry.platform == platform, or_(*matchers))
            .limit(self.limit)
            .all()
        )

        results = [
            DocSearchResult(
                id=doc.id,
                title=doc.title,
                platform=doc.platform,
                version=doc.version or "",
                content=doc.content,
                relevance=score_relevance(doc.title, doc.content, keywords),
            )
            for doc in docs
        ]
        # sorted() is stable, so ties keep query order
        results = sorted(results, key=lambda r: r.relevance, reverse=True)

        logger.info(f"Doc search: {len(keywords)} keywords, {len(results)} hits for {platform}")
        return results

    def record_usage(self, job_id: str, results: Iterable[DocSearchResult], commit: bool = True) -> int:
        """Create one DocUsage row per returned doc."""
        count = 0
        for result in results:
            self.db.add(DocUsage(job_id=job_id, doc_id=result.id, relevance=result.relevance))
            count += 1
        if commit:
            self.db.commit()
        return count
