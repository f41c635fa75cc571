"""Keyword retrieval over indexed documents and context rendering for the answering model.

Scoring is plain keyword frequency: every keyword occurrence in the title and
body counts, title occurrences earn an extra bonus, and every word that merely
contains a keyword earns a small partial-match bonus.  All functions are pure;
the same inputs always produce the same ranking and the same context string.
"""

from dataclasses import dataclass
from typing import Iterable, List, NamedTuple, Optional, Sequence

from siteqa.errors import EmptyCorpus, NoRelevantDocuments
from siteqa.models.document import Document, Source

DEFAULT_LIMIT = 5
CONTEXT_CHARS_PER_DOCUMENT = 2000
TRUNCATION_MARKER = "[... content truncated]"

# Shorter query tokens are not used as keywords
_MIN_KEYWORD_LEN = 4

STOP_WORDS = frozenset(
    {
        "the", "is", "at", "which", "on", "a", "an", "and", "or", "but",
        "in", "with", "to", "for", "of", "as", "by", "that", "this",
        "from", "are", "was", "were", "been", "be", "have", "has", "had",
        "do", "does", "did", "will", "would", "should", "could", "may",
        "might", "must", "can", "what", "when", "where", "who", "how", "why",
    }
)


@dataclass(frozen=True)
class ScoringWeights:
    occurrence: float = 2.0
    title: float = 5.0
    partial: float = 0.5

    @classmethod
    def from_settings(cls, settings) -> "ScoringWeights":
        return cls(
            occurrence=settings.score_occurrence_weight,
            title=settings.score_title_weight,
            partial=settings.score_partial_weight,
        )


DEFAULT_WEIGHTS = ScoringWeights()


class ScoredDocument(NamedTuple):
    document: Document
    score: float


def extract_keywords(query: str) -> List[str]:
    return [
        word
        for word in query.lower().split()
        if len(word) >= _MIN_KEYWORD_LEN and word not in STOP_WORDS
    ]


def score_document(
    document: Document,
    keywords: Sequence[str],
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> float:
    """Score *document* against already-extracted *keywords*.

    A title hit counts twice: once in the combined title+body count and once
    in the title bonus.
    """
    title = document.title.lower()
    text = f"{title} {document.text_content.lower()}"
    words = text.split()

    score = 0.0
    for keyword in keywords:
        score += text.count(keyword) * weights.occurrence
        score += title.count(keyword) * weights.title
        score += sum(weights.partial for word in words if keyword in word)
    return score


def _filter_domain(documents: Iterable[Document], domain: Optional[str]) -> List[Document]:
    if not domain:
        return list(documents)
    return [doc for doc in documents if doc.domain == domain]


def most_recent(documents: Sequence[Document], limit: int) -> List[Document]:
    return sorted(documents, key=lambda doc: doc.fetched_at, reverse=True)[:limit]


def search(
    query: str,
    documents: Sequence[Document],
    limit: int = DEFAULT_LIMIT,
    domain_filter: Optional[str] = None,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> List[Document]:
    """Return up to *limit* documents ranked by relevance to *query*.

    When the query has no usable keywords (only stop words or short tokens)
    the most recently fetched documents are returned instead.  Otherwise
    documents with a zero score are dropped and ties keep their input order.
    """
    pool = _filter_domain(documents, domain_filter)
    keywords = extract_keywords(query)

    if not keywords:
        return most_recent(pool, limit)

    scored = [ScoredDocument(doc, score_document(doc, keywords, weights)) for doc in pool]
    ranked = sorted(
        (item for item in scored if item.score > 0),
        key=lambda item: item.score,
        reverse=True,
    )
    return [item.document for item in ranked[:limit]]


def select_context(
    query: str,
    documents: Sequence[Document],
    limit: int = DEFAULT_LIMIT,
    domain_filter: Optional[str] = None,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> List[Document]:
    """Like :func:`search`, but an empty result is an error rather than a silent no-op.

    Raises:
        EmptyCorpus: if there are no documents (in *domain_filter*, when given).
        NoRelevantDocuments: if no document mentions any keyword of *query*.
    """
    pool = _filter_domain(documents, domain_filter)
    if not pool:
        if domain_filter:
            raise EmptyCorpus(f"No pages indexed for {domain_filter}. Index some pages first.")
        raise EmptyCorpus("No pages indexed. Please index some pages first.")

    relevant = search(query, pool, limit=limit, weights=weights)
    if not relevant:
        raise NoRelevantDocuments(
            "No relevant pages found. Try a different question or index more pages."
        )
    return relevant


def build_context(
    documents: Sequence[Document],
    max_chars: int = CONTEXT_CHARS_PER_DOCUMENT,
) -> str:
    parts: List[str] = []
    for i, doc in enumerate(documents, start=1):
        parts.append(f"\n--- Source {i} ---\n")
        parts.append(f"URL: {doc.url}\n")
        parts.append(f"Title: {doc.title}\n")
        parts.append(f"Domain: {doc.domain}\n")
        parts.append(f"Content: {doc.text_content[:max_chars]}\n")
        if len(doc.text_content) > max_chars:
            parts.append(f"{TRUNCATION_MARKER}\n")
    return "".join(parts)


def sources_for(documents: Sequence[Document]) -> List[Source]:
    return [Source(url=doc.url, title=doc.title, domain=doc.domain) for doc in documents]
