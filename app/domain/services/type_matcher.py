import re
from typing import Iterable, List, Set

from app.domain.models.product import Candidate, Product

# Articles, prepositions, possessives, plus merchandising noise that says
# nothing about what kind of product a title describes.
STOPWORDS = frozenset({
    "the", "and", "but", "for", "with", "from", "into", "onto", "over", "under",
    "our", "your", "his", "her", "hers", "its", "their", "theirs", "yours", "mine",
    "this", "that", "these", "those", "are", "was", "were", "been", "has", "have",
    "had", "does", "did", "new", "sale", "best", "top", "set", "pack", "piece",
    "pieces", "pair", "pairs", "size", "sizes", "women", "woman", "womens",
    "men", "man", "mens", "unisex", "limited", "edition", "collection",
})

_SPLIT_RE = re.compile(r"[\s\-_/]+")
_NON_LETTERS_RE = re.compile(r"[^a-z]")
MIN_TOKEN_LEN = 3


def tokenize(title: str) -> Set[str]:
    """Meaningful lowercase words of a product title."""
    tokens: Set[str] = set()
    for raw in _SPLIT_RE.split((title or "").lower()):
        tok = _NON_LETTERS_RE.sub("", raw)
        if len(tok) >= MIN_TOKEN_LEN and tok not in STOPWORDS:
            tokens.add(tok)
    return tokens


def tokenize_many(titles: Iterable[str]) -> Set[str]:
    out: Set[str] = set()
    for t in titles:
        out |= tokenize(t)
    return out


def type_score(reference_tokens: Iterable[str], candidate_title: str) -> int:
    title = (candidate_title or "").lower()
    return sum(1 for tok in reference_tokens if tok in title)


def is_same_type(reference_tokens: Iterable[str], candidate_title: str) -> bool:
    return type_score(reference_tokens, candidate_title) > 0


def annotate(products: Iterable[Product], reference_tokens: Set[str]) -> List[Candidate]:
    """
    Label candidates with same_type and put same-type ones first (stable).
    With no reference tokens nothing is labelled same-type.
    """
    cands = [
        Candidate(product=p, same_type=bool(reference_tokens) and is_same_type(reference_tokens, p.title))
        for p in products
    ]
    return sorted(cands, key=lambda c: not c.same_type)
