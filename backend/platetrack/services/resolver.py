"""
Identity resolution: misread alias -> canonical (parent) plate.

Read-only. Unknown plates are the common case and resolve to themselves.
"""

import math
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from .. import models
from .extract import normalize_plate_number

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


@dataclass(frozen=True)
class Resolution:
    plate_number: str  # the literal string, stored on the read
    canonical: str  # parent if plate_number is a known misread
    is_misread: bool = False


def resolve_identity(db: Session, plate_number: str) -> Resolution:
    known = db.get(models.KnownPlate, plate_number)
    if known is not None and known.parent_plate_number:
        return Resolution(plate_number, known.parent_plate_number, True)
    return Resolution(plate_number, plate_number, False)


def misread_numbers(db: Session, parent: str) -> List[str]:
    rows = (
        db.query(models.KnownPlate.plate_number)
        .filter(models.KnownPlate.parent_plate_number == parent)
        .order_by(models.KnownPlate.plate_number)
        .all()
    )
    return [r[0] for r in rows]


def family_plate_numbers(db: Session, parent: str) -> List[str]:
    """The parent plus every misread currently attached to it."""
    return [parent] + misread_numbers(db, parent)


# ----------------------------- fuzzy matching -----------------------------
def normalize_for_match(text: str) -> str:
    return _NON_ALNUM.sub("", text or "").upper()


def levenshtein_distance(s1: str, s2: str) -> int:
    if len(s1) < len(s2):
        return levenshtein_distance(s2, s1)
    if len(s2) == 0:
        return len(s1)

    previous_row = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1):
        current_row = [i + 1]
        for j, c2 in enumerate(s2):
            insertions = previous_row[j + 1] + 1
            deletions = current_row[j] + 1
            substitutions = previous_row[j] + (c1 != c2)
            current_row.append(min(insertions, deletions, substitutions))
        previous_row = current_row
    return previous_row[-1]


def max_edit_distance(query: str) -> int:
    """Allow ~a quarter of the characters to differ, never fewer than 2."""
    return max(2, math.ceil(len(query) * 0.25))


def match_score(query: str, candidate: str) -> Optional[float]:
    """
    Similarity in [0, 1] or None when the candidate is not a match.

    Exact beats prefix beats substring beats edit distance.
    """
    q = normalize_for_match(query)
    c = normalize_for_match(candidate)
    if not q or not c:
        return None
    if q == c:
        return 1.0
    ratio = min(len(q), len(c)) / max(len(q), len(c))
    if c.startswith(q) or q.startswith(c):
        return 0.7 + 0.2 * ratio
    if q in c or c in q:
        return 0.5 + 0.2 * ratio
    distance = levenshtein_distance(q, c)
    if distance <= max_edit_distance(q):
        return 0.5 * max(0.0, 1.0 - distance / max(len(q), len(c)))
    return None


def fuzzy_matches(query: str, candidates: Iterable[str]) -> Dict[str, float]:
    scores = {}
    for candidate in candidates:
        score = match_score(query, candidate)
        if score is not None:
            scores[candidate] = score
    return scores


def find_known_plate(db: Session, plate_number: str, fuzzy: bool = False) -> Optional[Dict]:
    """
    Look up a known plate. Exact lookups are one indexed get; fuzzy lookups
    rank the whole known-plate universe and return the best match.
    """
    if not fuzzy:
        known = db.get(models.KnownPlate, normalize_plate_number(plate_number))
        similarity = 1.0
    else:
        numbers = [r[0] for r in db.query(models.KnownPlate.plate_number).all()]
        scores = fuzzy_matches(plate_number, numbers)
        if not scores:
            return None
        best, similarity = sorted(scores.items(), key=lambda kv: (-kv[1], kv[0]))[0]
        known = db.get(models.KnownPlate, best)

    if known is None:
        return None
    return {
        "plate_number": known.plate_number,
        "name": known.name,
        "notes": known.notes,
        "parent_plate_number": known.parent_plate_number,
        "similarity": round(similarity, 3),
    }
