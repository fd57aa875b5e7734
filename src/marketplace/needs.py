"""
Need detection and industry resolution.

Turns a declared profile plus the current catalog into at most four
"need" labels, and derives an industry label from the contact email
domain. Both are recomputed whenever the catalog or profile changes.

Usage::

    from marketplace.needs import detect_needs, resolve_industry

    needs = detect_needs(profile, catalog)        # ["Healthcare", "Ops Workflows", ...]
    industry = resolve_industry(profile)          # "Healthcare" or None
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable, List, Optional, Sequence

from config.constants import (
    DEFAULT_TEAM_SIZE_LABEL,
    DOMAIN_INDUSTRY_MAP,
    MAX_DETECTED_NEEDS,
    TEAM_SIZE_BUCKETS,
)
from core.utils import dedupe_labels, normalize, title_case
from marketplace.models import CatalogItem, UserProfile


def _team_size_label(team_size: Optional[float]) -> Optional[str]:
    # 0 counts as unset
    if not team_size:
        return None
    for threshold, label in TEAM_SIZE_BUCKETS:
        if team_size > threshold:
            return label
    return DEFAULT_TEAM_SIZE_LABEL


def _explicit_signals(profile: Optional[UserProfile]) -> List[str]:
    """Profile-derived signals, in priority order."""
    if profile is None:
        return []
    raw: List[Optional[str]] = [
        profile.industry,
        f"{profile.department} workflows" if profile.department else None,
        f"{profile.role} enablement" if profile.role else None,
        _team_size_label(profile.team_size),
    ]
    raw.extend(profile.pain_points)
    return [value for value in raw if value]


def trending_tags(catalog: Iterable[CatalogItem]) -> List[str]:
    """
    Catalog tags ordered by frequency (descending).

    Ties keep the order in which the tag first appeared.
    """
    frequency: Counter = Counter()
    for item in catalog:
        for tag in item.tags:
            key = normalize(tag)
            if key:
                frequency[key] += 1
    # Counter preserves insertion order; sorted() is stable.
    ranked = sorted(frequency.items(), key=lambda pair: -pair[1])
    return [title_case(tag) for tag, _ in ranked]


def detect_needs(
    profile: Optional[UserProfile],
    catalog: Sequence[CatalogItem],
    limit: int = MAX_DETECTED_NEEDS,
) -> List[str]:
    """
    Derive up to ``limit`` need labels.

    Explicit profile signals come first, followed by trending catalog
    tags as fill. Labels are title-cased and deduplicated
    case-insensitively (first occurrence wins).
    """
    candidates = [*_explicit_signals(profile), *trending_tags(catalog or ())]
    return dedupe_labels(title_case(raw) for raw in candidates)[:limit]


# =============================================================================
# Industry
# =============================================================================

def _email_domain(email: Optional[str]) -> str:
    if not email or "@" not in str(email):
        return ""
    return str(email).split("@")[1].strip().lower()


def detect_industry(email: Optional[str], fallback: Optional[str] = None) -> Optional[str]:
    """
    Map an email domain to an industry label.

    "www." and the final TLD segment are stripped before keyword matching,
    so "ops@medline.com" -> "Healthcare". Falls back to ``fallback`` (or
    None) when the email is missing or nothing matches. Never raises.
    """
    domain = _email_domain(email)
    if not domain:
        return fallback or None

    if domain.startswith("www."):
        domain = domain[4:]
    segments = domain.split(".")
    base = ".".join(segments[:-1]) or domain

    for keywords, industry in DOMAIN_INDUSTRY_MAP:
        if any(keyword in base for keyword in keywords):
            return industry

    return fallback or None


def resolve_industry(profile: Optional[UserProfile]) -> Optional[str]:
    """Industry from the contact email, else the declared profile industry."""
    if profile is None:
        return None
    fallback = title_case(profile.industry) if profile.industry else None
    return detect_industry(profile.contact_email, fallback)


def matches_industry(item: CatalogItem, label: Optional[str]) -> bool:
    """True if ``label`` appears in the item's category, vertical or tags."""
    if not label:
        return False
    target = normalize(label)
    pool = [item.category, item.vertical, *item.tags]
    return any(target in normalize(value) for value in pool if value)


def resolve_active_need(
    previous: Optional[str],
    needs: Sequence[str],
    industry: Optional[str] = None,
) -> Optional[str]:
    """
    Pick the focus need after needs are recomputed.

    A previous choice survives if it is still detected. Otherwise the
    first need mentioning the industry wins, then the first need.
    """
    if not needs:
        return None
    if previous:
        key = normalize(previous)
        if any(normalize(need) == key for need in needs):
            return previous
    if industry:
        target = normalize(industry)
        for need in needs:
            if target in normalize(need):
                return need
    return needs[0]
