"""
RelevanceScorer -- additive multi-signal ranking of the catalog.

score(item) = base_score + attention_bonus

base_score starts at 1 and accumulates:
    active need      +7 tag, +5 category, +4 description
    detected needs   +1.5 * w tag, +1.0 * w description   (w = N - rank)
    metadata         + roi, + 0.5 * popularity
    industry         +6 on tag/category/vertical match
    browsing         +1.4 * w tag, +1.0 * w description, +1.1 * w category

attention_bonus = min(score, 12) * 1.6 + min(interactions, 6) * 0.3
                  + max(0, 1.35 - recency_minutes / 8)

match_strength = score / max_score, clamped to [0, 1]. When no score is
positive it is (score - min_score) / (max_score - min_score), 1 on a tie.
Output is sorted by score descending; ties keep catalog order.

Everything here is a pure function of its inputs; ``now`` is passed in.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Sequence

from config.constants import DEFAULT_RELEVANCE_CONFIG, RelevanceConfig
from core.utils import contains_any, normalize, title_case
from marketplace.models import (
    AggregateMetrics,
    AttentionEntry,
    BrowsingSignal,
    CatalogItem,
    CombinationHighlight,
    EntryCluster,
    RecommendedEntry,
    ScoredEntry,
)
from marketplace.needs import matches_industry


def browsing_weight(signal: BrowsingSignal, index: int, total: int,
                    config: RelevanceConfig = DEFAULT_RELEVANCE_CONFIG) -> float:
    """Supplied weight, else max(1, (total - index) * 0.9)."""
    if signal.weight:
        return signal.weight
    return max(1.0, (total - index) * config.BROWSING_FALLBACK_STEP)


def compute_match_score(
    item: CatalogItem,
    detected_needs: Sequence[str],
    active_need: Optional[str],
    browsing_signals: Sequence[BrowsingSignal],
    industry: Optional[str],
    config: RelevanceConfig = DEFAULT_RELEVANCE_CONFIG,
) -> float:
    """Base relevance of one item, before attention."""
    tags = [normalize(tag) for tag in item.tags]
    description = normalize(item.description)
    category = normalize(item.effective_category)
    score = config.BASE_SCORE

    if active_need:
        target = normalize(active_need)
        if contains_any(tags, target):
            score += config.ACTIVE_TAG
        if target in category:
            score += config.ACTIVE_CATEGORY
        if target in description:
            score += config.ACTIVE_DESCRIPTION

    total_needs = len(detected_needs)
    for index, need in enumerate(detected_needs):
        target = normalize(need)
        if not target:
            continue
        weight = total_needs - index
        if contains_any(tags, target):
            score += weight * config.NEED_TAG
        if target in description:
            score += weight * config.NEED_DESCRIPTION

    if item.roi is not None:
        score += item.roi
    if item.popularity is not None:
        score += item.popularity * config.POPULARITY_WEIGHT

    if industry and matches_industry(item, industry):
        score += config.INDUSTRY_BONUS

    total_signals = len(browsing_signals)
    for index, signal in enumerate(browsing_signals):
        target = normalize(signal.label)
        if not target:
            continue
        weight = browsing_weight(signal, index, total_signals, config)
        if contains_any(tags, target):
            score += weight * config.BROWSING_TAG
        if target in description:
            score += weight * config.BROWSING_DESCRIPTION
        if target in category:
            score += weight * config.BROWSING_CATEGORY

    return score


def compute_attention_bonus(
    entry: Optional[AttentionEntry],
    now: float,
    config: RelevanceConfig = DEFAULT_RELEVANCE_CONFIG,
) -> float:
    """Boost from dwell attention; 0 when the item has no entry."""
    if entry is None:
        return 0.0
    recency_minutes = max(0.0, (now - entry.last_viewed) / 60.0) if entry.last_viewed else 0.0
    recency_boost = max(0.0, config.RECENCY_BOOST - recency_minutes / config.RECENCY_WINDOW_MINUTES)
    return (
        min(entry.score, config.ATTENTION_SCORE_CAP) * config.ATTENTION_SCORE_WEIGHT
        + min(entry.interactions, config.INTERACTION_CAP) * config.INTERACTION_WEIGHT
        + recency_boost
    )


def score_catalog(
    catalog: Sequence[CatalogItem],
    detected_needs: Sequence[str],
    active_need: Optional[str],
    browsing_signals: Sequence[BrowsingSignal],
    industry: Optional[str],
    attention: Mapping[str, AttentionEntry],
    now: float,
    config: RelevanceConfig = DEFAULT_RELEVANCE_CONFIG,
) -> List[ScoredEntry]:
    """
    Rank the catalog.

    Returns [] for an empty catalog. Every entry's match_strength is in
    [0, 1] and the top entry's is 1.
    """
    if not catalog:
        return []

    attention = attention or {}
    browsing_signals = list(browsing_signals or ())
    entries: List[ScoredEntry] = []

    for item in catalog:
        base_score = compute_match_score(
            item, detected_needs or (), active_need, browsing_signals, industry, config,
        )
        attention_entry = attention.get(item.id)
        bonus = compute_attention_bonus(attention_entry, now, config)
        entries.append(ScoredEntry(
            item=item,
            base_score=base_score,
            attention_bonus=bonus,
            attention_score=attention_entry.score if attention_entry else 0.0,
            score=base_score + bonus,
            industry_match=matches_industry(item, industry),
            browsing_match=any(matches_industry(item, s.label) for s in browsing_signals),
        ))

    # Scores only drop below 1 with a negative roi or popularity.
    top_score = max(entry.score for entry in entries)
    if top_score > 0:
        for entry in entries:
            entry.match_strength = min(1.0, max(0.0, entry.score / top_score))
    else:
        # All non-positive: spread over the score range instead.
        low_score = min(entry.score for entry in entries)
        spread = top_score - low_score
        for entry in entries:
            entry.match_strength = (entry.score - low_score) / spread if spread else 1.0

    # sorted() is stable, so equal scores keep catalog order
    return sorted(entries, key=lambda entry: -entry.score)


# =============================================================================
# Presentation Helpers
# =============================================================================

def recommend(
    ranked: Sequence[ScoredEntry],
    limit: int = DEFAULT_RELEVANCE_CONFIG.RECOMMENDED_LIMIT,
) -> List[RecommendedEntry]:
    """Top ``limit`` entries with 1-based rank and percentage confidence."""
    return [
        RecommendedEntry(
            entry=entry,
            rank=index + 1,
            confidence=round((entry.match_strength or 0) * 100),
        )
        for index, entry in enumerate(ranked[:limit])
    ]


def cluster_label(item: CatalogItem, active_need: Optional[str]) -> str:
    if active_need:
        target = normalize(active_need)
        tags = [normalize(tag) for tag in item.tags]
        if contains_any(tags, target) or target in normalize(item.category):
            return f"Tailored for {title_case(active_need)}"

    base = item.category or item.vertical or (item.tags[0] if item.tags else "Universal")
    return f"Cluster: {title_case(base)}"


def cluster_description(label: str, active_need: Optional[str]) -> str:
    if normalize(label).startswith("tailored"):
        if active_need:
            return (f"Automations tuned to your {title_case(active_need)} focus "
                    "with synchronized data flows.")
        return "Automations tuned to your current signals with synchronized data flows."

    topic = ":".join(label.split(":")[1:]).strip()
    if topic:
        return f"{topic} specialists linked by shared workflow connections."
    return "Related automations collaborating through shared workflow connections."


def cluster_entries(
    ranked: Sequence[ScoredEntry],
    active_need: Optional[str],
) -> List[EntryCluster]:
    """
    Group ranked entries by cluster label.

    Clusters appear in the order their best entry ranks, and entries
    inside a cluster keep ranked order.
    """
    groups: Dict[str, List[ScoredEntry]] = {}
    for entry in ranked:
        groups.setdefault(cluster_label(entry.item, active_need), []).append(entry)

    return [
        EntryCluster(
            id=f"{label}-{index}",
            label=label,
            description=cluster_description(label, active_need),
            entries=entries,
        )
        for index, (label, entries) in enumerate(groups.items())
    ]


def combination_highlight(
    ranked: Sequence[ScoredEntry],
    metrics: Optional[AggregateMetrics],
    active_need: Optional[str],
    limit: int = DEFAULT_RELEVANCE_CONFIG.RECOMMENDED_LIMIT,
) -> Optional[CombinationHighlight]:
    """
    Pick the stack to feature.

    The best aggregate combo wins when there is one; otherwise the top
    ``limit`` ranked names stand in. None when both are empty.
    """
    combo = metrics.combo if metrics else ()
    if combo:
        primary = combo[0]
        title = primary.name or "High-impact automation stack"
        if primary.overlap:
            description = f"Signals in common: {', '.join(primary.overlap)}"
        else:
            description = "This stack surges ahead for teams matching your signals."
        return CombinationHighlight(
            title=title,
            description=description,
            items=[title, *primary.overlap[:2]],
            roi=primary.roi,
        )

    if not ranked:
        return None
    if active_need:
        title = f"{title_case(active_need)} standouts"
        description = f"Automations that excel for {title_case(active_need)} teams right now."
    else:
        title = "Top matching automations"
        description = "High-performing automations based on your live signals."
    return CombinationHighlight(
        title=title,
        description=description,
        items=[entry.item.name for entry in ranked[:limit]],
    )
