"""
Prometheus counters exposed at /metrics (monitoring & observability).
"""

from prometheus_client import Counter

MATCHES_CREATED = Counter(
    "finderguard_matches_created_total",
    "Match records persisted by the ranker",
)

SEMANTIC_FALLBACKS = Counter(
    "finderguard_semantic_fallbacks_total",
    "Ranking passes that fell back to the deterministic scorer",
    ["reason"],
)

EXCHANGE_TRANSITIONS = Counter(
    "finderguard_exchange_transitions_total",
    "Exchange state transitions that were stored",
    ["to_status"],
)
