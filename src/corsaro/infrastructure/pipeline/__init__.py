from .fanout import Err, FanOutDispatcher, Ok, gather_outcomes
from .matcher import evaluate_episode_match, extract_info, matches
from .normalizer import enrich_trackers, extract_info_hash, normalize_candidates
from .query_planner import forced_ita_query, plan_queries, sanitize_query
from .ranker import rank_candidates

__all__ = [
    "Err",
    "FanOutDispatcher",
    "Ok",
    "enrich_trackers",
    "evaluate_episode_match",
    "extract_info",
    "extract_info_hash",
    "forced_ita_query",
    "gather_outcomes",
    "matches",
    "normalize_candidates",
    "plan_queries",
    "rank_candidates",
    "sanitize_query",
]
