"""Request filtering (adblock): rule compilation, decisions and statistics."""

from tabwright.filtering.lru import LRUCounter
from tabwright.filtering.request_filter import FilterStats, RequestFilter
from tabwright.filtering.rules import CompiledRules, FilterDecision, FilterMode, compile_rules, evaluate

__all__ = [
    "CompiledRules",
    "FilterDecision",
    "FilterMode",
    "FilterStats",
    "LRUCounter",
    "RequestFilter",
    "compile_rules",
    "evaluate",
]
