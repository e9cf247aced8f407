"""Model-tier routing."""

from turnloop.router.policy import RouterResponse, RoutingPolicy
from turnloop.router.router import Classification, TierRouter, collect_tips, parse_response

__all__ = [
    "Classification",
    "RouterResponse",
    "RoutingPolicy",
    "TierRouter",
    "collect_tips",
    "parse_response",
]
