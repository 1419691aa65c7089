"""Place price projection from the exchange Top 5 and Top 10 markets.

Only two place depths are quoted on the exchange. Treating the probability
of a top-N finish as linear in N between (and beyond) those two anchors
gives a lay price for any bookmaker place count from 5 to 15:

    m      = (p10 - p5) / 5
    p(N)   = p5 + (N - 5) * m      for 5 <= N <= 10
    p(N)   = p10 + (N - 10) * m    for 10 < N <= 15
    price  = 1 / p(N)
"""

from __future__ import annotations

from typing import Optional

import structlog

from config import MAX_PROJECTION_DEPTH, MIN_PROJECTION_DEPTH, REFERENCE_DEPTHS
from markets import MarketSnapshot
from odds import normalize_name

logger = structlog.get_logger()

LOW_DEPTH, HIGH_DEPTH = REFERENCE_DEPTHS


def depth_in_range(depth: object) -> bool:
    return isinstance(depth, int) and MIN_PROJECTION_DEPTH <= depth <= MAX_PROJECTION_DEPTH


def project_place_probability(p_top5: float, p_top10: float, depth: int) -> float:
    """Return the implied probability of a top-``depth`` finish."""
    marginal = (p_top10 - p_top5) / (HIGH_DEPTH - LOW_DEPTH)
    if depth == LOW_DEPTH:
        return p_top5
    if depth == HIGH_DEPTH:
        return p_top10
    if depth < HIGH_DEPTH:
        return p_top5 + (depth - LOW_DEPTH) * marginal
    return p_top10 + (depth - HIGH_DEPTH) * marginal


class PlaceProjector:
    """Projects lay prices for any place count in [5, 15] for one event."""

    def __init__(self, top5_market: MarketSnapshot, top10_market: MarketSnapshot) -> None:
        for market, expected in ((top5_market, LOW_DEPTH), (top10_market, HIGH_DEPTH)):
            if market.depth is not None and market.depth != expected:
                raise ValueError(
                    f"{market.source_id} market has depth {market.depth}, expected {expected}"
                )
        self.top5_market = top5_market
        self.top10_market = top10_market
        self.logger = logger.bind(component="place_projector")

    def project(self, player: str, depth: int) -> Optional[float]:
        """Return the projected lay price for ``player`` at ``depth`` places.

        None when the depth is outside [5, 15], the player is missing from
        either reference market, or the projected probability is not positive.
        """
        if not depth_in_range(depth):
            self.logger.warning("projection_depth_rejected", player=player, depth=depth)
            return None
        identity = normalize_name(player)
        top5 = self.top5_market.quotes.get(identity)
        top10 = self.top10_market.quotes.get(identity)
        if top5 is None or top10 is None:
            return None
        probability = project_place_probability(1.0 / top5.price, 1.0 / top10.price, depth)
        if probability <= 0:
            self.logger.debug(
                "projection_degenerate",
                player=player,
                depth=depth,
                top5=top5.price,
                top10=top10.price,
            )
            return None
        return 1.0 / probability
