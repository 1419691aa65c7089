import unittest

from markets import build_snapshot
from projection import PlaceProjector, depth_in_range, project_place_probability


def _projector(top5_price: float = 10.0, top10_price: float = 5.0) -> PlaceProjector:
    top5 = build_snapshot("betfair:top5", [("Tommy Fleetwood", top5_price)], depth=5)
    top10 = build_snapshot("betfair:top10", [("Tommy Fleetwood", top10_price)], depth=10)
    return PlaceProjector(top5, top10)


class ProjectionTests(unittest.TestCase):
    def test_reference_depths_return_quoted_prices(self) -> None:
        projector = _projector()
        self.assertAlmostEqual(projector.project("Tommy Fleetwood", 5), 10.0)
        self.assertAlmostEqual(projector.project("Tommy Fleetwood", 10), 5.0)

    def test_interpolates_between_reference_depths(self) -> None:
        self.assertAlmostEqual(_projector().project("tommy fleetwood", 7), 1 / 0.14)
        self.assertAlmostEqual(_projector().project("Tommy Fleetwood", 7), 7.142857, places=5)

    def test_extrapolates_beyond_top10(self) -> None:
        self.assertAlmostEqual(_projector().project("Tommy Fleetwood", 15), 1 / 0.30)
        self.assertAlmostEqual(_projector().project("Tommy Fleetwood", 15), 3.3333, places=4)

    def test_rejects_out_of_range_depth(self) -> None:
        projector = _projector()
        self.assertIsNone(projector.project("Tommy Fleetwood", 16))
        self.assertIsNone(projector.project("Tommy Fleetwood", 4))

    def test_unknown_player(self) -> None:
        self.assertIsNone(_projector().project("Jon Rahm", 8))

    def test_degenerate_probability(self) -> None:
        # Top 10 priced longer than Top 5: the slope is negative and
        # extrapolation past 10 drops below zero.
        projector = _projector(top5_price=2.0, top10_price=10.0)
        self.assertIsNone(projector.project("Tommy Fleetwood", 15))

    def test_probability_helper(self) -> None:
        self.assertAlmostEqual(project_place_probability(0.1, 0.2, 8), 0.16)
        self.assertAlmostEqual(project_place_probability(0.1, 0.2, 12), 0.24)

    def test_depth_range(self) -> None:
        self.assertTrue(depth_in_range(5))
        self.assertTrue(depth_in_range(15))
        self.assertFalse(depth_in_range(16))
        self.assertFalse(depth_in_range("8"))

    def test_mismatched_market_depth(self) -> None:
        top5 = build_snapshot("betfair:top5", [], depth=6)
        top10 = build_snapshot("betfair:top10", [], depth=10)
        with self.assertRaises(ValueError):
            PlaceProjector(top5, top10)


if __name__ == "__main__":
    unittest.main()
