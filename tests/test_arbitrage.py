"""Tests for arbitrage.py: each-way and win edge detection."""

import unittest

from arbitrage import (
    ArbitrageRecord,
    BookmakerOffer,
    EachWayCalculator,
    ReferenceMarketError,
    blended_lay_price,
    calculate_edge_percent,
    find_win_opportunities,
    group_by_entity,
    rank,
    summarize,
)
from markets import Present, Unavailable, build_snapshot
from odds import EachWayTerms

EIGHTH_TERMS = EachWayTerms(1, 5, 8)


def _exchange(win=None, top5=None, top10=None):
    win = win if win is not None else [("Shane Lowry", 5.0), ("Viktor Hovland", 21.0)]
    top5 = top5 if top5 is not None else [("Shane Lowry", 1.5), ("Viktor Hovland", 4.0)]
    top10 = top10 if top10 is not None else [("Shane Lowry", 1.2), ("Viktor Hovland", 2.2)]
    return (
        Present(build_snapshot("betfair:win", win)),
        Present(build_snapshot("betfair:top5", top5, depth=5)),
        Present(build_snapshot("betfair:top10", top10, depth=10)),
    )


def _offer(provider, quotes, terms=None, places=None):
    return BookmakerOffer(
        provider=provider,
        snapshot=build_snapshot(provider or "https://unknown.example/golf", quotes),
        terms=terms,
        places=places,
    )


class TestEdgeHelpers(unittest.TestCase):
    def test_edge_percent(self):
        self.assertAlmostEqual(calculate_edge_percent(6.0, 5.0), 20.0)
        self.assertAlmostEqual(calculate_edge_percent(4.0, 5.0), -20.0)

    def test_edge_percent_without_reference(self):
        self.assertEqual(calculate_edge_percent(6.0, 0.0), 0.0)

    def test_blended_lay_price(self):
        """Place lay 1.2 at fifth odds is a 2.0 win-equivalent; averaged with 5.0."""
        self.assertAlmostEqual(blended_lay_price(5.0, 1.2, EachWayTerms(1, 5, 10)), 3.5)

    def test_rank_is_stable_on_ties(self):
        first = _record("a", "ladbrokes", 5.0)
        second = _record("b", "skybet", 5.0)
        third = _record("c", "ten_bet", 7.0)
        self.assertEqual(rank([first, second, third]), [third, first, second])


class TestEachWayCalculator(unittest.TestCase):
    def test_end_to_end_edges(self):
        """5/1 at 3/20 odds for 5 places: 6.0 win vs 5.0 lay, 1.75 place vs 1.5 lay."""
        calculator = EachWayCalculator(*_exchange())
        offer = _offer("ladbrokes", [("Shane Lowry", "5/1")], terms=EachWayTerms(3, 20, 5))
        records = calculator.find_opportunities([offer])

        self.assertEqual(len(records), 1)
        record = records[0]
        self.assertEqual(record.offer_place_odds, "3/4")
        self.assertAlmostEqual(record.offer_win_price, 6.0)
        self.assertAlmostEqual(record.offer_place_price, 1.75)
        self.assertAlmostEqual(record.reference_place_price, 1.5)
        self.assertAlmostEqual(record.win_edge, 20.0)
        self.assertAlmostEqual(record.place_edge, 16.6667, places=3)
        self.assertAlmostEqual(record.combined_edge, 18.3333, places=3)
        self.assertEqual(record.place_depth, 5)
        self.assertEqual(record.place_reference, "projected")
        self.assertEqual(record.source_id, "ladbrokes")

    def test_unmatched_player_produces_no_record(self):
        calculator = EachWayCalculator(*_exchange())
        offer = _offer("skybet", [("Shane Lowry", "5/1"), ("Ludvig Aberg", "16/1")])
        records = calculator.find_opportunities([offer])
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].identity, "shane lowry")

    def test_unknown_provider_is_skipped(self):
        calculator = EachWayCalculator(*_exchange())
        offers = [
            _offer(None, [("Shane Lowry", "5/1")]),
            _offer("skybet", [("Viktor Hovland", "25/1")]),
        ]
        records = calculator.find_opportunities(offers)
        self.assertEqual([record.source_id for record in records], ["skybet"])

    def test_non_fractional_offer_odds_are_skipped(self):
        calculator = EachWayCalculator(*_exchange())
        offer = _offer("ten_bet", [("Shane Lowry", "6.0"), ("Viktor Hovland", "20/1")])
        records = calculator.find_opportunities([offer])
        self.assertEqual([record.name for record in records], ["Viktor Hovland"])

    def test_depth_resolution_order(self):
        calculator = EachWayCalculator(*_exchange(), default_depth=10)
        self.assertEqual(calculator.resolve_depth(_offer("skybet", [], EIGHTH_TERMS, places=6)), 6)
        self.assertEqual(calculator.resolve_depth(_offer("skybet", [], EIGHTH_TERMS)), 8)
        self.assertEqual(calculator.resolve_depth(_offer("skybet", [])), 10)

    def test_out_of_range_depth_uses_blended_price(self):
        calculator = EachWayCalculator(*_exchange(), default_terms=EachWayTerms(1, 5, 10))
        offer = _offer("paddy_power", [("Shane Lowry", "5/1")], terms=EachWayTerms(1, 4, 4))
        record = calculator.find_opportunities([offer])[0]
        self.assertEqual(record.place_reference, "blended")
        self.assertAlmostEqual(record.reference_place_price, 3.5)

    def test_degenerate_projection_uses_blended_price(self):
        calculator = EachWayCalculator(
            *_exchange(top5=[("Shane Lowry", 2.0)], top10=[("Shane Lowry", 10.0)])
        )
        offer = _offer("boylesports", [("Shane Lowry", "5/1")], places=15)
        record = calculator.find_opportunities([offer])[0]
        self.assertEqual(record.place_reference, "blended")

    def test_results_are_ranked_and_deterministic(self):
        win, top5, top10 = _exchange()
        offers = [
            _offer("ladbrokes", [("Shane Lowry", "4/1"), ("Viktor Hovland", "28/1")], EIGHTH_TERMS),
            _offer("skybet", [("Shane Lowry", "9/2"), ("Viktor Hovland", "20/1")], EIGHTH_TERMS),
        ]
        first = EachWayCalculator(win, top5, top10).find_opportunities(offers)
        second = EachWayCalculator(win, top5, top10).find_opportunities(offers)
        self.assertEqual(first, second)
        edges = [record.combined_edge for record in first]
        self.assertEqual(edges, sorted(edges, reverse=True))
        self.assertEqual(len(first), 4)

    def test_layable_prices_sorted_by_combined_price(self):
        prices = EachWayCalculator(*_exchange()).layable_prices()
        self.assertEqual([price.name for price in prices], ["Shane Lowry", "Viktor Hovland"])
        self.assertLessEqual(prices[0].combined_lay_price, prices[1].combined_lay_price)

    def test_missing_reference_market_fails_loudly(self):
        win, top5, _ = _exchange()
        with self.assertRaises(ReferenceMarketError):
            EachWayCalculator(win, top5, Unavailable("betfair:top10", "timeout"))
        with self.assertRaises(ReferenceMarketError):
            EachWayCalculator(win, None, top5)


class TestWinOpportunities(unittest.TestCase):
    def test_win_only_edges(self):
        win, _, _ = _exchange()
        offers = [_offer("ladbrokes", [("Shane Lowry", "5/1"), ("Viktor Hovland", "16/1")])]
        records = find_win_opportunities(offers, win)
        self.assertEqual([record.name for record in records], ["Shane Lowry", "Viktor Hovland"])
        self.assertAlmostEqual(records[0].win_edge, 20.0)
        self.assertLess(records[1].win_edge, 0)

    def test_requires_winner_market(self):
        with self.assertRaises(ReferenceMarketError):
            find_win_opportunities([], None)


def _record(name, source, edge):
    return ArbitrageRecord(
        identity=name.lower(),
        name=name,
        source_id=source,
        offer_odds="10/1",
        offer_win_price=11.0,
        offer_place_odds="2/1",
        offer_place_price=3.0,
        reference_win_price=10.0,
        reference_place_price=2.8,
        win_edge=edge,
        place_edge=edge,
        combined_edge=edge,
        place_depth=8,
        place_reference="projected",
    )


class TestGroupingAndSummary(unittest.TestCase):
    def setUp(self):
        self.records = rank(
            [
                _record("Lowry", "ladbrokes", 4.0),
                _record("Lowry", "skybet", 12.0),
                _record("Hovland", "ladbrokes", 6.0),
                _record("Fitzpatrick", "ten_bet", -3.0),
                _record("Hovland", "ten_bet", -1.0),
            ]
        )

    def test_groups_ordered_by_best_edge(self):
        groups = group_by_entity(self.records)
        self.assertEqual([group.name for group in groups], ["Lowry", "Hovland", "Fitzpatrick"])
        self.assertEqual([r.source_id for r in groups[0].records], ["skybet", "ladbrokes"])
        self.assertEqual(groups[0].best_edge, 12.0)
        self.assertEqual(len(groups[1].profitable()), 1)

    def test_summary(self):
        summary = summarize(self.records)
        self.assertEqual(summary["players"], 3)
        self.assertEqual(summary["combinations"], 5)
        self.assertEqual(summary["profitable_players"], 2)
        self.assertEqual(summary["profitable_count"], 3)
        self.assertAlmostEqual(summary["average_edge"], 22.0 / 3)
        self.assertEqual(summary["max_edge"], 12.0)
        self.assertEqual(summary["best"], {"player": "Lowry", "source": "skybet", "edge": 12.0})
        self.assertEqual([entry["player"] for entry in summary["multi_source_players"]], ["Lowry"])
        self.assertEqual(
            summary["by_edge_band"], {"0-3%": 0, "3-5%": 1, "5-10%": 1, "10%+": 1}
        )

    def test_summary_without_profit(self):
        summary = summarize([_record("Rose", "skybet", -2.0)])
        self.assertIsNone(summary["average_edge"])
        self.assertIsNone(summary["max_edge"])
        self.assertIsNone(summary["best"])
        self.assertEqual(summary["multi_source_players"], [])


if __name__ == "__main__":
    unittest.main()
