"""Tests for derived position figures."""

from datetime import date
from decimal import Decimal

import pytest

from portal_core.ledger.calculations import (
    cost_basis,
    days_held,
    enrich,
    format_currency,
    format_percentage,
    performance_pct,
    portfolio_cost_basis,
    realized_pnl,
    sector_allocation,
    status_counts,
    summarize,
    top_performers,
    total_realized_pnl,
    total_unrealized_pnl,
    unrealized_pnl,
)
from portal_core.models import PositionStatus

from helpers import make_position

TODAY = date(2024, 1, 31)


class TestPerPosition:
    def test_cost_basis(self):
        assert cost_basis(Decimal("400"), Decimal("10")) == Decimal("4000")

    def test_cost_basis_floats_stay_exact(self):
        assert cost_basis(0.1, 3) == Decimal("0.3")

    @pytest.mark.parametrize(
        ("closing", "expected"),
        [(Decimal("120"), Decimal("200")), (Decimal("90"), Decimal("-100")), (Decimal("100"), 0)],
    )
    def test_realized_pnl(self, closing, expected):
        assert realized_pnl(closing, Decimal("100"), Decimal("10")) == expected

    def test_unrealized_pnl_live(self):
        p = make_position(market_price=Decimal("110"))
        assert unrealized_pnl(p) == Decimal("100")

    def test_unrealized_pnl_losing(self):
        p = make_position(market_price=Decimal("95"))
        assert unrealized_pnl(p) == Decimal("-50")

    def test_unrealized_pnl_without_market_price(self):
        assert unrealized_pnl(make_position()) == 0

    def test_unrealized_pnl_closed_is_zero(self):
        p = make_position(status=PositionStatus.CLOSED, market_price=Decimal("150"), closing_price=Decimal("120"))
        assert unrealized_pnl(p) == 0

    def test_performance_live_uses_market(self):
        p = make_position(entry_price=400, quantity=10, market_price=Decimal("450"))
        assert performance_pct(p) == Decimal("12.5")

    def test_performance_closed_uses_closing(self):
        p = make_position(
            entry_price=400,
            quantity=10,
            status=PositionStatus.CLOSED,
            market_price=Decimal("450"),
            closing_price=Decimal("470"),
        )
        assert performance_pct(p) == Decimal("17.5")

    def test_performance_without_price(self):
        assert performance_pct(make_position()) == 0
        assert performance_pct(make_position(status=PositionStatus.CLOSED)) == 0

    def test_days_held_open(self):
        assert days_held(make_position(), today=TODAY) == 30

    def test_days_held_closed(self):
        p = make_position(status=PositionStatus.CLOSED, closing_date=date(2024, 6, 1))
        assert days_held(p, today=date(2030, 1, 1)) == 152

    def test_days_held_same_day(self):
        assert days_held(make_position(entry_date=TODAY), today=TODAY) == 0

    def test_enrich(self):
        p = make_position(market_price=Decimal("110"))
        e = enrich(p, today=TODAY)
        assert e.unrealized_pnl == Decimal("100")
        assert e.performance_pct == Decimal("10")
        assert e.days_held == 30
        assert e.id == p.id
        assert e.cost_basis == p.cost_basis


@pytest.fixture
def book():
    return [
        make_position(id=1, sector="Tech", entry_price=300, quantity=10, market_price=Decimal("330")),
        make_position(id=2, sector="Tech", entry_price=100, quantity=10, market_price=Decimal("90")),
        make_position(id=3, sector=None, entry_price=100, quantity=10, market_price=Decimal("150")),
        make_position(id=4, sector="Energy", status=PositionStatus.DRAFT, market_price=Decimal("200")),
        make_position(
            id=5,
            sector="Energy",
            entry_price=100,
            quantity=50,
            status=PositionStatus.CLOSED,
            closing_price=Decimal("110"),
            closing_date=date(2024, 1, 20),
            realized_pnl=Decimal("500"),
        ),
        make_position(
            id=6,
            status=PositionStatus.CLOSED,
            closing_price=Decimal("90"),
            closing_date=date(2024, 1, 20),
            realized_pnl=Decimal("-100"),
        ),
        make_position(id=7, status=PositionStatus.ARCHIVED, realized_pnl=Decimal("999")),
    ]


class TestAggregates:
    def test_portfolio_cost_basis_live_only(self, book):
        assert portfolio_cost_basis(book) == Decimal("5000")

    def test_total_unrealized_live_only(self, book):
        # 300 - 100 + 500; the Draft mark is ignored
        assert total_unrealized_pnl(book) == Decimal("700")

    def test_total_realized_closed_only(self, book):
        assert total_realized_pnl(book) == Decimal("400")

    def test_empty(self):
        assert portfolio_cost_basis([]) == 0
        assert total_unrealized_pnl([]) == 0
        assert total_realized_pnl([]) == 0
        assert sector_allocation([]) == []

    def test_sector_allocation(self, book):
        allocations = sector_allocation(book)
        assert [(a.name, a.value) for a in allocations] == [
            ("Tech", Decimal("4000")),
            ("Other", Decimal("1000")),
        ]
        assert allocations[0].percentage == 80
        assert allocations[1].percentage == 20

    def test_top_performers(self, book):
        ranked = top_performers(book, limit=2, today=TODAY)
        assert [p.id for p in ranked] == [3, 1]
        assert ranked[0].performance_pct == Decimal("50")

    def test_status_counts_has_every_status(self, book):
        assert status_counts(book) == {"Draft": 1, "Live": 3, "Closed": 2, "Archived": 1}
        assert status_counts([]) == {"Draft": 0, "Live": 0, "Closed": 0, "Archived": 0}

    def test_summarize(self, book):
        summary = summarize(book, today=TODAY)
        assert summary.portfolio_cost_basis == Decimal("5000")
        assert summary.total_unrealized_pnl == Decimal("700")
        assert summary.total_realized_pnl == Decimal("400")
        assert summary.status_counts["Live"] == 3
        assert [p.id for p in summary.top_performers] == [3, 1, 2]


class TestFormatting:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (Decimal("1234.5"), "$1,234.50"),
            (Decimal("-3"), "-$3.00"),
            (0, "$0.00"),
            (Decimal("1000000"), "$1,000,000.00"),
            (Decimal("2.005"), "$2.01"),
            (Decimal("-0.001"), "$0.00"),
        ],
    )
    def test_currency(self, value, expected):
        assert format_currency(value) == expected

    def test_currency_whole_dollars(self):
        assert format_currency(Decimal("1234.5"), decimals=0) == "$1,235"

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(Decimal("12.5"), "+12.50%"), (Decimal("-3"), "-3.00%"), (0, "+0.00%"), (17.456, "+17.46%")],
    )
    def test_percentage(self, value, expected):
        assert format_percentage(value) == expected
