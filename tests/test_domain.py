# tests/test_domain.py
import pytest

from conftest import make_coin
from studiq.domain.market import MarketFilters, MarketOrder, filter_coins


def test_filters_defaults():
    filters = MarketFilters()
    assert filters.search == ""
    assert filters.category == ""
    assert filters.order is MarketOrder.MARKET_CAP_DESC
    assert filters.page == 1
    assert filters.per_page == 25


def test_order_accepts_plain_strings():
    assert MarketFilters(order="volume_desc").order is MarketOrder.VOLUME_DESC


@pytest.mark.parametrize(
    "kwargs",
    [
        {"order": "price_desc"},
        {"page": 0},
        {"per_page": 0},
        {"per_page": 101},
    ],
)
def test_invalid_filters_are_rejected(kwargs):
    with pytest.raises(ValueError):
        MarketFilters(**kwargs)


def test_cache_key_ignores_search():
    a = MarketFilters(search="bit", category="defi", order="id_asc", page=2, per_page=50)
    b = MarketFilters(search="eth", category="defi", order="id_asc", page=2, per_page=50)
    assert a.cache_key() == b.cache_key() == "market-id_asc-defi-2-50"


def test_query_params_omit_empty_category():
    assert MarketFilters().to_query_params() == {"page": "1", "per_page": "25", "order": "market_cap_desc"}
    assert MarketFilters(category="layer-1").to_query_params()["category"] == "layer-1"


@pytest.mark.parametrize(
    "changes",
    [
        {"order": "volume_desc"},
        {"category": "defi"},
        {"per_page": 50},
    ],
)
def test_merge_resets_page_when_page_set_changes(changes):
    filters = MarketFilters(page=3)
    assert filters.merge(**changes).page == 1


def test_merge_keeps_page_for_search_change():
    filters = MarketFilters(page=3)
    merged = filters.merge(search="sol")
    assert merged.page == 3
    assert merged.search == "sol"
    assert filters.search == ""


def test_merge_rejects_unknown_fields():
    with pytest.raises(TypeError):
        MarketFilters().merge(currency="eur")


def test_filter_coins_matches_name_or_symbol_case_insensitively():
    coins = [
        make_coin("bitcoin", name="Bitcoin", symbol="BTC"),
        make_coin("ethereum", name="Ethereum", symbol="ETH"),
        make_coin("wrapped-bitcoin", name="Wrapped Bitcoin", symbol="WBTC"),
    ]
    assert [c.id for c in filter_coins(coins, "btc")] == ["bitcoin", "wrapped-bitcoin"]
    assert [c.id for c in filter_coins(coins, "ETHER")] == ["ethereum"]
    assert filter_coins(coins, "  ") == coins
