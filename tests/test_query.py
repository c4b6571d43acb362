from types import MappingProxyType

from tokenpulse.sources.query import (
    CRYPTO_CONTEXT_TERMS,
    build_search_query,
    normalize_ticker,
)


def test_normalize_ticker_strips_prefix_and_uppercases():
    assert normalize_ticker("  $sol ") == "SOL"
    assert normalize_ticker("#eth") == "ETH"
    assert normalize_ticker("$ btc") == "BTC"
    assert normalize_ticker("abcdefghijklmnop") == "ABCDEFGHIJKL"


def test_short_ticker_yields_empty_query():
    assert build_search_query("$") == ""
    assert build_search_query("x") == ""
    assert build_search_query("  #a ") == ""


def test_official_only_uses_curated_handle_for_sol():
    query = build_search_query("sol", official_only=True)

    assert query.startswith("from:solana ")
    assert '("$SOL" OR "SOL" OR #SOL OR "Solana")' in query
    assert "-is:retweet -is:reply" in query
    assert CRYPTO_CONTEXT_TERMS in query
    assert "lang:" not in query
    assert "is:verified" not in query


def test_default_query_has_no_author_restriction():
    query = build_search_query("$eth")

    assert query == (
        f'("$ETH" OR "ETH" OR #ETH OR "Ethereum") {CRYPTO_CONTEXT_TERMS} -is:retweet -is:reply'
    )


def test_unlisted_ticker_never_gets_project_name():
    query = build_search_query("pepe", crypto_context_only=False)

    assert query == '("$PEPE" OR "PEPE" OR #PEPE) -is:retweet -is:reply'


def test_official_only_without_known_handle_falls_back_to_verified():
    query = build_search_query("pepe", official_only=True, crypto_context_only=False)

    assert query == '("$PEPE" OR "PEPE" OR #PEPE) -is:retweet -is:reply is:verified'
    assert "from:" not in query


def test_explicit_handle_overrides_curated_table():
    query = build_search_query("sol", official_only=True, from_handle="@solanafndn")

    assert query.startswith("from:solanafndn ")
    assert "from:solana " not in query


def test_from_handle_ignored_without_official_only():
    query = build_search_query("sol", from_handle="someone")

    assert "from:" not in query


def test_language_filter_is_appended_last():
    query = build_search_query("btc", lang=" en ")

    assert query.endswith("-is:retweet -is:reply lang:en")


def test_custom_tables_are_respected():
    names = MappingProxyType({"ABC": "Abc Chain"})
    handles = MappingProxyType({"ABC": "abcchain"})

    query = build_search_query(
        "abc",
        official_only=True,
        crypto_context_only=False,
        project_names=names,
        official_handles=handles,
    )

    assert query == 'from:abcchain ("$ABC" OR "ABC" OR #ABC OR "Abc Chain") -is:retweet -is:reply'


def test_repeated_prefixes_are_all_stripped():
    assert normalize_ticker("$#sol") == "SOL"
    assert normalize_ticker("#$ $eth") == "ETH"
    assert build_search_query("$#sol", crypto_context_only=False) == (
        '("$SOL" OR "SOL" OR #SOL OR "Solana") -is:retweet -is:reply'
    )
