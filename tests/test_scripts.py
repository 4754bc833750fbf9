import argparse

import pytest

from vitrina.query import encode_cache_key
from vitrina.scripts import cache_admin
from vitrina.scripts.query_listings import build_parser, parse_filter_args


def test_filter_args_group_repeated_names():
    filters = parse_filter_args(["state=CA", "price[gte]=100", "state=NY"])
    assert filters == {"state": ["CA", "NY"], "price[gte]": ["100"]}


def test_filter_args_keep_equals_in_value():
    assert parse_filter_args(["title=a=b"]) == {"title": ["a=b"]}


@pytest.mark.parametrize("pair", ["state", "=CA"])
def test_filter_args_reject_malformed(pair):
    with pytest.raises(argparse.ArgumentTypeError):
        parse_filter_args([pair])


def test_filter_args_match_query_string_key():
    filters = parse_filter_args(["state=CA", "state=NY"])
    assert encode_cache_key("u1", filters) == encode_cache_key("u1", {"state": ["NY", "CA"]})


def test_query_parser_requires_user():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_run_invalidate_sums_namespaces(monkeypatch, cache, fake_redis, settings):
    monkeypatch.setattr(cache_admin, "get_redis_cache", lambda: cache)
    monkeypatch.setattr(cache_admin, "get_settings", lambda: settings)
    for key in ("property:list:a", "property:list:b", "property:detail:c", "favorites:user:x"):
        fake_redis.set(key, b"[]", ex=600)

    deleted = cache_admin.run_invalidate(["property:list:", "property:detail:"])

    assert deleted == 3
    assert fake_redis.get("favorites:user:x") is not None
