import hashlib
import re

import pytest

from vitrina.query import (
    DETAIL_NAMESPACE,
    LIST_NAMESPACE,
    detail_key,
    encode_cache_key,
    favorites_key,
    recommendations_key,
)
from vitrina.query.cache_keys import canonical_filter_string

KEY_RE = re.compile(r"^property:list:[0-9a-f]{64}$")


def test_key_shape():
    key = encode_cache_key("alice", {"state": "CA"})
    assert KEY_RE.match(key)


def test_canonical_form_sorts_names_and_values():
    raw = {"state": ["NY", "CA"], "price[gte]": "100"}
    assert canonical_filter_string("alice", raw) == (
        "alice:price%5Bgte%5D=100&state=CA&state=NY"
    )


def test_digest_is_sha256_of_canonical_form():
    raw = {"city": "Austin"}
    expected = hashlib.sha256(b"alice:city=Austin").hexdigest()
    assert encode_cache_key("alice", raw) == LIST_NAMESPACE + expected


def test_parameter_order_does_not_matter():
    first = {"state": "CA", "price[gte]": "100000", "tags": "pool"}
    second = {"tags": "pool", "price[gte]": "100000", "state": "CA"}
    assert encode_cache_key("alice", first) == encode_cache_key("alice", second)


def test_value_order_does_not_matter():
    first = {"state": ["CA", "NY", "TX"]}
    second = {"state": ["TX", "CA", "NY"]}
    assert encode_cache_key("alice", first) == encode_cache_key("alice", second)


def test_single_string_equals_single_element_list():
    assert encode_cache_key("alice", {"city": "LA"}) == encode_cache_key(
        "alice", {"city": ["LA"]}
    )


@pytest.mark.parametrize(
    "first,second",
    [
        ({"state": "CA"}, {"state": "NY"}),
        ({"state": "CA"}, {"city": "CA"}),
        ({"state": ["CA"]}, {"state": ["CA", "CA"]}),
        ({"price[gte]": "100"}, {"price[lte]": "100"}),
        ({"a": "1&b=2"}, {"a": "1", "b": "2"}),
        ({"state": "CA"}, {}),
    ],
)
def test_different_filters_produce_different_keys(first, second):
    assert encode_cache_key("alice", first) != encode_cache_key("alice", second)


def test_identity_is_part_of_the_key():
    raw = {"state": "CA"}
    assert encode_cache_key("alice", raw) != encode_cache_key("bob", raw)


def test_identity_separator_cannot_collide():
    assert encode_cache_key("a:b", {}) != encode_cache_key("a", {"b": ""})


def test_empty_filters_still_produce_a_key():
    assert KEY_RE.match(encode_cache_key("alice", {}))


def test_relationship_keys_are_stable():
    assert favorites_key("alice") == "favorites:user:alice"
    assert recommendations_key("alice") == "recommendations:user:alice"


def test_detail_key_lives_in_its_own_namespace():
    key = detail_key("alice", "l1")
    assert key.startswith(DETAIL_NAMESPACE)
    assert key != detail_key("bob", "l1")
    assert key != detail_key("alice", "l2")
