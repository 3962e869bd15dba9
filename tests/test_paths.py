from __future__ import annotations

import pytest

from umamibigquery import ValidationError
from umamibigquery.core.paths import (
    contains_like_pattern,
    like_pattern,
    matches_pattern,
    normalize_path,
    normalize_url_sql,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("", "/"),
        ("/", "/"),
        ("///", "/"),
        ("/a//b/", "/a/b"),
        ("/a?x=1#y", "/a"),
        ("/a#frag?not-a-query", "/a"),
        ("/skjema/steg-1/?ref=mail", "/skjema/steg-1"),
        (None, "/"),
    ],
)
def test_normalize_path(raw, expected) -> None:
    assert normalize_path(raw) == expected


@pytest.mark.parametrize("raw", ["", "/", "/a//b/", "/a?x=1#y", "//x//y//?q", "relative/path/"])
def test_normalize_path_is_idempotent(raw: str) -> None:
    once = normalize_path(raw)
    assert normalize_path(once) == once
    assert once


def test_matches_pattern_literal_and_wildcard() -> None:
    assert matches_pattern("/a", "/a")
    assert not matches_pattern("/a/b", "/a")
    assert matches_pattern("/products/42", "/products/*")
    assert matches_pattern("/products/", "/products/*")
    assert not matches_pattern("/product", "/products/*")
    assert matches_pattern("/x/checkout/done", "/x/*/done")
    assert not matches_pattern("/x/checkout/don", "/x/*/done")
    assert not matches_pattern("/ab", "/ab*b")


def test_like_pattern_escapes_sql_wildcards() -> None:
    assert like_pattern("/products/*") == "/products/%"
    assert like_pattern("/100%_off/*") == "/100\\%\\_off/%"
    assert contains_like_pattern("a_b") == "%a\\_b%"


def test_like_pattern_allows_a_single_wildcard() -> None:
    assert like_pattern("/x/*/done") == "/x/%/done"
    with pytest.raises(ValidationError, match="at most one"):
        like_pattern("*/checkout/*")


def test_normalize_url_sql_mentions_column() -> None:
    sql = normalize_url_sql("page")
    assert sql.startswith("CASE WHEN RTRIM(REGEXP_REPLACE(REGEXP_REPLACE(page,")
    assert sql.endswith("END")
