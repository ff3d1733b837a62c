import pytest

from restobill.app.domain import MatchKind, normalize


@pytest.mark.parametrize("raw", ["Table 5", "table 5 ", " TABLE 5", "Table%205"])
def test_spellings_of_same_table_share_predicate(raw):
    assert normalize(raw) == normalize("Table 5")
    assert normalize(raw).lock_key == "table 5"


@pytest.mark.parametrize("raw", [None, "", "   ", "null", "N/A", "undefined", "-"])
def test_missing_identifiers_select_missing_orders(raw):
    predicate = normalize(raw)
    assert predicate.kind is MatchKind.MISSING
    assert predicate.lock_key == "__missing__"
    assert predicate.matches(None)
    assert predicate.matches("")
    assert predicate.matches(" null ")
    assert not predicate.matches("5")


def test_sentinels_are_case_sensitive():
    assert normalize("NULL").kind is MatchKind.VALUE
    assert normalize("NULL", sentinels=["NULL"]).is_missing


def test_numeric_identifiers_match_by_value():
    predicate = normalize(5)
    assert predicate.matches("5")
    assert predicate.matches("05")
    assert predicate.matches(" 5.0 ")
    assert not predicate.matches("15")
    assert not predicate.matches(None)
    assert not predicate.matches("")


def test_text_identifiers_ignore_case_and_whitespace():
    predicate = normalize("Patio")
    assert predicate.matches("patio")
    assert predicate.matches(" PATIO ")
    assert not predicate.matches("Patio 2")


def test_value_predicate_never_matches_sentinel_rows():
    assert not normalize("7").matches("null")


def test_display_identifier_prefers_input_spelling():
    predicate = normalize(" Table 5 ")
    assert predicate.display_identifier(["table 5", "Table 5"]) == "Table 5"
    assert predicate.display_identifier(["table 5", "TABLE 5", "table 5"]) == "table 5"
    assert normalize(None).display_identifier([None, "null"]) is None


def test_normalize_never_raises_on_odd_input():
    for raw in [object(), 3.5, b"5", "%zz", "nan"]:
        normalize(raw)


@pytest.mark.parametrize("raw", ["5", "05", " 5.0 ", "5.00", "%205"])
def test_numeric_spellings_share_lock_key(raw):
    assert normalize(raw).lock_key == "#5"


def test_zero_spellings_share_lock_key():
    assert normalize("-0").lock_key == normalize("0.00").lock_key == "#0"
