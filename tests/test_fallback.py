import pytest

from standardize.fallback import fallback_comparison, fallback_name_result, parse_address, title_case_name


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("ACME WIDGETS INC", "Acme Widgets Inc."),
        ("  bolt   llc ", "Bolt LLC"),
        ("zenith corp", "Zenith Corp."),
        ("smith and co", "Smith And Co."),
        ("Acme Inc.", "Acme Inc."),
        ("", ""),
    ],
)
def test_title_case_name(raw: str, expected: str) -> None:
    assert title_case_name(raw) == expected


def test_parse_address_components() -> None:
    parsed = parse_address("123 Main St Suite 400, Springfield, IL, 62701-1234")
    assert parsed["address1"] == "123 Main St Suite 400"
    assert parsed["address2"] == "Suite 400"
    assert parsed["city"] == "Springfield"
    assert parsed["state"] == "IL"
    assert parsed["zipCode"] == "62701-1234"
    assert parsed["confidence"] == 0.6


def test_parse_address_short_input() -> None:
    parsed = parse_address("9 Oak Ave, Dayton oh 45402")
    assert parsed["city"] == ""
    assert parsed["state"] == "OH"
    assert parsed["zipCode"] == "45402"
    assert parsed["address2"] is None


def test_parse_address_empty() -> None:
    parsed = parse_address("")
    assert parsed["confidence"] == 0.1
    assert parsed["issues"] == ["Invalid address input"]


def test_fallback_results_carry_the_error() -> None:
    assert fallback_name_result("acme inc", "timeout")["error"] == "timeout"
    assert "error" not in fallback_name_result("acme inc")


def test_fallback_comparison() -> None:
    result = fallback_comparison("Acme Inc", "Acme Inc.")
    assert result["isDuplicate"] is True
    assert result["suggestedCanonicalName"] == "Acme Inc."
