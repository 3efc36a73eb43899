from io_utils.writers import link_report_frame
from matching.link import CUSTOMER_FIELDS, field_value, link_orders, resolve_conflict, score_pair
from matching.models import UploadedTable


def _orders() -> UploadedTable:
    rows = [
        {"Customer": "Acme Widgets Inc", "Order ID": "ORD-1"},
        {"Customer": "Bolt Co", "Order ID": "ORD-2"},
        {"Customer": "Zenith LLC", "Order ID": "ORD-9"},
        {"Customer": "Nomatch Corp", "Order ID": "X"},
    ]
    return UploadedTable(name="Order File", headers=["Customer", "Order ID"], rows=rows)


def _commissions() -> UploadedTable:
    rows = [
        {"Customer": "ACME WIDGETS INC", "Order ID": "ord-1"},
        {"Customer": "Bolt Co", "Order ID": "B-77"},
        {"Customer": "Bolt Co", "Order ID": "B-78"},
        {"Customer": "Zenith LLC", "Order ID": "ORD-9"},
    ]
    return UploadedTable(name="Commission File", headers=["Customer", "Order ID"], rows=rows)


def test_field_value_header_synonyms() -> None:
    assert field_value({"Customer": "Acme"}, CUSTOMER_FIELDS) == "Acme"
    assert field_value({"CUSTOMER": "Acme"}, CUSTOMER_FIELDS) == "Acme"
    assert field_value({"Billing Customer": "Bolt"}, CUSTOMER_FIELDS) == "Bolt"
    assert field_value({"Customer": "  ", "Company": "Zenith"}, CUSTOMER_FIELDS) == "Zenith"
    assert field_value({"Product": "Fiber"}, CUSTOMER_FIELDS) == ""


def test_score_pair() -> None:
    assert score_pair({"Customer": "Acme Inc", "Order ID": "A1"}, {"Customer": "acme inc", "Order ID": "a1"}) == (
        100, ["Customer match (100%)", "ID exact match"],
    )
    assert score_pair({"Customer": "Acme Widgets Inc"}, {"Customer": "Acme Widgets Inc."}) == (
        47, ["Customer match (94%)"],
    )
    assert score_pair({"Customer": "Acme"}, {"Customer": "Zenith"}) == (0, [])


def test_link_orders_buckets_and_statistics() -> None:
    result = link_orders(_orders(), _commissions())

    assert [(m.order_index, m.commission_index, m.confidence) for m in result.matches] == [(0, 0, 100), (2, 3, 100)]
    assert result.matches[0].method == "Customer match (100%), ID exact match"

    assert len(result.conflicts) == 1
    conflict = result.conflicts[0]
    assert conflict.order_index == 1
    assert [(c.commission_index, c.score) for c in conflict.candidates] == [(1, 50), (2, 50)]
    assert conflict.issue == "multiple_similar_matches"

    assert result.unmatched == [_orders().rows[3]]
    assert result.statistics == {
        "totalRecords": 4, "matches": 2, "needsReview": 1, "unmatched": 1,
        "matchRate": 50, "reviewRate": 25, "unmatchedRate": 25,
    }


def test_strong_candidate_wins_over_weaker_ones() -> None:
    orders = UploadedTable("orders", ["Customer", "Order ID"], [{"Customer": "Acme", "Order ID": "ORD-1"}])
    commissions = UploadedTable("commissions", ["Customer", "Order ID"], [
        {"Customer": "Acme", "Order ID": "ORD-2"},
        {"Customer": "Acme", "Order ID": "ORD-1"},
    ])
    result = link_orders(orders, commissions)
    assert [(m.commission_index, m.confidence) for m in result.matches] == [(1, 100)]
    assert not result.conflicts


def test_linked_commission_is_not_reused() -> None:
    row = {"Customer": "Acme", "Order ID": "ORD-1"}
    orders = UploadedTable("orders", ["Customer", "Order ID"], [dict(row), dict(row)])
    commissions = UploadedTable("commissions", ["Customer", "Order ID"], [dict(row)])
    result = link_orders(orders, commissions)
    assert [m.order_index for m in result.matches] == [0]
    assert result.unmatched == [row]


def test_empty_orders() -> None:
    result = link_orders(UploadedTable("orders", [], []), _commissions())
    assert result.statistics["matchRate"] == 0
    assert result.statistics["totalRecords"] == 0


def test_resolve_conflict() -> None:
    result = link_orders(_orders(), _commissions())
    link = resolve_conflict(result, result.conflicts[0], 1)
    assert (link.order_index, link.commission_index) == (1, 2)
    assert not result.conflicts
    assert result.statistics["matches"] == 3

    result = link_orders(_orders(), _commissions())
    assert resolve_conflict(result, result.conflicts[0], None) is None
    assert result.statistics["unmatched"] == 2


def test_link_report_frame() -> None:
    frame = link_report_frame(link_orders(_orders(), _commissions()))
    assert list(frame["Status"]) == ["matched", "review", "review", "matched", "unmatched"]
    assert list(frame["Order Row"]) == [0, 1, 1, 2, 3]
