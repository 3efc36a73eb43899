from matching.models import CustomerRecord
from merge.survivorship import address_score, mark_best, most_common_name, split_names_and_locations


def test_address_score_rules() -> None:
    full = CustomerRecord(customer_name="A", address1="1 Main", city="X", state="IL", zip="60601", source="orders.csv")
    assert address_score(full) == 9
    comma = CustomerRecord(customer_name="A", address1="1 Main, Suite 4", source="Commission File")
    assert address_score(comma) == 1
    assert address_score(CustomerRecord(customer_name="A", city="   ")) == 0


def test_mark_best_picks_first_on_ties() -> None:
    members = [
        CustomerRecord(customer_name="A", address1="1 Main", city="X"),
        CustomerRecord(customer_name="A", address1="1 Main", city="X"),
    ]
    assert mark_best(members) is members[0]
    assert [m.is_selectable_duplicate for m in members] == [True, False]


def test_most_common_name() -> None:
    members = [CustomerRecord(customer_name=n) for n in ["ACME", "Acme", "Acme"]]
    assert most_common_name(members) == "Acme"


def test_split_names_and_locations() -> None:
    records = [
        CustomerRecord(customer_name="Acme", address1="9 Z St", city="Y"),
        CustomerRecord(customer_name="Bolt", address1="1 B St"),
        CustomerRecord(customer_name="ACME ", address1="1 A St", city="X"),
    ]
    names, locations = split_names_and_locations(records)
    assert [(r.customer_name, r.address1) for r in names] == [("ACME ", "1 A St"), ("Bolt", "1 B St")]
    assert [(r.customer_name, r.address1) for r in locations] == [("Acme", "9 Z St")]
