import pytest

from matching.models import CustomerRecord
from standardize.config import StandardizationSettings


@pytest.fixture
def settings() -> StandardizationSettings:
    return StandardizationSettings(
        service_url="https://standardize.test/api/gemini",
        api_key="test-key",
        max_retries=0,
        request_delay=0.5,
    )


@pytest.fixture
def acme_pair() -> list[CustomerRecord]:
    return [
        CustomerRecord(customer_name="Acme Inc", address1="123 Main St", city="Springfield",
                       source="Order File", row_index=0),
        CustomerRecord(customer_name="acme inc", address1="123 main st", city="springfield",
                       source="Commission File", row_index=1),
    ]
