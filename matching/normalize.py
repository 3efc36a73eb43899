# matching/normalize.py
import re
from enum import Enum

from matching.models import CustomerRecord

# --------- helpers ---------
_WS = re.compile(r"\s+")

def _norm_str(x) -> str:
    return str(x).strip() if isinstance(x, str) else ""

def normalize(s) -> str:
    """
    Comparison form of a name or address:
      '  ACME   Inc ' -> 'acme inc'
      None, 42 -> ''
    Idempotent: normalize(normalize(s)) == normalize(s).
    """
    return _WS.sub(" ", _norm_str(s).lower()).strip()

# --------- grouping keys ---------
class KeyStrategy(str, Enum):
    """
    LOOSE  -> name | combined address (customer extractor)
    STRICT -> name _ address1 _ city   (address extractor)
    """
    LOOSE = "loose"
    STRICT = "strict"

def loose_key(record: CustomerRecord) -> str:
    return f"{normalize(record.customer_name)}|{normalize(record.combined_address)}"

def strict_key(record: CustomerRecord) -> str:
    return f"{normalize(record.customer_name)}_{normalize(record.address1)}_{normalize(record.city)}"

def grouping_key(record: CustomerRecord, strategy: KeyStrategy = KeyStrategy.LOOSE) -> str:
    if KeyStrategy(strategy) is KeyStrategy.STRICT:
        return strict_key(record)
    return loose_key(record)
