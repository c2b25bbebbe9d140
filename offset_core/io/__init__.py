from offset_core.io.ledger import load_catalog, load_ledger  # noqa: F401
from offset_core.io.config import load_settings  # noqa: F401

__all__ = ["load_catalog", "load_ledger", "load_settings"]
