"""CSV ingest and export for bank transaction files."""

from .bank_csv import DROPPED_STATES, ImportResult, import_transactions, parse_transactions
from .export import EXPORT_HEADER, export_csv, export_filename
from .lenient import ParseDiagnostic, parse_amount
from .utils import load_csv_text, write_csv_text

__all__ = [
    "DROPPED_STATES",
    "ImportResult",
    "import_transactions",
    "parse_transactions",
    "EXPORT_HEADER",
    "export_csv",
    "export_filename",
    "ParseDiagnostic",
    "parse_amount",
    "load_csv_text",
    "write_csv_text",
]
