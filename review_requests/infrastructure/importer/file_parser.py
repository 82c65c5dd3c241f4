"""
Customer File Parser - Universal CSV/Excel Import
==================================================

Parses an uploaded customer list (.csv, .tsv, .xlsx, .xls) from raw bytes and
auto-detects the name / email / phone columns.

Every decoded row is wrapped as a RawRow and immediately normalized into a
ParsedCustomer; rows without a valid email are dropped and repeated emails
keep their first occurrence.
"""

import io
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from ...domain.errors import EmptyFileError, FileParseError, UnsupportedFileTypeError
from ...domain.models import ParsedCustomer, RawRow, RowSource

logger = logging.getLogger(__name__)

# Accepted header aliases, tried in order
NAME_PATTERNS = ['name', 'customer_name', 'full_name', 'customer', 'client_name', 'client']
EMAIL_PATTERNS = ['email', 'customer_email', 'email_address', 'mail', 'e-mail', 'emailaddress']
PHONE_PATTERNS = ['phone', 'mobile', 'telephone', 'phone_number', 'phonenumber', 'cell', 'contact']

DEFAULT_CUSTOMER_NAME = "Customer"

EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
_SEPARATORS = re.compile(r'[_\s-]')

DELIMITED_EXTENSIONS = {'.csv': ',', '.tsv': '\t'}
SPREADSHEET_EXTENSIONS = {'.xlsx', '.xls'}

# Browsers on Windows label .csv uploads as application/vnd.ms-excel
DELIMITED_MIME_TYPES = {
    'text/csv': ',',
    'application/csv': ',',
    'application/vnd.ms-excel': ',',
    'text/tab-separated-values': '\t',
}


@dataclass
class ParseResult:
    """Outcome of parsing one uploaded file."""
    customers: List[ParsedCustomer]
    total_rows: int
    parse_errors: List[str] = field(default_factory=list)

    @property
    def valid_rows(self) -> int:
        return len(self.customers)


def is_valid_email(email: Optional[str]) -> bool:
    """Syntactic local@domain.tld check."""
    if not email or not isinstance(email, str):
        return False
    return bool(EMAIL_RE.match(email.strip()))


def find_field(cells: Dict[str, str], patterns: Sequence[str]) -> Optional[str]:
    """
    Case-insensitive field lookup over several accepted header names.

    For each pattern: direct key match first, then a match ignoring
    underscores, dashes and whitespace. First non-empty value wins.
    """
    for pattern in patterns:
        value = cells.get(pattern)
        if value:
            return value

        compact_pattern = _SEPARATORS.sub('', pattern.lower())
        for key, value in cells.items():
            if value and _SEPARATORS.sub('', key.lower()) == compact_pattern:
                return value

    return None


def normalize_rows(rows: Iterable[RawRow]) -> List[ParsedCustomer]:
    """Validate emails, dedupe by lowercased email and build ParsedCustomer rows."""
    customers = []
    seen_emails = set()

    for row in rows:
        email = find_field(row.cells, EMAIL_PATTERNS)
        if not is_valid_email(email):
            continue

        email = email.strip().lower()
        if email in seen_emails:
            continue
        seen_emails.add(email)

        name = (find_field(row.cells, NAME_PATTERNS) or '').strip()
        phone = (find_field(row.cells, PHONE_PATTERNS) or '').strip()

        customers.append(ParsedCustomer(
            name=name or DEFAULT_CUSTOMER_NAME,
            email=email,
            phone=phone or None,
            row_number=row.row_number,
        ))

    return customers


class CustomerFileParser:
    """
    Universal CSV/Excel parser with auto-detection of customer columns.

    Usage:
        parser = CustomerFileParser()
        result = parser.parse(content, "customers.xlsx")
        # result.customers -> [ParsedCustomer(name="John", email="john@x.com", ...), ...]
    """

    def detect_source(self, file_name: str, mime_type: Optional[str] = None) -> RowSource:
        """Pick the decoder from the extension, falling back to the mime hint."""
        ext = Path(file_name or '').suffix.lower()
        mime = (mime_type or '').split(';')[0].strip().lower()

        if ext in DELIMITED_EXTENSIONS:
            return RowSource.DELIMITED
        if ext in SPREADSHEET_EXTENSIONS:
            return RowSource.SPREADSHEET
        if mime in DELIMITED_MIME_TYPES:
            return RowSource.DELIMITED
        if 'spreadsheet' in mime or 'officedocument' in mime:
            return RowSource.SPREADSHEET

        raise UnsupportedFileTypeError(
            f"Unsupported file type: {ext or mime or 'unknown'}. Please upload CSV or Excel files."
        )

    def parse(self, content: bytes, file_name: str, mime_type: Optional[str] = None) -> ParseResult:
        """
        Parse an uploaded file and return its customers.

        Args:
            content: Raw file bytes
            file_name: Original file name (extension drives format detection)
            mime_type: Optional content type sent with the upload

        Returns:
            ParseResult with customers, total row count and malformed-line messages
        """
        source = self.detect_source(file_name, mime_type)
        errors: List[str] = []

        if source is RowSource.DELIMITED:
            df = self._read_delimited(content, self._separator(file_name, mime_type), errors)
        else:
            df = self._read_spreadsheet(content)

        rows = list(self._iter_rows(df, source))
        customers = normalize_rows(rows)

        logger.info(f"Parsed {len(customers)} customers from {len(rows)} rows of {file_name}")
        return ParseResult(customers=customers, total_rows=len(rows), parse_errors=errors)

    def _separator(self, file_name: str, mime_type: Optional[str]) -> str:
        ext = Path(file_name or '').suffix.lower()
        if ext in DELIMITED_EXTENSIONS:
            return DELIMITED_EXTENSIONS[ext]
        return DELIMITED_MIME_TYPES.get((mime_type or '').split(';')[0].strip().lower(), ',')

    def _read_delimited(self, content: bytes, sep: str, errors: List[str]) -> pd.DataFrame:
        """
        Read delimited text into a frame indexed by 1-based line number.

        The first non-blank line is the header. Rows wider than the header are
        kept, truncated to the header's columns, and reported in errors along
        with rows that are narrower.
        """
        try:
            text = content.decode('utf-8-sig')
        except UnicodeDecodeError as e:
            raise FileParseError(f"CSV parsing failed: file is not valid UTF-8 ({e.reason})") from e

        lines = text.splitlines()
        if not any(line.strip() for line in lines):
            return pd.DataFrame()

        # Wide enough for the longest line, so ragged rows are padded, never shifted
        width = max(line.count(sep) for line in lines) + 1

        def truncate_bad_line(fields: List[str]) -> List[str]:
            errors.append(f"Malformed record truncated: {sep.join(fields)[:100]}")
            return fields[:width]

        try:
            raw = pd.read_csv(
                io.StringIO(text),
                sep=sep,
                header=None,
                names=list(range(width)),
                index_col=False,
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=False,
                on_bad_lines=truncate_bad_line,
                engine='python',
            )
        except pd.errors.EmptyDataError:
            return pd.DataFrame()
        except pd.errors.ParserError as e:
            raise FileParseError(f"CSV parsing failed: {e}") from e

        raw.index = pd.RangeIndex(1, len(raw) + 1)
        return self._apply_header(raw, errors)

    def _apply_header(self, raw: pd.DataFrame, errors: List[str]) -> pd.DataFrame:
        records = list(zip(raw.index, raw.itertuples(index=False, name=None)))

        header_line, header = next(
            ((line, values) for line, values in records if not self._is_blank(values)),
            (None, None),
        )
        if header_line is None:
            return pd.DataFrame()

        columns = self._field_count(header)
        for line, values in records:
            if line <= header_line or self._is_blank(values):
                continue
            found = self._field_count(values)
            if found != columns:
                errors.append(f"Line {line}: expected {columns} fields, found {found}")

        body = raw.loc[header_line + 1:, list(range(columns))].copy()
        body.columns = [self._clean_cell(value) for value in header[:columns]]
        return body

    def _read_spreadsheet(self, content: bytes) -> pd.DataFrame:
        try:
            df = pd.read_excel(io.BytesIO(content), sheet_name=0, dtype=str, keep_default_na=False)
        except ImportError:
            raise
        except Exception as e:
            logger.error(f"Failed to read spreadsheet: {e}")
            raise FileParseError(f"Excel parsing failed: {e}") from e

        if df.empty:
            raise EmptyFileError("Excel file is empty or has no data rows")

        # Row 1 is the header
        df.index = pd.RangeIndex(2, len(df) + 2)
        return df

    def _iter_rows(self, df: pd.DataFrame, source: RowSource) -> Iterable[RawRow]:
        headers = [str(col).strip().lower() for col in df.columns]

        for row_number, values in zip(df.index, df.itertuples(index=False, name=None)):
            if self._is_blank(values):
                continue
            cells: Dict[str, str] = {}
            for header, value in zip(headers, values):
                cells.setdefault(header, self._clean_cell(value))
            yield RawRow(source=source, row_number=int(row_number), cells=cells)

    def _is_blank(self, values: Sequence) -> bool:
        return not any(self._clean_cell(value) for value in values)

    def _field_count(self, values: Sequence) -> int:
        """Fields actually present in a padded row (empty fields count, padding does not)."""
        count = 0
        for position, value in enumerate(values):
            if not self._is_missing(value):
                count = position + 1
        return count

    def _is_missing(self, value) -> bool:
        return value is None or (not isinstance(value, str) and pd.isna(value))

    def _clean_cell(self, value) -> str:
        if self._is_missing(value):
            return ''
        return str(value).strip()


def parse_customer_file(content: bytes, file_name: str, mime_type: Optional[str] = None) -> ParseResult:
    """Convenience function to parse an uploaded customer file."""
    return CustomerFileParser().parse(content, file_name, mime_type)


if __name__ == "__main__":
    import sys
    if len(sys.argv) > 1:
        path = Path(sys.argv[1])
        result = parse_customer_file(path.read_bytes(), path.name)
        print(f"Found {result.valid_rows} customers in {result.total_rows} rows:")
        for c in result.customers[:5]:
            print(f"  - row {c.row_number}: {c.name} <{c.email}> {c.phone or ''}")
