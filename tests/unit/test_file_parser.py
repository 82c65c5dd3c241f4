"""Tests for the customer file parser."""
import io

import pandas as pd
import pytest

from review_requests.domain.errors import EmptyFileError, FileParseError, UnsupportedFileTypeError
from review_requests.domain.models import RawRow, RowSource
from review_requests.infrastructure.importer import (
    CustomerFileParser,
    find_field,
    is_valid_email,
    normalize_rows,
    parse_customer_file,
)
from tests.helpers import make_csv


def make_xlsx(frame: pd.DataFrame) -> bytes:
    buffer = io.BytesIO()
    frame.to_excel(buffer, index=False, engine="openpyxl")
    return buffer.getvalue()


class TestEmailValidation:
    """Tests for the local@domain.tld check."""

    @pytest.mark.parametrize("email", ["jane@example.com", "a.b+tag@mail.example.co.uk", " padded@example.com "])
    def test_valid(self, email):
        assert is_valid_email(email) is True

    @pytest.mark.parametrize("email", ["", None, "no-at-sign.com", "jane@localhost", "ja ne@example.com", "@example.com"])
    def test_invalid(self, email):
        assert is_valid_email(email) is False


class TestFindField:
    """Tests for header alias lookup."""

    def test_direct_match(self):
        assert find_field({"email": "a@x.com"}, ["email"]) == "a@x.com"

    def test_match_ignoring_separators(self):
        cells = {"email address": "a@x.com"}
        assert find_field(cells, ["email", "email_address"]) == "a@x.com"

    def test_first_pattern_wins(self):
        cells = {"client": "Client Name", "name": "Real Name"}
        assert find_field(cells, ["name", "client"]) == "Real Name"

    def test_empty_values_are_skipped(self):
        cells = {"name": "", "client": "Fallback"}
        assert find_field(cells, ["name", "client"]) == "Fallback"

    def test_missing(self):
        assert find_field({"foo": "bar"}, ["email"]) is None


class TestNormalizeRows:
    """Tests for row validation and deduplication."""

    def _row(self, number, **cells):
        return RawRow(source=RowSource.DELIMITED, row_number=number, cells=cells)

    def test_drops_invalid_and_duplicate_emails(self):
        rows = [
            self._row(2, name="Jane", email="Jane@Example.com"),
            self._row(3, name="Bad", email="not-an-email"),
            self._row(4, name="Jane Again", email="jane@example.com"),
            self._row(5, name="Bob", email="bob@example.com"),
        ]

        customers = normalize_rows(rows)

        assert [c.email for c in customers] == ["jane@example.com", "bob@example.com"]
        assert customers[0].name == "Jane"
        assert customers[0].row_number == 2

    def test_defaults(self):
        customers = normalize_rows([self._row(2, email="anon@example.com")])

        assert customers[0].name == "Customer"
        assert customers[0].phone is None


class TestDelimitedFiles:
    """Tests for CSV / TSV parsing."""

    def test_parses_aliased_headers(self):
        content = make_csv(
            [("Jane Doe", "JANE@example.com", "555-0100"), ("Bob", "bob@example.com", "")],
            header=("Customer Name", "E-mail", "Phone Number"),
        )

        result = parse_customer_file(content, "customers.csv")

        assert result.total_rows == 2
        assert result.valid_rows == 2
        jane, bob = result.customers
        assert (jane.name, jane.email, jane.phone, jane.row_number) == ("Jane Doe", "jane@example.com", "555-0100", 2)
        assert bob.phone is None
        assert bob.row_number == 3

    def test_total_rows_counts_rejected_rows(self):
        content = make_csv([
            ("A", "a@example.com", ""),
            ("B", "broken", ""),
            ("A2", "A@EXAMPLE.COM", ""),
        ])

        result = parse_customer_file(content, "customers.csv")

        assert result.total_rows == 3
        assert result.valid_rows == 1

    def test_tolerates_utf8_bom(self):
        content = "\ufeffName,Email\nJane,jane@example.com\n".encode("utf-8")

        result = parse_customer_file(content, "customers.csv")

        assert result.customers[0].name == "Jane"

    def test_tsv(self):
        content = b"Name\tEmail\nJane\tjane@example.com\n"

        result = parse_customer_file(content, "customers.tsv")

        assert result.customers[0].email == "jane@example.com"

    def test_wide_row_is_kept_and_reported(self):
        content = b"Name,Email\nJane,jane@example.com\nBob,bob@example.com,extra,more\nAnn,ann@example.com\n"

        result = parse_customer_file(content, "customers.csv")

        assert [c.email for c in result.customers] == ["jane@example.com", "bob@example.com", "ann@example.com"]
        assert result.customers[1].name == "Bob"
        assert result.parse_errors == ["Line 3: expected 2 fields, found 4"]

    def test_trailing_separator_keeps_the_customer(self):
        content = b"Name,Email\nJane,jane@example.com\nBob,bob@example.com,\n"

        result = parse_customer_file(content, "customers.csv")

        assert [c.email for c in result.customers] == ["jane@example.com", "bob@example.com"]
        assert result.parse_errors == ["Line 3: expected 2 fields, found 3"]

    def test_row_numbers_follow_source_lines(self):
        content = b"Name,Email\nJane,jane@example.com\n\nBob,bob@example.com,x\nAnn,ann@example.com\n"

        result = parse_customer_file(content, "customers.csv")

        assert [c.row_number for c in result.customers] == [2, 4, 5]
        assert result.total_rows == 3

    def test_leading_blank_lines_before_header(self):
        content = b"\n\nName,Email\nJane,jane@example.com\n"

        result = parse_customer_file(content, "customers.csv")

        assert result.customers[0].email == "jane@example.com"
        assert result.customers[0].row_number == 4

    def test_invalid_encoding(self):
        with pytest.raises(FileParseError):
            parse_customer_file(b"Name,Email\n\xff\xfe\xfa,bad@example.com\n", "customers.csv")

    def test_empty_file_has_no_customers(self):
        result = parse_customer_file(b"", "customers.csv")

        assert result.total_rows == 0
        assert result.customers == []


class TestSpreadsheetFiles:
    """Tests for Excel parsing."""

    def test_parses_first_sheet(self):
        frame = pd.DataFrame({
            "Full Name": ["Jane Doe", "Bob"],
            "Email Address": ["jane@example.com", "bob@example.com"],
            "Mobile": ["555-0100", "555-0101"],
        })

        result = parse_customer_file(make_xlsx(frame), "customers.xlsx")

        assert result.total_rows == 2
        assert [c.name for c in result.customers] == ["Jane Doe", "Bob"]
        assert result.customers[1].phone == "555-0101"
        assert result.customers[1].row_number == 3

    def test_header_only_sheet_is_empty(self):
        frame = pd.DataFrame(columns=["Name", "Email"])

        with pytest.raises(EmptyFileError):
            parse_customer_file(make_xlsx(frame), "customers.xlsx")

    def test_corrupt_workbook(self):
        with pytest.raises(FileParseError):
            parse_customer_file(b"definitely not a workbook", "customers.xlsx")


class TestSourceDetection:
    """Tests for extension / mime routing."""

    def test_extension_takes_precedence_over_mime(self):
        parser = CustomerFileParser()

        assert parser.detect_source("list.xls", "application/vnd.ms-excel") is RowSource.SPREADSHEET
        assert parser.detect_source("list.csv", "application/vnd.ms-excel") is RowSource.DELIMITED

    def test_mime_fallback(self):
        parser = CustomerFileParser()

        assert parser.detect_source("upload", "text/csv; charset=utf-8") is RowSource.DELIMITED
        assert parser.detect_source(
            "upload", "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        ) is RowSource.SPREADSHEET

    def test_unsupported(self):
        with pytest.raises(UnsupportedFileTypeError):
            parse_customer_file(b"%PDF-1.4", "customers.pdf", "application/pdf")
