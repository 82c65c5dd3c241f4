from .file_parser import (
    CustomerFileParser,
    ParseResult,
    find_field,
    is_valid_email,
    normalize_rows,
    parse_customer_file,
)
