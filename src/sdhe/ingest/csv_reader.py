"""Read uploaded CSV files into row dictionaries.

The format is deliberately simple: the first line holds comma-separated
headers and each following line is split on commas and mapped to the
headers by position. Quoting and escaping are not supported.
"""

from typing import Dict, List

from sdhe.exceptions import CSVReadError
from sdhe.logging_config import create_logger

logger = create_logger(__name__)

Row = Dict[str, str]


def parse_csv_text(text: str) -> List[Row]:
    """Split CSV text into rows keyed by header.

    Values are trimmed, blank lines are skipped and missing trailing cells
    become empty strings.

    :param text: Raw file contents
    :return: One mapping per data line
    """
    lines = text.splitlines()
    if not lines:
        return []

    headers = [header.strip() for header in lines[0].lstrip("\ufeff").split(",")]

    rows: List[Row] = []
    for line in lines[1:]:
        if not line.strip():
            continue
        values = line.split(",")
        rows.append(
            {
                header: values[index].strip() if index < len(values) else ""
                for index, header in enumerate(headers)
            }
        )

    logger.debug(f"Parsed {len(rows)} rows with {len(headers)} columns")
    return rows


def read_csv_file(file_path: str, encoding: str = "utf-8") -> List[Row]:
    """Read a CSV file from disk and parse it.

    :param file_path: Path to the CSV file
    :param encoding: Text encoding of the file
    :raises CSVReadError: If the file cannot be read as text
    """
    try:
        with open(file_path, "r", encoding=encoding) as handle:
            text = handle.read()
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"Unable to read CSV file {file_path}: {e}")
        raise CSVReadError(f"Unable to read CSV file {file_path}: {e}") from e

    rows = parse_csv_text(text)
    logger.info(f"Read {len(rows)} rows from {file_path}")
    return rows
