"""Response normalization

Turns a RawResponse into either a decoded value or a typed failure:

- non-2xx: ApiError carrying the body text verbatim
- 2xx JSON endpoints: the decoded JSON value
- 2xx instrument endpoints: a list of flat string records built from the
  header-led CSV body, or the raw CSV text when table parsing is disabled
  (sandboxed runtime)
"""

import csv
import io
import json
from typing import Any

from loguru import logger

from .exceptions import ApiError, DecodeError
from .transport import RawResponse

Record = dict[str, str]


def parse_csv_records(text: str) -> list[Record]:
    """Zip each CSV row against the header row

    Every value stays a string. A row shorter than the header yields a
    record with fewer keys; fields beyond the header are dropped. Blank
    lines are skipped.

    Raises:
        DecodeError: If the text is not parseable CSV
    """
    reader = csv.reader(io.StringIO(text, newline=""), strict=True)
    try:
        header = next(reader, None)
        if header is None:
            return []

        records = []
        for row in reader:
            if not row:
                continue
            records.append(dict(zip(header, row)))
    except csv.Error as e:
        raise DecodeError(
            f"Malformed CSV at line {reader.line_num}: {e}"
        ) from e

    return records


class ResponseNormalizer:
    """Decodes raw responses according to endpoint mode"""

    def __init__(self, parse_tables: bool = True) -> None:
        """Initialize normalizer

        Args:
            parse_tables: When False, tabular endpoints return the CSV text
                unparsed
        """
        self._parse_tables = parse_tables

    @property
    def parse_tables(self) -> bool:
        return self._parse_tables

    @staticmethod
    def raise_for_status(raw: RawResponse) -> None:
        """Raise ApiError with the untouched body for non-2xx responses"""
        if not raw.is_success:
            logger.warning(f"API error {raw.status_code}")
            raise ApiError(raw.text, raw.status_code)

    def json(self, raw: RawResponse) -> Any:
        """Decode a JSON endpoint response

        Raises:
            ApiError: Non-2xx status
            DecodeError: Body is not valid JSON
        """
        self.raise_for_status(raw)
        try:
            return json.loads(raw.text)
        except json.JSONDecodeError as e:
            raise DecodeError(f"Serialization failed: {e}") from e

    def table(self, raw: RawResponse) -> list[Record] | str:
        """Decode a CSV endpoint response

        Raises:
            ApiError: Non-2xx status
            DecodeError: Body is not parseable CSV
        """
        self.raise_for_status(raw)
        if not self._parse_tables:
            return raw.text

        records = parse_csv_records(raw.text)
        logger.debug(f"Parsed {len(records)} instrument records")
        return records
