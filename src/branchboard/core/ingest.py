"""CSV/XLSX ingestion into a :class:`TableSet`.

Cells are read as text, the way a spreadsheet export presents them; the
engine coerces on demand. Every file either contributes at least one
non-empty table or the whole request fails.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Union
import io
import zipfile
import logging
import re

import pandas as pd

from .nodes.base import Row
from .nodes.pipeline import TableSet

logger = logging.getLogger(__name__)

CSV_EXTENSIONS = (".csv",)
EXCEL_EXTENSIONS = (".xlsx", ".xls")
_EXTENSION_RE = re.compile(r"\.(csv|xlsx|xls)$", re.IGNORECASE)


class IngestError(Exception):
    """A file could not be turned into tables."""


class UnsupportedFormatError(IngestError):
    """The file is neither CSV nor Excel."""


class EmptyDataError(IngestError):
    """The file parsed but produced no rows."""


@dataclass
class IngestFile:
    """An uploaded file: its display name and raw bytes."""
    name: str
    content: bytes

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "IngestFile":
        path = Path(path)
        return cls(name=path.name, content=path.read_bytes())

    @property
    def base_name(self) -> str:
        return _EXTENSION_RE.sub("", self.name) or "data"

    @property
    def extension(self) -> str:
        return Path(self.name).suffix.lower()


def _frame_to_rows(df: pd.DataFrame) -> List[Row]:
    """Records of a text frame, minus unnamed columns and all-blank rows."""
    df = df.rename(columns=lambda c: str(c).strip())
    keep = [c for c in df.columns if c and not c.startswith("Unnamed:")]
    df = df[keep].fillna("")
    if df.empty:
        return []
    blank = df.apply(lambda col: col.astype(str).str.strip() == "").all(axis=1)
    return df[~blank].to_dict(orient="records")


def parse_csv(content: Union[bytes, str]) -> List[Row]:
    """Parse CSV text into rows keyed by the (trimmed) header row."""
    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise IngestError(f"Could not decode CSV as UTF-8: {e}") from e
    content = content.lstrip("\ufeff")
    if not content.strip():
        return []
    try:
        df = pd.read_csv(io.StringIO(content), dtype=str, keep_default_na=False,
                         skip_blank_lines=True)
    except pd.errors.EmptyDataError:
        return []
    except (pd.errors.ParserError, ValueError) as e:
        raise IngestError(f"Could not parse CSV: {e}") from e
    return _frame_to_rows(df)


def parse_excel(content: bytes) -> Dict[str, List[Row]]:
    """Parse every sheet of a workbook into ``{sheet name: rows}``."""
    try:
        sheets = pd.read_excel(io.BytesIO(content), sheet_name=None, dtype=str,
                               keep_default_na=False)
    except ImportError as e:
        raise IngestError(f"Excel support is not installed: {e}") from e
    except (ValueError, OSError, KeyError, zipfile.BadZipFile) as e:
        raise IngestError(f"Could not parse workbook: {e}") from e
    return {str(name): _frame_to_rows(df) for name, df in sheets.items()}


def _unique_name(base: str, taken: Dict[str, List[Row]]) -> str:
    name = base or "data"
    suffix = 2
    while name in taken:
        name = f"{base} ({suffix})"
        suffix += 1
    return name


def build_table_set(files: Iterable[IngestFile]) -> TableSet:
    """Parse uploaded files into one table set.

    CSV files become one table named after the file; workbooks contribute
    one ``file:sheet`` table per non-empty sheet. Duplicate names get a
    ``(2)``, ``(3)``... suffix.

    Raises:
        UnsupportedFormatError: a file is not CSV/XLSX.
        EmptyDataError: a file (or the whole request) yields no rows.
        IngestError: a file fails to parse.
    """
    tables: Dict[str, List[Row]] = {}
    order: List[str] = []

    def add_table(name: str, rows: List[Row]) -> None:
        final = _unique_name(name, tables)
        tables[final] = rows
        order.append(final)

    for upload in files:
        if upload.extension in CSV_EXTENSIONS:
            rows = parse_csv(upload.content)
            if not rows:
                raise EmptyDataError(f"No rows found in {upload.name}.")
            add_table(upload.base_name, rows)
        elif upload.extension in EXCEL_EXTENSIONS:
            sheets = parse_excel(upload.content)
            if not any(sheets.values()):
                raise EmptyDataError(f"No rows found in {upload.name}.")
            for sheet_name, rows in sheets.items():
                if rows:
                    add_table(f"{upload.base_name}:{sheet_name}", rows)
        else:
            raise UnsupportedFormatError("Unsupported file type. Please upload CSV or XLSX.")
        logger.info(f"Ingested {upload.name}")

    if not order:
        raise EmptyDataError("No rows found in the uploaded files.")
    return TableSet(tables=tables, order=order)
