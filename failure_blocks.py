"""
Failure Block Extraction
========================
Turns an uploaded delimited log file into summarized failure blocks.

A failure block is a maximal run of consecutive rows whose status is
"failure", reduced to the date and time of its first row and the time of its
last row. Blocks can be exported back to CSV.

Pipeline:
- read_rows: tokenize the upload with pandas
- RowLayout: describe where date / time / status live in a row
- segment: single pass over the rows, folding an optional open block
- export_rows / to_csv: project blocks back into delimited text
"""

import csv
import io
import logging
from dataclasses import dataclass, field, replace
from datetime import date as date_type
from enum import Enum
from typing import Any, Iterable, Sequence

import pandas as pd

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
FAILURE_STATUS = "failure"
BLOCK_STATUS = "Failure Block"
UNCLOSED_BLOCK_STATUS = "Failure Block (No trailing OK)"

EXPORT_HEADER = ["Status", "date", "Start Time", "End Time"]
EXPORT_FILENAME = "logging_file.csv"

REQUIRED_COLUMNS = ("date", "time", "status")

# Fixed-position log format: time first, status fourth, date sixth
DEFAULT_TIME_INDEX = 0
DEFAULT_STATUS_INDEX = 3
DEFAULT_DATE_INDEX = 5

HEADER_MISSING_PLACEHOLDER = "-"

DELIMITERS = {
    "Comma (,)": ",",
    "Semicolon (;)": ";",
    "Tab": "\t",
    "Pipe (|)": "|",
    "Auto-detect": None,
}


@dataclass(frozen=True)
class AnalyzerConfig:
    """How an upload is tokenized and where its fields are found."""

    header_mode: bool = False
    time_index: int = DEFAULT_TIME_INDEX
    status_index: int = DEFAULT_STATUS_INDEX
    date_index: int = DEFAULT_DATE_INDEX
    delimiter: str | None = ","


# =========================================================================
# 1. DATA MODEL
# =========================================================================
@dataclass(frozen=True)
class FailureBlock:
    status: str
    date: str
    start_time: str
    end_time: str

    def as_row(self) -> list[str]:
        return [self.status, self.date, self.start_time, self.end_time]


@dataclass(frozen=True)
class OpenBlock:
    """A failure run that has started but not been closed yet."""

    start_time: str
    end_time: str
    date: str

    def close(self, status: str) -> FailureBlock:
        return FailureBlock(
            status=status,
            date=self.date,
            start_time=self.start_time,
            end_time=self.end_time,
        )


@dataclass(frozen=True)
class RowLayout:
    """
    Where date, time and status live in a row.

    Keys are positional indices for list rows or column names for mapping
    rows. A field is absent when the key is missing or the raw value is
    empty; absent time/status become "" and absent date becomes date_default.
    """

    time_index: int | str
    status_index: int | str
    date_index: int | str
    date_default: str = ""

    def extract(self, row: Sequence[Any] | dict) -> tuple[str, str, str]:
        """Return (date, time, status) with status trimmed and lower-cased."""
        raw_date = _field(row, self.date_index)
        raw_time = _field(row, self.time_index)
        raw_status = _field(row, self.status_index)

        date = raw_date.strip() if raw_date is not None else self.date_default
        time = raw_time.strip() if raw_time is not None else ""
        status = raw_status.strip().lower() if raw_status is not None else ""
        return date, time, status


def _field(row, key) -> str | None:
    try:
        value = row[key]
    except (IndexError, KeyError, TypeError):
        return None
    if value is None:
        return None
    value = str(value)
    return value if value else None


# =========================================================================
# 2. COLUMN RESOLUTION
# =========================================================================
def resolve_columns(headers: Iterable[Any]) -> dict[str, int | None]:
    """Map date/time/status to their header index (None when not found)."""
    resolution: dict[str, int | None] = {name: None for name in REQUIRED_COLUMNS}
    for idx, header in enumerate(headers):
        name = str(header if header is not None else "").strip().lower()
        if name in resolution and resolution[name] is None:
            resolution[name] = idx
    return resolution


def missing_columns(resolution: dict[str, int | None]) -> list[str]:
    return [name for name in REQUIRED_COLUMNS if resolution.get(name) is None]


def layout_from_header(headers: Iterable[Any]) -> RowLayout | None:
    """Build a layout from a header row, or None if a required column is missing."""
    resolution = resolve_columns(headers)
    if missing_columns(resolution):
        return None
    return RowLayout(
        time_index=resolution["time"],
        status_index=resolution["status"],
        date_index=resolution["date"],
        date_default=HEADER_MISSING_PLACEHOLDER,
    )


def default_date(today: date_type | None = None) -> str:
    """Today's date as DD-MM-YYYY."""
    today = today or date_type.today()
    return f"{today:%d-%m-%Y}"


def positional_layout(config: AnalyzerConfig, today: date_type | None = None) -> RowLayout:
    return RowLayout(
        time_index=config.time_index,
        status_index=config.status_index,
        date_index=config.date_index,
        date_default=default_date(today),
    )


# =========================================================================
# 3. BLOCK SEGMENTATION
# =========================================================================
def step(
    open_block: OpenBlock | None, date: str, time: str, status: str
) -> tuple[OpenBlock | None, FailureBlock | None]:
    """
    Advance the fold by one row.

    Returns the new open block (if any) and the block finalized by this row
    (if any). `status` must already be normalized.
    """
    if status == FAILURE_STATUS:
        if open_block is None:
            return OpenBlock(start_time=time, end_time=time, date=date), None
        return replace(open_block, end_time=time), None

    if open_block is not None:
        return None, open_block.close(BLOCK_STATUS)
    return None, None


def segment(rows: Iterable[Any], layout: RowLayout) -> list[FailureBlock]:
    """Collapse consecutive failure rows into failure blocks, in input order."""
    blocks: list[FailureBlock] = []
    open_block: OpenBlock | None = None

    for row in rows:
        date, time, status = layout.extract(row)
        open_block, finished = step(open_block, date, time, status)
        if finished is not None:
            blocks.append(finished)

    # Input ended mid-run: nothing closed the last block
    if open_block is not None:
        blocks.append(open_block.close(UNCLOSED_BLOCK_STATUS))
    return blocks


# =========================================================================
# 4. EXPORT
# =========================================================================
def export_rows(blocks: Iterable[FailureBlock]) -> list[list[str]]:
    """Header row followed by one row per block."""
    return [list(EXPORT_HEADER)] + [block.as_row() for block in blocks]


def blocks_to_frame(blocks: Iterable[FailureBlock]) -> pd.DataFrame:
    return pd.DataFrame([block.as_row() for block in blocks], columns=EXPORT_HEADER)


def to_csv(blocks: Iterable[FailureBlock]) -> str:
    csv_buf = io.StringIO()
    blocks_to_frame(blocks).to_csv(csv_buf, index=False, lineterminator="\n")
    return csv_buf.getvalue()


# =========================================================================
# 5. READING UPLOADS
# =========================================================================
class ReadError(Exception):
    """The upload could not be decoded or tokenized."""

    pass


def read_rows(data: bytes | str, delimiter: str | None = ",") -> list[list[str]]:
    """
    Tokenize delimited text into rows of strings.

    Empty lines are skipped; whitespace-only lines are kept as rows. Rows may
    have different lengths, and shorter rows are padded with "". A delimiter
    of None sniffs it from the first line.
    """
    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ReadError(f"File is not valid UTF-8 text ({e.reason})") from e

    lines = [line for line in data.splitlines() if line]
    if not lines:
        return []

    if delimiter is None:
        try:
            delimiter = csv.Sniffer().sniff(lines[0]).delimiter
        except csv.Error as e:
            raise ReadError(str(e)) from e

    # Upper bound on the widest row; quoted delimiters only lower the real count
    width = max(line.count(delimiter) for line in lines) + 1

    try:
        df = pd.read_csv(
            io.StringIO("\n".join(lines)),
            sep=delimiter,
            header=None,
            names=list(range(width)),
            index_col=False,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
        )
    except pd.errors.ParserError as e:
        raise ReadError(str(e)) from e

    # Padding is NaN while real empty fields are "", so all-NaN columns are surplus
    df = df.dropna(axis=1, how="all")
    return df.fillna("").values.tolist()


# =========================================================================
# 6. ANALYSIS
# =========================================================================
class Condition(str, Enum):
    MISSING_COLUMNS = "MISSING_COLUMNS"
    PARSE_ERROR = "PARSE_ERROR"
    NO_FAILURES_FOUND = "NO_FAILURES_FOUND"
    LIBRARY_UNAVAILABLE = "LIBRARY_UNAVAILABLE"


CONDITION_MESSAGES = {
    Condition.MISSING_COLUMNS: 'CSV must contain "Date", "Time", and "Status" columns in its header.',
    Condition.PARSE_ERROR: "Error parsing file: {detail}",
    Condition.NO_FAILURES_FOUND: "No failure blocks found in the uploaded file.",
    Condition.LIBRARY_UNAVAILABLE: "The CSV reader is not available. Please try uploading the file again in a moment.",
}


@dataclass(frozen=True)
class AnalysisResult:
    blocks: list[FailureBlock] = field(default_factory=list)
    condition: Condition | None = None
    message: str | None = None
    row_count: int = 0

    @property
    def ok(self) -> bool:
        return self.condition is None


def analyze(
    data: bytes | str,
    config: AnalyzerConfig | None = None,
    today: date_type | None = None,
) -> AnalysisResult:
    """Read an upload and extract its failure blocks, reporting why when none come out."""
    config = config or AnalyzerConfig()

    try:
        rows = read_rows(data, delimiter=config.delimiter)
    except ReadError as e:
        logger.error("Failed to parse upload: %s", e)
        return AnalysisResult(
            condition=Condition.PARSE_ERROR,
            message=CONDITION_MESSAGES[Condition.PARSE_ERROR].format(detail=e),
        )

    if config.header_mode:
        headers = rows[0] if rows else []
        resolution = resolve_columns(headers)
        missing = missing_columns(resolution)
        if missing:
            logger.warning("Header %r is missing columns: %s", headers, ", ".join(missing))
            return AnalysisResult(
                condition=Condition.MISSING_COLUMNS,
                message=(
                    f"{CONDITION_MESSAGES[Condition.MISSING_COLUMNS]} "
                    f"Missing: {', '.join(missing)}."
                ),
            )
        layout = layout_from_header(headers)
        data_rows = rows[1:]
    else:
        layout = positional_layout(config, today)
        data_rows = rows

    blocks = segment(data_rows, layout)
    logger.info("Processed %d rows into %d failure block(s)", len(data_rows), len(blocks))

    if not blocks:
        return AnalysisResult(
            condition=Condition.NO_FAILURES_FOUND,
            message=CONDITION_MESSAGES[Condition.NO_FAILURES_FOUND],
            row_count=len(data_rows),
        )
    return AnalysisResult(blocks=blocks, row_count=len(data_rows))
