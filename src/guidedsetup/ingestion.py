"""Upload hand-off preparation.

The wizard never validates rows itself; the import endpoints do. This module
only checks that an upload is something the endpoints accept and converts
spreadsheets to the CSV body they expect.
"""
from __future__ import annotations

import csv
import io
import zipfile
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

ACCEPTED_EXTENSIONS = (".csv", ".xlsx")
DEFAULT_MAX_UPLOAD_MB = 10


class UploadRejected(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class UploadedFile:
    name: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        return Path(self.name).suffix.lower()

    @classmethod
    def from_path(cls, path: Path | str) -> "UploadedFile":
        path = Path(path)
        return cls(name=path.name, content=path.read_bytes())


def precheck_upload(upload: UploadedFile, max_upload_mb: int = DEFAULT_MAX_UPLOAD_MB) -> None:
    if upload.extension not in ACCEPTED_EXTENSIONS:
        raise UploadRejected(
            f"'{upload.name}' is not a supported file type. Please upload a CSV or Excel (.xlsx) file."
        )
    if upload.size == 0:
        raise UploadRejected(f"'{upload.name}' is empty.")
    if upload.size > max_upload_mb * 1024 * 1024:
        raise UploadRejected(f"'{upload.name}' is larger than {max_upload_mb}MB.")


def _cell_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.time() == datetime.min.time():
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def workbook_to_csv(content: bytes) -> bytes:
    """Converts the first worksheet of an .xlsx payload to UTF-8 CSV bytes."""
    try:
        wb = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as exc:
        raise UploadRejected(f"Could not read spreadsheet: {exc}") from exc

    try:
        ws = wb.worksheets[0]
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        written = 0
        for row in ws.iter_rows(values_only=True):
            values = [_cell_text(v) for v in row]
            if not any(values):
                continue
            while values and not values[-1]:
                values.pop()
            writer.writerow(values)
            written += 1
    finally:
        wb.close()

    if written == 0:
        raise UploadRejected("Spreadsheet contains no rows")
    return buffer.getvalue().encode("utf-8")


def prepare_for_import(upload: UploadedFile, max_upload_mb: int = DEFAULT_MAX_UPLOAD_MB) -> UploadedFile:
    """Prechecks an upload and returns the CSV file to submit as `csv_file`."""
    precheck_upload(upload, max_upload_mb=max_upload_mb)
    if upload.extension == ".csv":
        return upload
    csv_name = str(Path(upload.name).with_suffix(".csv"))
    return UploadedFile(name=csv_name, content=workbook_to_csv(upload.content))


def read_upload_text(upload: UploadedFile, max_upload_mb: int = DEFAULT_MAX_UPLOAD_MB) -> str:
    """Text view of an upload, used for team rosters that are parsed line by line."""
    prepared = prepare_for_import(upload, max_upload_mb=max_upload_mb)
    try:
        return prepared.content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise UploadRejected(f"'{upload.name}' is not UTF-8 text") from exc
