from pathlib import Path

import pandas as pd

from matching.models import UploadedTable

EXCEL_SUFFIXES = {".xlsx", ".xls"}


def _frame_to_table(df: pd.DataFrame, name: str) -> UploadedTable:
    df.columns = [str(c).strip() for c in df.columns]
    df = df.fillna("").astype(str)
    df = df.loc[df.apply(lambda row: row.str.strip().ne("").any(), axis=1)] if len(df) else df
    return UploadedTable(name=name, headers=list(df.columns), rows=df.to_dict(orient="records"))


def load_table(source, name: str | None = None) -> UploadedTable:
    """
    Read one CSV or Excel upload (a path or a file-like with a .name) into an
    UploadedTable. Every cell is text; blanks are '' and all-blank rows dropped.
    """
    filename = name or getattr(source, "name", None) or str(source)
    suffix = Path(str(getattr(source, "name", source))).suffix.lower()
    if suffix in EXCEL_SUFFIXES:
        df = pd.read_excel(source, dtype=str)
    else:
        df = pd.read_csv(source, dtype=str, keep_default_na=False, skip_blank_lines=True)
    return _frame_to_table(df, Path(filename).stem if name is None else name)
