from pathlib import Path

import pandas as pd

from homefield.data.io import TableIOError, read_table, write_table


def test_table_round_trip_formats(tmp_path: Path):
    df = pd.DataFrame({"site": ["A", "B"], "yield": [1.5, 2.5]})
    for name in ("t.csv", "t.tsv", "t.parquet"):
        path = write_table(df, tmp_path / name)
        pd.testing.assert_frame_equal(read_table(path), df)


def test_unknown_format_and_missing_file(tmp_path: Path):
    try:
        read_table(tmp_path / "missing.csv")
        assert False
    except TableIOError as exc:
        assert "does not exist" in str(exc)

    path = tmp_path / "t.xlsx"
    path.write_text("", encoding="utf-8")
    try:
        read_table(path)
        assert False
    except TableIOError as exc:
        assert "Unsupported" in str(exc)
