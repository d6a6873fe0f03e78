import os
from pathlib import Path

import pytest

from emuplan.errors import MalformedTimestampError
from emuplan.models import SourceTree
from emuplan.source import filter_source
from emuplan.version import derive_version, last_modified_date, timestamp_from_epoch, version_info

# 2024-01-15T12:00:00Z
EPOCH = 1705320000


def test_derive_version_uses_leading_date_digits() -> None:
    assert derive_version("20240115120000") == "0.pre+date=2024-01-15"
    assert derive_version("20240115") == "0.pre+date=2024-01-15"
    assert derive_version("20231231T235959Z") == "0.pre+date=2023-12-31"


def test_version_info_exposes_date_fields() -> None:
    info = version_info("19991201000000")

    assert (info.year, info.month, info.day) == ("1999", "12", "01")
    assert info.date == "1999-12-01"
    assert str(info) == "0.pre+date=1999-12-01"


@pytest.mark.parametrize("timestamp", ["", "2024011", "2024"])
def test_short_timestamp_is_rejected(timestamp: str) -> None:
    with pytest.raises(MalformedTimestampError) as excinfo:
        derive_version(timestamp)

    assert excinfo.value.code == "E_MALFORMED_TIMESTAMP"


def test_non_digit_timestamp_is_rejected() -> None:
    with pytest.raises(MalformedTimestampError):
        derive_version("2024-01-15")


def test_timestamp_from_epoch_is_utc() -> None:
    assert timestamp_from_epoch(0) == "19700101000000"
    assert timestamp_from_epoch(EPOCH) == "20240115120000"


def test_last_modified_date_uses_newest_file(tmp_path: Path) -> None:
    (tmp_path / "old.rs").write_text("// old\n", encoding="utf-8")
    (tmp_path / "new.rs").write_text("// new\n", encoding="utf-8")
    os.utime(tmp_path / "old.rs", (0, 0))
    os.utime(tmp_path / "new.rs", (EPOCH, EPOCH))

    stamp = last_modified_date(filter_source(tmp_path))

    assert stamp == "20240115120000"
    assert derive_version(stamp) == "0.pre+date=2024-01-15"


def test_last_modified_date_reads_link_itself(tmp_path: Path) -> None:
    (tmp_path / "main.rs").write_text("fn main() {}\n", encoding="utf-8")
    os.utime(tmp_path / "main.rs", (0, 0))
    os.symlink(tmp_path / "missing.rs", tmp_path / "dangling.rs")
    os.utime(tmp_path / "dangling.rs", (EPOCH, EPOCH), follow_symlinks=False)

    assert last_modified_date(filter_source(tmp_path)) == "20240115120000"


def test_last_modified_date_rejects_empty_tree(tmp_path: Path) -> None:
    empty = SourceTree(root=tmp_path, files=(), fingerprint="0" * 64)

    with pytest.raises(MalformedTimestampError):
        last_modified_date(empty)
