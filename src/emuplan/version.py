"""Date-based package version derivation."""

from __future__ import annotations

from datetime import UTC, datetime

from emuplan.errors import MalformedTimestampError
from emuplan.models import SourceTree, VersionInfo

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


def version_info(timestamp: str) -> VersionInfo:
    """Slice year, month and day out of a compact ``YYYYMMDD...`` timestamp."""
    head = timestamp[:8]
    if len(head) < 8:
        raise MalformedTimestampError(
            "Timestamp is too short to derive a version.",
            hint="Pass at least eight leading digits (YYYYMMDD).",
            context={"operation": "derive_version", "timestamp": timestamp or "<empty>"},
        )
    if not head.isdigit():
        raise MalformedTimestampError(
            "Timestamp must start with eight digits.",
            hint="Use the compact form, e.g. 20240115T120000.",
            context={"operation": "derive_version", "timestamp": timestamp},
        )
    return VersionInfo(year=head[0:4], month=head[4:6], day=head[6:8])


def derive_version(timestamp: str) -> str:
    return str(version_info(timestamp))


def timestamp_from_epoch(epoch: int | float) -> str:
    return datetime.fromtimestamp(epoch, tz=UTC).strftime(TIMESTAMP_FORMAT)


def last_modified_date(source: SourceTree) -> str:
    """Return the newest modification time in *source* as a compact timestamp."""
    # lstat: symlinks are part of the tree but never followed.
    mtimes = [path.lstat().st_mtime for path in source.paths()]
    if not mtimes:
        raise MalformedTimestampError(
            "Cannot derive a timestamp from an empty source tree.",
            hint="Pass --timestamp or set SOURCE_DATE_EPOCH.",
            context={"operation": "last_modified_date", "root": str(source.root)},
        )
    return timestamp_from_epoch(max(mtimes))

