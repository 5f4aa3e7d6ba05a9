"""Spot statement files loaded twice: byte-identical copies and overlapping periods."""

import hashlib
from dataclasses import dataclass
from datetime import date

from kupa.models import DuplicateFileGroup, OverlappingDateRange, Transaction
from kupa.money import parse_dmy

OVERLAP_THRESHOLD = 80  # percent of the shorter file's span
MIN_ROWS_PER_FILE = 3


def file_checksum(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def find_duplicate_files(files: dict[str, bytes]) -> list[DuplicateFileGroup]:
    """Groups of files whose contents are identical, in first-seen order."""
    if len(files) < 2:
        return []
    by_hash: dict[str, DuplicateFileGroup] = {}
    for name, data in files.items():
        digest = file_checksum(data)
        group = by_hash.get(digest)
        if group is None:
            by_hash[digest] = DuplicateFileGroup(hash=digest, paths=[name], file_size=len(data))
        else:
            group.paths.append(name)
    return [g for g in by_hash.values() if len(g.paths) > 1]


@dataclass
class _FileRange:
    file_name: str
    start: date
    end: date
    count: int = 0

    def as_dict(self) -> dict:
        return {"from": self.start.strftime("%d/%m/%Y"), "to": self.end.strftime("%d/%m/%Y"), "count": self.count}


def find_overlapping_date_ranges(
    details: list[Transaction],
    skipped_files: set[str] | None = None,
) -> list[OverlappingDateRange]:
    """Pairs of files from the same source and card covering mostly the same days.

    Credit rows are ranged by charge date: installment purchases stretch the
    purchase dates of a monthly file back over many months.
    """
    skipped_files = skipped_files or set()
    groups: dict[tuple[str, str], dict[str, _FileRange]] = {}
    for d in details:
        if d.file_name and d.file_name in skipped_files:
            continue
        source = d.source or "credit"
        card = (d.card_last4 or "ALL") if source == "credit" else "BANK"
        day = parse_dmy(d.charge_date if source == "credit" and d.charge_date else d.date)
        if day is None:
            continue
        ranges = groups.setdefault((source, card), {})
        name = d.file_name or "unknown"
        fr = ranges.get(name)
        if fr is None:
            fr = ranges[name] = _FileRange(name, day, day)
        fr.start = min(fr.start, day)
        fr.end = max(fr.end, day)
        fr.count += 1

    overlaps: list[OverlappingDateRange] = []
    for (source, card), by_file in groups.items():
        ranges = list(by_file.values())
        for i, a in enumerate(ranges):
            for b in ranges[i + 1:]:
                start, end = max(a.start, b.start), min(a.end, b.end)
                if start > end:
                    continue
                overlap_days = (end - start).days + 1
                smaller = min((a.end - a.start).days, (b.end - b.start).days) + 1
                percent = overlap_days / smaller * 100
                if percent < OVERLAP_THRESHOLD or a.count < MIN_ROWS_PER_FILE or b.count < MIN_ROWS_PER_FILE:
                    continue
                overlaps.append(OverlappingDateRange(
                    source=source,
                    card_last4=None if card in ("ALL", "BANK") else card,
                    file1=a.file_name,
                    range1=a.as_dict(),
                    file2=b.file_name,
                    range2=b.as_dict(),
                    overlap_days=overlap_days,
                    overlap_percent=round(percent),
                ))
    return overlaps
