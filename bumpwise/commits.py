"""Conventional commit classification.

Parses a raw ``git log`` range into CommitRecords and decides the semver
bump they imply. A commit header follows ``type(scope)!: subject``; the
scope and the breaking-change marker are optional.

Typical use:

    records = classify(get_git_diff("v1.2.0"))
    decision = decide(records, DEFAULT_TYPE_TABLE)
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping

from .models import BumpDecision, CommitRecord
from .shell import git

# ASCII record/unit separators keep multi-line bodies intact in git output
RECORD_SEP = "\x1e"
FIELD_SEP = "\x1f"
LOG_FORMAT = "%x1e%H%x1f%B%x1f"

DEFAULT_TYPE_TABLE: dict[str, BumpDecision] = {
    "feat": BumpDecision.MINOR,
    "fix": BumpDecision.PATCH,
}

_HEADER_RE = re.compile(
    r"^(?P<type>[A-Za-z][\w-]*)(?:\((?P<scope>[^()]*)\))?(?P<breaking>!)?: (?P<subject>.+)$"
)
_BREAKING_FOOTER_RE = re.compile(r"^BREAKING[ -]CHANGE:", re.MULTILINE)


def get_git_diff(from_ref: str | None) -> str:
    """Return the raw log of commits since from_ref, with touched files.

    Args:
        from_ref: Tag or commit to start after. None lists the whole
                  history, which is what a first release needs.
    """
    rev_range = f"{from_ref}..HEAD" if from_ref else "HEAD"
    return git("log", rev_range, f"--format={LOG_FORMAT}", "--name-only")


def parse_commit(hash_: str, message: str, files: Iterable[str] = ()) -> CommitRecord:
    """Parse one commit message against the conventional-commit grammar."""
    message = message.strip()
    header = message.splitlines()[0].strip() if message else ""
    match = _HEADER_RE.match(header)
    if not match:
        return CommitRecord(
            hash=hash_, message=message, subject=header, affected_files=list(files)
        )
    return CommitRecord(
        hash=hash_,
        message=message,
        type=match.group("type").lower(),
        scope=match.group("scope") or None,
        subject=match.group("subject").strip(),
        breaking=bool(match.group("breaking"))
        or bool(_BREAKING_FOOTER_RE.search(message)),
        affected_files=list(files),
    )


def classify(raw_log: str) -> list[CommitRecord]:
    """Parse the output of get_git_diff() into CommitRecords.

    Entries whose header does not follow the grammar are kept with
    ``type=None`` so callers can still list them.
    """
    records: list[CommitRecord] = []
    for entry in raw_log.split(RECORD_SEP):
        if not entry.strip():
            continue
        hash_, _, rest = entry.partition(FIELD_SEP)
        message, _, files_blob = rest.partition(FIELD_SEP)
        files = [line.strip() for line in files_blob.splitlines() if line.strip()]
        records.append(parse_commit(hash_.strip(), message, files))
    return records


def decide(
    records: Iterable[CommitRecord], type_table: Mapping[str, BumpDecision]
) -> BumpDecision:
    """Pick the most severe bump among commits whose type is in type_table.

    A breaking change on a qualifying commit counts as a major bump.
    Commits with unknown or missing types are ignored, so an empty or
    irrelevant history yields BumpDecision.NONE.
    """
    decision = BumpDecision.NONE
    for record in records:
        if record.type is None or record.type not in type_table:
            continue
        bump = BumpDecision.MAJOR if record.breaking else type_table[record.type]
        decision = max(decision, BumpDecision(bump))
    return decision
