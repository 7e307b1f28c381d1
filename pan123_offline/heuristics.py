"""
Best-effort heuristics for facts the provider does not expose directly.

Each function here is a guess with known failure modes; they are kept
separate so their behavior can be tested and reasoned about on its own.
"""

import re
from typing import Iterable, Optional

from .store import TaskRecordStore

SUBGROUP_PATTERN = re.compile(r"^[\[【]([^\]】]+)[\]】]")


def split_extension(file_name: str) -> tuple[str, str]:
    """Split ``name.ext`` at the last dot; dotfiles and bare names have no extension."""
    dot = file_name.rfind(".")
    if dot <= 0:
        return file_name, ""
    return file_name[:dot], file_name[dot:]


def matches_task_name(file_name: str, display_name: str) -> bool:
    """
    Whether a remote file belongs to the task named ``display_name``.

    Matches on the exact name, on equal stems, or when the file name contains
    the display-name stem (catches ``name.sc.ass`` style subtitle tracks).
    False positives: unrelated files whose name contains a short display
    name. False negatives: files the provider renamed on extraction.
    """
    if not file_name or not display_name:
        return False
    display_stem, _ = split_extension(display_name)
    file_stem, _ = split_extension(file_name)
    return (
        file_name == display_name
        or file_stem == display_stem
        or display_stem in file_name
    )


def adopt_untracked_task_id(task_ids: Iterable[str], records: TaskRecordStore) -> Optional[str]:
    """
    Guess the id of a just-submitted task: the first listed id with no record.

    Race-prone: two submissions interleaving in one process can adopt each
    other's task, and a task created outside this process can be adopted.
    """
    for task_id in task_ids:
        if task_id not in records:
            return task_id
    return None


def extract_subgroup(name: str) -> Optional[str]:
    """Leading ``[Group]`` or ``【Group】`` tag of a release name."""
    match = SUBGROUP_PATTERN.match(name or "")
    if match:
        return match.group(1).strip() or None
    return None
