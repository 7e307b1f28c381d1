"""
Renaming collaborator interface.

Episode naming rules belong to the surrounding pipeline; the driver only asks
two questions: "what should this task be called?" and "given that name, what
does this particular file become?".
"""

import re
from typing import Optional, Protocol

from .heuristics import split_extension

SUBTITLE_EXTENSIONS = {".ass", ".ssa", ".srt", ".vtt", ".sup", ".sub", ".idx"}
LANGUAGE_TAG = re.compile(r"^[A-Za-z]{2,8}([-_][A-Za-z0-9]{2,8})*$")


class Renamer(Protocol):
    def template_for(self, display_name: str, subgroup: Optional[str]) -> Optional[str]:
        """Synthesize a target name for a task that has none recorded."""
        ...

    def final_name(self, template: str, file_name: str) -> str:
        """Apply ``template`` to one of the task's files."""
        ...


class DefaultRenamer:
    """
    Keeps each file's extension and, for subtitles, its language tag:
    ``[G] Show - 01.sc.ass`` with template ``Show S01E01`` becomes
    ``Show S01E01.sc.ass``.

    It knows no show catalogue, so it cannot synthesize templates.
    """

    def template_for(self, display_name: str, subgroup: Optional[str]) -> Optional[str]:
        return None

    def final_name(self, template: str, file_name: str) -> str:
        stem, extension = split_extension(file_name)
        if not extension:
            return template

        if extension.lower() in SUBTITLE_EXTENSIONS:
            _, language = split_extension(stem)
            language = language.lstrip(".")
            if language and LANGUAGE_TAG.match(language):
                return f"{template}.{language}{extension}"

        return f"{template}{extension}"
