import html
import logging
import re
import urllib.parse
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import List, Optional, Set, Union

from syncmyitslearning.exceptions import ParseError
from syncmyitslearning.page import Page

INVALID_CHARS = frozenset('/\\|":?*<>{}')
ENTRY_CLASS = "GridTitle"

FOLDER_ID_REGEX = re.compile(r"FolderID=(\d+)")
ELEMENT_ID_REGEX = re.compile(r"LearningToolElementId=(\d+)")

logger = logging.getLogger(__name__)


def strip_invalid(text: str) -> str:
    """Replace the characters that are not allowed in a path segment.

    Meant for text the HTML parser has already decoded, entities in it are
    kept literally.
    """
    name = "".join("_" if s in INVALID_CHARS else s for s in text)
    return name.strip()


def sanitize(raw: Union[str, bytes]) -> str:
    """Decode a raw text into a name that is safe to use as a path segment"""
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw

    # Titles are sometimes escaped twice (e.g. "&amp;amp;"), so decode until
    # nothing changes. Every entity is longer than its replacement.
    decoded = html.unescape(text)
    while decoded != text:
        text = decoded
        decoded = html.unescape(text)

    return strip_invalid(text)


def folder_name(title: str, folder_url: str, disambiguate: bool = False) -> str:
    name = strip_invalid(title)
    if disambiguate:
        # Sibling folders may share a title, the id keeps their paths apart
        match = FOLDER_ID_REGEX.search(folder_url)
        if not match:
            raise ParseError(f"No FolderID in folder url {folder_url}")
        name = f"{name} [{match.group(1)}]"
    return name


def disambiguated_file_name(file_name: str, element_id: str) -> str:
    name = PurePosixPath(file_name)
    return f"{name.stem} [{element_id}]{name.suffix}"


class EntryKind(Enum):
    FOLDER = "folder"
    FILE = "file"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Course:
    title: str
    course_id: int


@dataclass(frozen=True)
class FolderEntry:
    name: str
    url: str

    @property
    def kind(self) -> EntryKind:
        path = urllib.parse.urlsplit(self.url).path
        if path.startswith("/Folder"):
            return EntryKind.FOLDER
        if path.startswith("/LearningToolElement"):
            return EntryKind.FILE
        return EntryKind.UNKNOWN

    @property
    def element_id(self) -> str:
        match = ELEMENT_ID_REGEX.search(self.url)
        if not match:
            raise ParseError(f"No LearningToolElementId in entry url {self.url}")
        return match.group(1)


def parse_entries(page: Page) -> List[FolderEntry]:
    entries = []
    for tag in page.find_class(ENTRY_CLASS):
        url: Optional[str] = tag.get("href")
        if not url:
            logger.warning(f"Folder entry without link on {page.url}: {tag}")
            continue
        entries.append(FolderEntry(tag.get_text(strip=True), url))
    return entries


def duplicate_names(entries: List[FolderEntry]) -> Set[str]:
    counts = Counter(e.name for e in entries)
    return {name for name, count in counts.items() if count > 1}
