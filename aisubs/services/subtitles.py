import re
from pathlib import Path
from typing import List, Optional

import pysubs2
from pydantic import BaseModel, ConfigDict, Field

# ASS override blocks such as {\i1} or {\an8}. SRT markup is converted to
# these by pysubs2 on load and back on save.
OVERRIDE_TAG = re.compile(r"(\{[^}]*\})")
LINE_BREAK = "\\N"


class LineItem(BaseModel):
    text: str


class SubtitleLine(BaseModel):
    """One visual line of an entry: text runs separated by formatting tags.

    ``prefixes[i]`` holds the tags that precede ``items[i]``; ``suffix`` holds
    whatever tags trail the last run.
    """

    items: List[LineItem] = Field(default_factory=list)
    prefixes: List[str] = Field(default_factory=list)
    suffix: str = ""

    @classmethod
    def parse(cls, raw: str) -> "SubtitleLine":
        items: List[LineItem] = []
        prefixes: List[str] = []
        pending_tags = ""
        for token in OVERRIDE_TAG.split(raw):
            if not token:
                continue
            if OVERRIDE_TAG.fullmatch(token):
                pending_tags += token
                continue
            prefixes.append(pending_tags)
            items.append(LineItem(text=token))
            pending_tags = ""
        return cls(items=items, prefixes=prefixes, suffix=pending_tags)

    def render(self) -> str:
        body = "".join(prefix + item.text for prefix, item in zip(self.prefixes, self.items))
        return body + self.suffix


class SubtitleEntry(BaseModel):
    index: int
    lines: List[SubtitleLine]

    @property
    def text(self) -> str:
        return "\n".join("".join(item.text for item in line.items) for line in self.lines)


class SubtitleDocument(BaseModel):
    """Parsed subtitle file plus the entries exposed for translation."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    path: str
    entries: List[SubtitleEntry]
    source: pysubs2.SSAFile


def open_subtitles(path: str, encoding: str = "utf-8") -> SubtitleDocument:
    subs = pysubs2.load(path, encoding=encoding)
    entries: List[SubtitleEntry] = []
    for position, event in enumerate(subs.events):
        if event.is_comment:
            continue
        lines = [SubtitleLine.parse(raw) for raw in event.text.split(LINE_BREAK)]
        entries.append(SubtitleEntry(index=position + 1, lines=lines))
    return SubtitleDocument(path=path, entries=entries, source=subs)


def write_subtitles(document: SubtitleDocument, path: str, format_: Optional[str] = None) -> None:
    for entry in document.entries:
        event = document.source.events[entry.index - 1]
        event.text = LINE_BREAK.join(line.render() for line in entry.lines)

    Path(path).parent.mkdir(parents=True, exist_ok=True)
    document.source.save(path, format_=format_ or document.source.format)
