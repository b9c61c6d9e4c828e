"""Line-oriented markdown rendering for the chapter reader.

Each line is classified on its own by prefix: headings (``#``, ``##``,
``###``), bullet items (``- ``, ``* ``), numbered items (``1. ``), blank
lines and paragraphs. Bold spans (``**text**``) are resolved inside
paragraph lines only.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from html import escape as html_escape
from typing import Iterable

BOLD_SPLIT_PATTERN = re.compile(r"(\*\*.*?\*\*)")
NUMBERED_PATTERN = re.compile(r"^\d+\. ")

_PREFIXES = (
    ("### ", "h3"),
    ("## ", "h2"),
    ("# ", "h1"),
    ("- ", "bullet"),
    ("* ", "bullet"),
)


@dataclass(frozen=True)
class Span:
    text: str
    bold: bool = False


@dataclass(frozen=True)
class MarkdownBlock:
    kind: str
    text: str = ""
    spans: tuple[Span, ...] = ()

    def to_dict(self) -> dict:
        data: dict = {"kind": self.kind, "text": self.text}
        if self.spans:
            data["spans"] = [{"text": span.text, "bold": span.bold} for span in self.spans]
        return data


def split_bold(line: str) -> tuple[Span, ...]:
    spans = []
    for part in BOLD_SPLIT_PATTERN.split(line):
        if not part:
            continue
        if len(part) >= 4 and part.startswith("**") and part.endswith("**"):
            spans.append(Span(text=part[2:-2], bold=True))
        else:
            spans.append(Span(text=part))
    return tuple(spans)


def classify_line(line: str) -> MarkdownBlock:
    for prefix, kind in _PREFIXES:
        if line.startswith(prefix):
            return MarkdownBlock(kind=kind, text=line[len(prefix):])
    numbered = NUMBERED_PATTERN.match(line)
    if numbered:
        return MarkdownBlock(kind="numbered", text=line[numbered.end():])
    if not line.strip():
        return MarkdownBlock(kind="break")
    return MarkdownBlock(kind="paragraph", text=line, spans=split_bold(line))


def render_markdown(text: str) -> list[MarkdownBlock]:
    return [classify_line(line) for line in text.split("\n")]


_BLOCK_TAGS = {"h1": "h1", "h2": "h2", "h3": "h3"}


def _render_spans(spans: Iterable[Span]) -> str:
    rendered = []
    for span in spans:
        if span.bold:
            rendered.append(f"<strong>{html_escape(span.text)}</strong>")
        else:
            rendered.append(html_escape(span.text))
    return "".join(rendered)


def blocks_to_html(blocks: Iterable[MarkdownBlock]) -> str:
    lines = []
    for block in blocks:
        if block.kind in _BLOCK_TAGS:
            tag = _BLOCK_TAGS[block.kind]
            lines.append(f"<{tag}>{html_escape(block.text)}</{tag}>")
        elif block.kind == "bullet":
            lines.append(f'<li class="bullet">{html_escape(block.text)}</li>')
        elif block.kind == "numbered":
            lines.append(f'<li class="numbered">{html_escape(block.text)}</li>')
        elif block.kind == "break":
            lines.append("<br />")
        else:
            lines.append(f"<p>{_render_spans(block.spans)}</p>")
    return "\n".join(lines)


def render_html(text: str) -> str:
    return blocks_to_html(render_markdown(text))
