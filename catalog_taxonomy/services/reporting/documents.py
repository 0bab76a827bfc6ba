"""In-memory report documents and their markdown rendering."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence


@dataclass
class Table:
    """Named tabular output (rows are dicts keyed by column)."""
    name: str
    columns: List[str]
    rows: List[Dict[str, Any]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rows)


@dataclass
class Section:
    """A titled block of markdown lines."""
    title: str
    lines: List[str] = field(default_factory=list)


@dataclass
class NarrativeDocument:
    """Human-readable report made of sections."""
    title: str
    preamble: List[str] = field(default_factory=list)
    sections: List[Section] = field(default_factory=list)

    def section(self, title: str) -> Section:
        """Append and return a new section."""
        new_section = Section(title=title)
        self.sections.append(new_section)
        return new_section

    def get(self, title: str) -> Optional[Section]:
        for existing in self.sections:
            if existing.title == title:
                return existing
        return None


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    return str(value).replace("|", "\\|").replace("\n", " ")


def markdown_table(
    headers: Sequence[str],
    rows: Sequence[Sequence[Any]],
    numeric: Sequence[str] = (),
    empty: str = "- (none)",
) -> List[str]:
    """Markdown table lines; ``empty`` is returned alone when there are no rows."""
    if not rows:
        return [empty]
    lines = [
        "| " + " | ".join(headers) + " |",
        "|" + "|".join("---:" if h in numeric else "---" for h in headers) + "|",
    ]
    for row in rows:
        lines.append("| " + " | ".join(_cell(v) for v in row) + " |")
    return lines


def render_markdown(document: NarrativeDocument) -> str:
    """Render a narrative document to a markdown string."""
    out = [f"# {document.title}", ""]
    if document.preamble:
        out.extend(document.preamble)
        out.append("")
    for section in document.sections:
        out.append(f"## {section.title}")
        out.append("")
        out.extend(section.lines)
        out.append("")
    return "\n".join(out).rstrip("\n") + "\n"
