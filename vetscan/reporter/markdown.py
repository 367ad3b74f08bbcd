"""Incremental builder for GitHub-flavoured markdown documents."""

from __future__ import annotations

from dataclasses import dataclass, field


class Emoji:
    """GitHub emoji short codes used in reports."""

    ARROW_RIGHT = ":arrow_right:"
    WHITE_CHECK_MARK = ":white_check_mark:"
    CROSS_MARK = ":x:"
    LINK = ":link:"
    WARNING = ":warning:"


class MarkdownBuilder:
    """Accumulates markdown fragments and renders them as one document."""

    def __init__(self) -> None:
        self._parts: list[str] = []

    def add_header(self, level: int, text: str) -> None:
        """Append a header of the given level."""
        self._parts.append(f"{'#' * level} {text}\n")

    def add_paragraph(self, text: str) -> None:
        """Append a paragraph followed by a blank line."""
        self._parts.append(f"{text}\n\n")

    def add_bullet_point(self, text: str) -> None:
        """Append a bullet list item."""
        self._parts.append(f"- {text}\n")

    def add_numbered_point(self, number: int, text: str) -> None:
        """Append a numbered list item."""
        self._parts.append(f"{number}. {text}\n")

    def add_code_snippet(self, code: str, language: str) -> None:
        """Append a fenced code block."""
        self._parts.append(f"```{language}\n{code}\n```\n")

    def start_collapsible_section(self, title: str) -> CollapsibleSection:
        """Create a collapsible section with its own builder."""
        return CollapsibleSection(title=title)

    def add_collapsible_section(self, section: CollapsibleSection) -> None:
        """Append a collapsible section; only the GitHub flavour is rendered."""
        if section.flavor != "github":
            return
        self._parts.append(f"<details>\n<summary>{section.title}</summary>\n\n")
        self._parts.append(section.builder.build())
        self._parts.append("</details>\n\n")

    def build(self) -> str:
        """Return the document built so far."""
        return "".join(self._parts)


@dataclass
class CollapsibleSection:
    """A titled section whose content is collapsed by default."""

    title: str
    builder: MarkdownBuilder = field(default_factory=MarkdownBuilder)
    flavor: str = "github"