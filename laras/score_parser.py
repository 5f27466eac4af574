"""ScoreParser: turns laras notation text into a Score."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Final

import lark
import lark.visitors
from lark import Tree

from laras.score_models import Score, Section, Track

logger = logging.getLogger(__name__)

# One statement per line. Strings are double-quoted, track codes are
# backtick-quoted; both keep their content verbatim. Tempos have at most
# nine digits; a longer one makes its header line malformed.
LARAS_GRAMMAR: Final[str] = r"""
    line: statement?

    ?statement: metadata_value
        | section_header
        | section_data

    metadata_value: NAME "=" STRING
    section_header: "[" STRING NUMBER "]"
    section_data: NAME CODE

    NAME: /[A-Za-z_][A-Za-z0-9_]*/
    STRING: /"[^"\n]*"/
    NUMBER: /[0-9]{1,9}/
    CODE: /`[^`\n]*`/
    COMMENT: /#[^\n]*/

    %ignore COMMENT
    %ignore /[ \t\f\r]+/
"""


def _unwrap(literal: str) -> str:
    """Drop the opening and closing delimiter of a string or code literal."""
    return literal[1:-1]


@dataclass
class _SectionDraft:
    id: int
    title: str
    tempo: int
    tracks: list[Track] = field(default_factory=list)

    def freeze(self) -> Section:
        return Section(id=self.id, title=self.title, tempo=self.tempo, tracks=tuple(self.tracks))


class ScoreBuilder(lark.visitors.Interpreter):
    """
    Walks a parsed document and accumulates the Score fields.

    Only ``metadata_value``, ``section_header`` and ``section_data`` nodes are
    acted upon; anything else in the tree is passed over.
    """

    def __init__(self) -> None:
        self._title = ""
        self._composer = ""
        self._sections: list[_SectionDraft] = []
        self._current: _SectionDraft | None = None

    def build(self, tree: Tree) -> Score:
        self.visit(tree)
        return Score(
            title=self._title,
            composer=self._composer,
            sections=tuple(draft.freeze() for draft in self._sections),
        )

    def metadata_value(self, tree: Tree) -> None:
        name, value = tree.children
        key = str(name).lower()
        if key == "title":
            self._title = _unwrap(str(value))
        elif key == "composer":
            self._composer = _unwrap(str(value))
        else:
            logger.debug("Ignoring unknown metadata %r", str(name))

    def section_header(self, tree: Tree) -> None:
        title, tempo = tree.children
        self._current = _SectionDraft(
            id=len(self._sections),
            title=_unwrap(str(title)),
            tempo=int(tempo),
        )
        self._sections.append(self._current)

    def section_data(self, tree: Tree) -> None:
        label, code = tree.children
        if self._current is None:
            logger.debug("Dropping track %r declared before any section", str(label))
            return
        self._current.tracks.append(Track(label=str(label), value=_unwrap(str(code))))


class ScoreParser:
    """
    Parses laras notation.

    The text is split into lines and each line is parsed on its own, so a
    malformed line only loses that line:

        parser = ScoreParser()
        score = parser.parse_score(text)
    """

    def __init__(self) -> None:
        self._lark: Final = lark.Lark(LARAS_GRAMMAR, start="line", parser="lalr")

    def _parse_line(self, line: str, lineno: int) -> Tree | None:
        try:
            return self._lark.parse(line)
        except lark.UnexpectedInput as exc:
            logger.debug("Skipping malformed line %d (column %s): %r", lineno, exc.column, line)
            return None

    def parse(self, text: str) -> Tree:
        """
        Parse ``text`` into a ``document`` tree holding one ``line`` subtree
        per line that the grammar accepted.
        """
        lines: list[Tree] = []
        for lineno, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            tree = self._parse_line(line, lineno)
            if tree is not None and tree.children:
                lines.append(tree)
        return Tree("document", lines)

    def parse_score(self, text: str) -> Score:
        """Parse ``text`` into a Score. Never raises on malformed notation."""
        return ScoreBuilder().build(self.parse(text))


_default_parser: ScoreParser | None = None


def parse_score(text: str) -> Score:
    """Parse ``text`` with a shared ScoreParser instance."""
    global _default_parser
    if _default_parser is None:
        _default_parser = ScoreParser()
    return _default_parser.parse_score(text)
