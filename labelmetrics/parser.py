"""Parser for static metric definitions.

The accepted text consists of label enum definitions::

    pub label_enum Methods { post, get: "GET", }

and metric definitions that build on them::

    pub struct HttpRequests: Counter {
        "method" => Methods,
        "product" => { foo, bar: "bar_name" },
    }

Each value definition is either a bare identifier, whose label value is the
identifier itself, or ``name: "value"``.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Callable, Mapping, TypeVar

from .value import MetricsError

T = TypeVar("T")

_KEYWORDS = frozenset(
    {
        "as", "async", "await", "break", "const", "continue", "crate", "dyn",
        "else", "enum", "extern", "false", "fn", "for", "if", "impl", "in",
        "let", "loop", "match", "mod", "move", "mut", "pub", "ref", "return",
        "self", "Self", "static", "struct", "super", "trait", "true", "type",
        "unsafe", "use", "where", "while", "abstract", "become", "box", "do",
        "final", "macro", "override", "priv", "try", "typeof", "unsized",
        "virtual", "yield",
    }
)

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
    |(?P<line_comment>//[^\n]*)
    |(?P<block_comment>/\*.*?\*/)
    |(?P<ident>[A-Za-z_][A-Za-z0-9_]*)
    |(?P<string>"(?:[^"\\]|\\.)*")
    |(?P<punct>=>|[{}(),:])
    """,
    re.VERBOSE | re.DOTALL,
)

_ESCAPE_RE = re.compile(r"\\(\n\s*|u\{[0-9a-fA-F]{1,6}\}|x[0-7][0-9a-fA-F]|.)", re.DOTALL)

_SIMPLE_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "0": "\0",
    "\\": "\\",
    '"': '"',
    "'": "'",
}


class ParseError(MetricsError):
    """The definition text is not well formed."""

    def __init__(self, message: str, line: int | None = None, column: int | None = None):
        self.line = line
        self.column = column
        if line is not None:
            message = f"{message} at line {line}, column {column}"
        super().__init__(message)


@dataclass(frozen=True)
class ValueDef:
    """A label value: the attribute ``name`` and the label ``value`` it stands for."""

    name: str
    value: str


@dataclass(frozen=True)
class LabelEnumDef:
    """A named, reusable list of label values."""

    name: str
    definitions: tuple[ValueDef, ...]
    visibility: str = ""


@dataclass(frozen=True)
class LabelDef:
    """One label of a metric, with inline values or a reference to a label enum."""

    label_key: str
    values: tuple[ValueDef, ...] | None = None
    enum_name: str | None = None

    def __post_init__(self) -> None:
        if (self.values is None) == (self.enum_name is None):
            raise ValueError("a label needs either inline values or an enum name, not both")

    def value_defs(self, enums: Mapping[str, LabelEnumDef]) -> tuple[ValueDef, ...]:
        """Return the label's values, looking them up in ``enums`` if referenced."""
        if self.values is not None:
            return self.values
        try:
            return enums[self.enum_name].definitions
        except KeyError:
            raise ParseError(f"Label enum `{self.enum_name}` is undefined.") from None


@dataclass(frozen=True)
class MetricDef:
    """A static metric: its struct name, metric type and ordered labels."""

    struct_name: str
    metric_type: str
    labels: tuple[LabelDef, ...]
    visibility: str = ""


class _Kind(enum.Enum):
    IDENT = "identifier"
    STRING = "string literal"
    PUNCT = "punctuation"
    EOF = "end of input"


@dataclass(frozen=True)
class _Token:
    kind: _Kind
    text: str
    line: int
    column: int


def _position(text: str, offset: int) -> tuple[int, int]:
    line = text.count("\n", 0, offset) + 1
    column = offset - (text.rfind("\n", 0, offset) + 1) + 1
    return line, column


def _decode_string(body: str, line: int, column: int) -> str:
    def replace(match: re.Match) -> str:
        escape = match.group(1)
        if escape.startswith("\n"):
            return ""
        if escape.startswith("u{"):
            code = int(escape[2:-1], 16)
            if code > 0x10FFFF or 0xD800 <= code <= 0xDFFF:
                raise ParseError("invalid unicode escape in string literal", line, column)
            return chr(code)
        if escape.startswith("x") and len(escape) == 3:
            return chr(int(escape[1:], 16))
        if escape in _SIMPLE_ESCAPES:
            return _SIMPLE_ESCAPES[escape]
        raise ParseError(f"unknown escape `\\{escape}` in string literal", line, column)

    return _ESCAPE_RE.sub(replace, body)


def _tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        line, column = _position(text, pos)
        if match is None:
            if text.startswith('"', pos):
                raise ParseError("unterminated string literal", line, column)
            if text.startswith("/*", pos):
                raise ParseError("unterminated block comment", line, column)
            raise ParseError(f"unexpected character {text[pos]!r}", line, column)
        kind = match.lastgroup
        lexeme = match.group()
        if kind == "ident":
            tokens.append(_Token(_Kind.IDENT, lexeme, line, column))
        elif kind == "string":
            tokens.append(
                _Token(_Kind.STRING, _decode_string(lexeme[1:-1], line, column), line, column)
            )
        elif kind == "punct":
            tokens.append(_Token(_Kind.PUNCT, lexeme, line, column))
        pos = match.end()
    line, column = _position(text, len(text))
    tokens.append(_Token(_Kind.EOF, "", line, column))
    return tokens


class _Parser:
    def __init__(self, text: str) -> None:
        self._tokens = _tokenize(text)
        self._pos = 0

    def _peek(self, ahead: int = 0) -> _Token:
        index = min(self._pos + ahead, len(self._tokens) - 1)
        return self._tokens[index]

    def _advance(self) -> _Token:
        token = self._peek()
        if token.kind is not _Kind.EOF:
            self._pos += 1
        return token

    def _error(self, message: str, token: _Token | None = None) -> ParseError:
        token = token or self._peek()
        found = token.kind.value if token.kind is _Kind.EOF else f"`{token.text}`"
        return ParseError(f"{message}, found {found}", token.line, token.column)

    def _is_punct(self, text: str, ahead: int = 0) -> bool:
        token = self._peek(ahead)
        return token.kind is _Kind.PUNCT and token.text == text

    def _is_word(self, word: str) -> bool:
        token = self._peek()
        return token.kind is _Kind.IDENT and token.text == word

    def _expect_punct(self, text: str) -> None:
        if not self._is_punct(text):
            raise self._error(f"expected `{text}`")
        self._advance()

    def _expect_ident(self) -> str:
        token = self._peek()
        if token.kind is not _Kind.IDENT:
            raise self._error("expected identifier")
        if token.text in _KEYWORDS:
            raise self._error("expected identifier, keywords are not allowed")
        self._advance()
        return token.text

    def _expect_string(self) -> str:
        token = self._peek()
        if token.kind is not _Kind.STRING:
            raise self._error("expected string literal")
        self._advance()
        return token.text

    def _braced(self, parse_item: Callable[[], T]) -> tuple[T, ...]:
        self._expect_punct("{")
        items: list[T] = []
        while not self._is_punct("}"):
            items.append(parse_item())
            if self._is_punct("}"):
                break
            self._expect_punct(",")
        self._expect_punct("}")
        return tuple(items)

    def _visibility(self) -> str:
        if not self._is_word("pub"):
            return ""
        self._advance()
        if not self._is_punct("("):
            return "pub"
        self._advance()
        inner: list[str] = []
        while not self._is_punct(")"):
            token = self._advance()
            if token.kind is _Kind.EOF:
                raise self._error("expected `)`", token)
            inner.append(token.text)
        self._advance()
        if not inner:
            raise self._error("expected visibility restriction")
        return f"pub({' '.join(inner)})"

    def _value_def(self) -> ValueDef:
        if self._is_punct(":", 1):
            name = self._expect_ident()
            self._expect_punct(":")
            return ValueDef(name, self._expect_string())
        name = self._expect_ident()
        return ValueDef(name, name)

    def _label_def(self) -> LabelDef:
        key = self._expect_string()
        self._expect_punct("=>")
        if self._is_punct("{"):
            return LabelDef(key, values=self._braced(self._value_def))
        return LabelDef(key, enum_name=self._expect_ident())

    def _item(self) -> LabelEnumDef | MetricDef:
        visibility = self._visibility()
        if self._is_word("struct"):
            self._advance()
            name = self._expect_ident()
            self._expect_punct(":")
            metric_type = self._expect_ident()
            labels = self._braced(self._label_def)
            return MetricDef(name, metric_type, labels, visibility)
        if not self._is_word("label_enum"):
            raise self._error("Expected `label_enum`")
        self._advance()
        name = self._expect_ident()
        return LabelEnumDef(name, self._braced(self._value_def), visibility)

    def parse(self) -> list[LabelEnumDef | MetricDef]:
        items: list[LabelEnumDef | MetricDef] = []
        while self._peek().kind is not _Kind.EOF:
            items.append(self._item())
        return items


def parse(text: str) -> list[LabelEnumDef | MetricDef]:
    """Parse definition text into label enum and metric definitions, in order.

    Raises :class:`ParseError` when the text is not well formed.
    """
    return _Parser(text).parse()