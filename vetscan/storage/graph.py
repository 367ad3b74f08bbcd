"""Property graph stored as quads and queried with a chained path language.

Queries take the form ``g.V("alice").Out("knows").Has("name", "Bob").All()``.
Supported steps: V/Vertex, Out, In, Both, Has, HasR, Is, Tag/As, Back,
Unique, Limit, Skip; terminals All and GetLimit; and ``g.Emit(value)``.
"""

from __future__ import annotations

import re
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

QUAD_GRAPH_VERSION = "1.0.0"
QUERY_MAX_LIMIT = 10000
_INTERNAL_META_CONTEXT = "internal_meta"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS quads (
    subject TEXT NOT NULL,
    predicate TEXT NOT NULL,
    object TEXT NOT NULL,
    label TEXT NOT NULL DEFAULT '',
    UNIQUE (subject, predicate, object, label)
)
"""


class GraphQueryError(Exception):
    """Raised when a query cannot be parsed, run or converted."""


@dataclass
class Node:
    """A node in a property graph; callers keep ``id`` unique."""

    id: str = ""
    label: str = ""
    properties: dict[str, str] = field(default_factory=dict)


@dataclass
class Edge:
    """A named, directed relation between two nodes."""

    name: str
    from_node: Node
    to_node: Node
    label: str = ""
    properties: dict[str, str] = field(default_factory=dict)


@dataclass
class LocalPropertyGraphConfig:
    """Settings for a graph stored on the local file system."""

    name: str = ""
    database_path: str = ""
    open_existing: bool = False


@dataclass
class _Result:
    tags: dict[str, str] = field(default_factory=dict)
    val: Any = None


@dataclass
class _Path:
    current: str
    tags: dict[str, str]


class QueryResult:
    """Results produced by a graph query."""

    def __init__(self, results: list[_Result]) -> None:
        self._results = list(results)

    def strings(self) -> list[str]:
        """Return every tagged value, or emitted string, as a flat list."""
        out: list[str] = []
        for result in self._results:
            if result.val is None:
                out.extend(value for value in result.tags.values() if value is not None)
            elif isinstance(result.val, str):
                out.append(result.val)
            else:
                raise GraphQueryError(f"unexpected result type: {type(result.val).__name__}")
        return out

    def nodes(self) -> list[Node]:
        """Rebuild nodes from the results, with tags as properties."""
        out: list[Node] = []
        for result in self._results:
            if result.val is None:
                out.append(Node(id=result.tags.get("id", ""), properties=dict(result.tags)))
            elif isinstance(result.val, str):
                out.append(Node(id=result.val))
            else:
                raise GraphQueryError(f"unexpected result type: {type(result.val).__name__}")
        return out


_LEXEME = re.compile(
    r"""
    (?P<ws>\s+|//[^\n]*)
  | (?P<str>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
  | (?P<num>-?\d+(?:\.\d+)?)
  | (?P<name>[A-Za-z_$][A-Za-z0-9_$]*)
  | (?P<punct>[.()\[\],;])
    """,
    re.VERBOSE,
)

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r"}
_CONSTANTS = {"null": None, "undefined": None, "true": True, "false": False}


def _unquote(text: str) -> str:
    return re.sub(r"\\(.)", lambda m: _ESCAPES.get(m.group(1), m.group(1)), text[1:-1])


def _lex(source: str) -> list[tuple[str, str]]:
    lexemes = []
    pos = 0
    while pos < len(source):
        match = _LEXEME.match(source, pos)
        if match is None:
            raise GraphQueryError(f"unexpected character {source[pos]!r} at offset {pos}")
        kind = match.lastgroup
        if kind != "ws":
            lexemes.append((kind, match.group()))
        pos = match.end()
    return lexemes


class _Parser:
    def __init__(self, source: str) -> None:
        self._lexemes = _lex(source)
        self._pos = 0

    def statements(self) -> list[list[tuple[str, list[Any]]]]:
        chains = []
        while self._pos < len(self._lexemes):
            if self._peek_punct(";"):
                self._pos += 1
                continue
            chains.append(self._chain())
        return chains

    def _advance(self) -> tuple[str, str]:
        if self._pos >= len(self._lexemes):
            raise GraphQueryError("unexpected end of query")
        lexeme = self._lexemes[self._pos]
        self._pos += 1
        return lexeme

    def _peek_punct(self, char: str) -> bool:
        return self._pos < len(self._lexemes) and self._lexemes[self._pos] == ("punct", char)

    def _expect(self, kind: str, value: str | None = None) -> str:
        got_kind, got_value = self._advance()
        if got_kind != kind or (value is not None and got_value != value):
            raise GraphQueryError(f"expected {value or kind}, got {got_value!r}")
        return got_value

    def _chain(self) -> list[tuple[str, list[Any]]]:
        root = self._expect("name")
        if root not in ("g", "graph"):
            raise GraphQueryError(f"unknown query root {root!r}")
        calls = []
        while self._peek_punct("."):
            self._pos += 1
            name = self._expect("name")
            self._expect("punct", "(")
            calls.append((name, self._arguments(")")))
        if not calls:
            raise GraphQueryError("query has no steps")
        return calls

    def _arguments(self, closer: str) -> list[Any]:
        args: list[Any] = []
        if self._peek_punct(closer):
            self._pos += 1
            return args
        while True:
            args.append(self._literal())
            if self._peek_punct(","):
                self._pos += 1
                continue
            self._expect("punct", closer)
            return args

    def _literal(self) -> Any:
        kind, value = self._advance()
        if kind == "str":
            return _unquote(value)
        if kind == "num":
            return float(value) if "." in value else int(value)
        if kind == "name" and value in _CONSTANTS:
            return _CONSTANTS[value]
        if (kind, value) == ("punct", "["):
            return self._arguments("]")
        raise GraphQueryError(f"unexpected input {value!r}")


def _strings(args: list[Any]) -> list[str]:
    out: list[str] = []
    for arg in args:
        if isinstance(arg, str):
            out.append(arg)
        elif isinstance(arg, list):
            out.extend(_strings(arg))
        else:
            raise GraphQueryError(f"expected string argument, got {arg!r}")
    return out


def _count(name: str, args: list[Any]) -> int:
    if len(args) != 1 or not isinstance(args[0], int) or isinstance(args[0], bool) or args[0] < 0:
        raise GraphQueryError(f"{name}() takes one non-negative integer")
    return args[0]


def _edge_subject(edge: Edge) -> str:
    return f'"{edge.from_node.id}" -- "{edge.name}" -> "{edge.to_node.id}" "{edge.label}"'


class PropertyGraph:
    """A quad-backed property graph; use the factory functions to create one."""

    def __init__(self, config: LocalPropertyGraphConfig, connection: sqlite3.Connection) -> None:
        self.config = config
        self._conn = connection
        with self._conn:
            self._conn.execute(_SCHEMA)
            self._add_quad("_graph", "version", QUAD_GRAPH_VERSION, _INTERNAL_META_CONTEXT)

    def __enter__(self) -> PropertyGraph:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def link(self, edge: Edge) -> None:
        """Store both nodes' properties, the edge and the edge's properties."""
        with self._conn:
            for node in (edge.from_node, edge.to_node):
                for key, value in node.properties.items():
                    self._add_quad(node.id, key, value, node.label)
            self._add_quad(edge.from_node.id, edge.name, edge.to_node.id, edge.label)
            subject = _edge_subject(edge)
            for key, value in edge.properties.items():
                self._add_quad(subject, key, value, edge.label)

    def query(self, query: str) -> QueryResult:
        """Run a path query and collect at most QUERY_MAX_LIMIT results."""
        results: list[_Result] = []
        for calls in _Parser(query).statements():
            results.extend(self._evaluate(calls))
            if len(results) >= QUERY_MAX_LIMIT:
                break
        return QueryResult(results[:QUERY_MAX_LIMIT])

    def close(self) -> None:
        """Release the underlying store."""
        self._conn.close()

    def _add_quad(self, subject: str, predicate: str, obj: str, label: str) -> None:
        self._conn.execute(
            "INSERT OR IGNORE INTO quads (subject, predicate, object, label) VALUES (?, ?, ?, ?)",
            (subject, predicate, obj, label or ""),
        )

    def _linked(self, node: str, predicates: list[str] | None, outbound: bool) -> list[tuple[str, str]]:
        near, far = ("subject", "object") if outbound else ("object", "subject")
        sql = f"SELECT predicate, {far} FROM quads WHERE {near} = ?"
        params: list[str] = [node]
        if predicates is not None:
            if not predicates:
                return []
            sql += f" AND predicate IN ({','.join('?' * len(predicates))})"
            params.extend(predicates)
        return self._conn.execute(sql + " ORDER BY rowid", params).fetchall()

    def _has(self, node: str, predicate: str, values: list[str] | None, outbound: bool) -> bool:
        return any(values is None or other in values for _, other in self._linked(node, [predicate], outbound))

    def _all_values(self) -> list[str]:
        rows = self._conn.execute("SELECT subject, predicate, object, label FROM quads ORDER BY rowid")
        return list(dict.fromkeys(value for row in rows for value in row if value))

    def _evaluate(self, calls: list[tuple[str, list[Any]]]) -> list[_Result]:
        name, args = calls[0]
        if name == "Emit":
            if len(calls) > 1 or len(args) != 1:
                raise GraphQueryError("Emit() takes exactly one value and ends the query")
            return [_Result(val=args[0])]
        if name not in ("V", "Vertex"):
            raise GraphQueryError(f"query must start with V() or Emit(), got {name}()")
        starts = _strings(args) if args else self._all_values()
        paths = [_Path(node, {}) for node in starts]

        for index, (step, step_args) in enumerate(calls[1:], start=1):
            if step in ("All", "GetLimit"):
                if index != len(calls) - 1:
                    raise GraphQueryError(f"{step}() must end the query")
                if step == "GetLimit":
                    paths = paths[: _count(step, step_args)]
                return [_Result(tags={**p.tags, "id": p.current}) for p in paths]
            paths = self._step(step, step_args, paths)
        return []

    def _step(self, step: str, args: list[Any], paths: list[_Path]) -> list[_Path]:
        if step in ("Out", "In", "Both"):
            predicates = _strings(args[:1]) if args and args[0] is not None else None
            tag_names = _strings(args[1:2])
            directions = {"Out": (True,), "In": (False,), "Both": (True, False)}[step]
            moved = []
            for path in paths:
                for outbound in directions:
                    for predicate, other in self._linked(path.current, predicates, outbound):
                        tags = dict(path.tags)
                        tags.update(dict.fromkeys(tag_names, predicate))
                        moved.append(_Path(other, tags))
            return moved
        if step in ("Has", "HasR"):
            if not args or not isinstance(args[0], str):
                raise GraphQueryError(f"{step}() needs a predicate name")
            values = _strings(args[1:]) or None
            outbound = step == "Has"
            return [p for p in paths if self._has(p.current, args[0], values, outbound)]
        if step == "Is":
            wanted = set(_strings(args))
            return [p for p in paths if p.current in wanted]
        if step in ("Tag", "As"):
            names = _strings(args)
            return [_Path(p.current, {**p.tags, **dict.fromkeys(names, p.current)}) for p in paths]
        if step == "Back":
            if len(args) != 1 or not isinstance(args[0], str):
                raise GraphQueryError("Back() takes one tag name")
            return [_Path(p.tags[args[0]], dict(p.tags)) for p in paths if args[0] in p.tags]
        if step == "Unique":
            seen: set[str] = set()
            unique = []
            for path in paths:
                if path.current not in seen:
                    seen.add(path.current)
                    unique.append(path)
            return unique
        if step == "Limit":
            return paths[: _count(step, args)]
        if step == "Skip":
            return paths[_count(step, args):]
        raise GraphQueryError(f"unsupported query step {step}()")


def new_in_memory_property_graph(config: LocalPropertyGraphConfig) -> PropertyGraph:
    """Create a graph held in memory; the database path is ignored."""
    return PropertyGraph(config, sqlite3.connect(":memory:"))


def new_property_graph(config: LocalPropertyGraphConfig) -> PropertyGraph:
    """Create a graph at the configured path, or open it when open_existing is set."""
    path = Path(config.database_path)
    if config.open_existing:
        if not path.exists():
            raise FileNotFoundError(f"no graph database at {path}")
    elif path.exists():
        raise FileExistsError(f"failed to initialize quad store: {path} already exists")
    return PropertyGraph(config, sqlite3.connect(path))