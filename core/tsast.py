"""Parser for the TypeScript declaration subset emitted by openapi-typescript.

Produces a small AST of dataclass nodes. Every node records the ``start`` and
``end`` offsets of the source it was parsed from, so the original spelling of
any type can be recovered with ``node.text(source)``.

Supported statements: ``interface`` (with ``extends``) and ``type`` aliases,
optionally ``export``ed or ``declare``d. Anything else (imports, functions) is
skipped. Supported types: unions, intersections, arrays, indexed access, type
references with arguments, parenthesised types, literals, keywords, tuples,
type operators and type literals with property, index and mapped members.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Final, Literal

KEYWORD_TYPES: Final[frozenset[str]] = frozenset(
    {
        "any",
        "bigint",
        "boolean",
        "never",
        "null",
        "number",
        "object",
        "string",
        "symbol",
        "this",
        "undefined",
        "unknown",
        "void",
    }
)
TYPE_OPERATORS: Final[frozenset[str]] = frozenset(
    {"keyof", "typeof", "readonly", "unique", "infer"}
)
_STATEMENT_STARTS: Final[frozenset[str]] = frozenset(
    {"export", "interface", "type", "import", "declare"}
)

TokenKind = Literal["ident", "string", "number", "punct", "eof"]

_TOKEN_RE = re.compile(
    r"""
     (?P<ws>\s+)
    |(?P<line_comment>//[^\n]*)
    |(?P<block_comment>/\*.*?\*/)
    |(?P<string>"(?:[^"\\\n]|\\.)*"|'(?:[^'\\\n]|\\.)*'|`(?:[^`\\]|\\.)*`)
    |(?P<number>\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)
    |(?P<ident>[A-Za-z_$][A-Za-z0-9_$]*)
    |(?P<punct>\.\.\.|[{}()\[\]<>;,:?|&=.+\-*/!@#%^~])
    """,
    re.VERBOSE | re.DOTALL,
)
_ESCAPES: Final[dict[str, str]] = {"n": "\n", "t": "\t", "r": "\r", "0": "\0"}


class TSParseError(ValueError):
    def __init__(self, message: str, source: str, offset: int) -> None:
        line = source.count("\n", 0, offset) + 1
        column = offset - (source.rfind("\n", 0, offset) + 1) + 1
        super().__init__(f"{message} at line {line}, column {column}")
        self.line = line
        self.column = column


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: str
    start: int
    end: int


def _unquote(raw: str) -> str:
    inner = raw[1:-1]
    return re.sub(r"\\(.)", lambda m: _ESCAPES.get(m.group(1), m.group(1)), inner)


def tokenize(source: str) -> list[Token]:
    tokens: list[Token] = []
    pos = 0
    length = len(source)
    while pos < length:
        if source.startswith("/*", pos) and source.find("*/", pos + 2) < 0:
            raise TSParseError("unterminated comment", source, pos)
        m = _TOKEN_RE.match(source, pos)
        if m is None:
            raise TSParseError(f"unexpected character {source[pos]!r}", source, pos)
        kind = m.lastgroup
        if kind in ("string", "number", "ident", "punct"):
            tokens.append(Token(kind, m.group(), m.start(), m.end()))
        pos = m.end()
    tokens.append(Token("eof", "", length, length))
    return tokens


# -- AST -------------------------------------------------------------------


@dataclass
class Node:
    start: int
    end: int

    def text(self, source: str) -> str:
        return source[self.start : self.end]


@dataclass
class KeywordType(Node):
    name: str


@dataclass
class LiteralType(Node):
    raw: str


@dataclass
class TypeReference(Node):
    name: str
    type_args: list[Node] = field(default_factory=list)


@dataclass
class ArrayType(Node):
    element: Node


@dataclass
class IndexedAccessType(Node):
    object_type: Node
    index_type: Node


@dataclass
class UnionType(Node):
    types: list[Node]


@dataclass
class IntersectionType(Node):
    types: list[Node]


@dataclass
class ParenthesizedType(Node):
    inner: Node


@dataclass
class TupleType(Node):
    elements: list[Node]


@dataclass
class TypeOperator(Node):
    operator: str
    operand: Node


@dataclass
class PropertySignature(Node):
    key: str
    key_kind: Literal["identifier", "string", "number"]
    optional: bool
    readonly: bool
    type: Node | None


@dataclass
class IndexSignature(Node):
    param: str
    key_type: Node
    type: Node


@dataclass
class MappedMember(Node):
    param: str
    constraint: Node
    optional: bool
    type: Node | None


@dataclass
class TypeLiteral(Node):
    members: list[Node]


@dataclass
class TypeParameter(Node):
    name: str
    constraint: Node | None = None
    default: Node | None = None


@dataclass
class InterfaceDeclaration(Node):
    name: str
    body: TypeLiteral
    exported: bool = False
    extends: list[Node] = field(default_factory=list)
    type_params: list[TypeParameter] = field(default_factory=list)


@dataclass
class TypeAliasDeclaration(Node):
    name: str
    type: Node
    exported: bool = False
    type_params: list[TypeParameter] = field(default_factory=list)


Declaration = InterfaceDeclaration | TypeAliasDeclaration


@dataclass
class Program(Node):
    body: list[Declaration]


# -- Parser ----------------------------------------------------------------


class Parser:
    def __init__(self, source: str) -> None:
        self._source = source
        self._tokens = tokenize(source)
        self._pos = 0

    # token helpers

    def _peek(self, offset: int = 0) -> Token:
        idx = min(self._pos + offset, len(self._tokens) - 1)
        return self._tokens[idx]

    def _next(self) -> Token:
        tok = self._peek()
        if tok.kind != "eof":
            self._pos += 1
        return tok

    def _prev_end(self) -> int:
        return self._tokens[self._pos - 1].end if self._pos else 0

    def _is(self, value: str, offset: int = 0) -> bool:
        tok = self._peek(offset)
        return tok.kind in ("punct", "ident") and tok.value == value

    def _accept(self, value: str) -> bool:
        if self._is(value):
            self._pos += 1
            return True
        return False

    def _expect(self, value: str) -> Token:
        tok = self._peek()
        if not self._is(value):
            self._fail(f"expected {value!r} but found {tok.value or 'end of input'!r}")
        return self._next()

    def _expect_ident(self) -> Token:
        tok = self._peek()
        if tok.kind != "ident":
            self._fail(f"expected identifier but found {tok.value or 'end of input'!r}")
        return self._next()

    def _fail(self, message: str) -> None:
        raise TSParseError(message, self._source, self._peek().start)

    # statements

    def parse_program(self) -> Program:
        body: list[Declaration] = []
        while self._peek().kind != "eof":
            if self._accept(";"):
                continue
            decl = self._parse_statement()
            if decl is not None:
                body.append(decl)
        return Program(start=0, end=len(self._source), body=body)

    def _parse_statement(self) -> Declaration | None:
        start = self._peek().start
        exported = False
        if self._is("export") and not self._is("default", 1) and not self._is("{", 1):
            self._next()
            exported = True
        self._accept("declare")
        if self._is("interface") and self._peek(1).kind == "ident":
            return self._parse_interface(start, exported)
        if self._is("type") and self._peek(1).kind == "ident":
            return self._parse_type_alias(start, exported)
        self._skip_statement()
        return None

    def _skip_statement(self) -> None:
        depth = 0
        while self._peek().kind != "eof":
            tok = self._next()
            if tok.kind == "punct" and tok.value in ("(", "{", "["):
                depth += 1
            elif tok.kind == "punct" and tok.value in (")", "}", "]"):
                depth -= 1
            elif depth <= 0 and tok.value == ";":
                return
            if depth <= 0 and self._at_statement_start(tok):
                return

    def _at_statement_start(self, prev: Token) -> bool:
        # Without semicolons a new line starting with a keyword ends the statement.
        nxt = self._peek()
        if nxt.kind != "ident" or nxt.value not in _STATEMENT_STARTS:
            return False
        return prev.value == "}" or "\n" in self._source[prev.end : nxt.start]

    def _parse_type_params(self) -> list[TypeParameter]:
        params: list[TypeParameter] = []
        if not self._accept("<"):
            return params
        while not self._is(">"):
            name = self._expect_ident()
            constraint = self.parse_type() if self._accept("extends") else None
            default = self.parse_type() if self._accept("=") else None
            params.append(
                TypeParameter(
                    start=name.start,
                    end=self._prev_end(),
                    name=name.value,
                    constraint=constraint,
                    default=default,
                )
            )
            if not self._accept(","):
                break
        self._expect(">")
        return params

    def _parse_interface(self, start: int, exported: bool) -> InterfaceDeclaration:
        self._expect("interface")
        name = self._expect_ident().value
        type_params = self._parse_type_params()
        extends: list[Node] = []
        if self._accept("extends"):
            extends.append(self._parse_postfix())
            while self._accept(","):
                extends.append(self._parse_postfix())
        body = self._parse_type_literal()
        return InterfaceDeclaration(
            start=start,
            end=body.end,
            name=name,
            body=body,
            exported=exported,
            extends=extends,
            type_params=type_params,
        )

    def _parse_type_alias(self, start: int, exported: bool) -> TypeAliasDeclaration:
        self._expect("type")
        name = self._expect_ident().value
        type_params = self._parse_type_params()
        self._expect("=")
        aliased = self.parse_type()
        self._accept(";")
        return TypeAliasDeclaration(
            start=start,
            end=self._prev_end(),
            name=name,
            type=aliased,
            exported=exported,
            type_params=type_params,
        )

    # types

    def parse_type(self) -> Node:
        return self._parse_union()

    def _parse_union(self) -> Node:
        self._accept("|")
        types = [self._parse_intersection()]
        while self._accept("|"):
            types.append(self._parse_intersection())
        if len(types) == 1:
            return types[0]
        return UnionType(start=types[0].start, end=types[-1].end, types=types)

    def _parse_intersection(self) -> Node:
        self._accept("&")
        types = [self._parse_postfix()]
        while self._accept("&"):
            types.append(self._parse_postfix())
        if len(types) == 1:
            return types[0]
        return IntersectionType(start=types[0].start, end=types[-1].end, types=types)

    def _parse_postfix(self) -> Node:
        node = self._parse_primary()
        while self._is("["):
            self._next()
            if self._accept("]"):
                node = ArrayType(start=node.start, end=self._prev_end(), element=node)
                continue
            index = self.parse_type()
            self._expect("]")
            node = IndexedAccessType(
                start=node.start, end=self._prev_end(), object_type=node, index_type=index
            )
        return node

    def _parse_primary(self) -> Node:
        tok = self._peek()
        if tok.kind == "string":
            self._next()
            return LiteralType(start=tok.start, end=tok.end, raw=tok.value)
        if tok.kind == "number":
            self._next()
            return LiteralType(start=tok.start, end=tok.end, raw=tok.value)
        if tok.kind == "punct":
            if tok.value == "-" and self._peek(1).kind == "number":
                self._next()
                num = self._next()
                return LiteralType(start=tok.start, end=num.end, raw=f"-{num.value}")
            if tok.value == "{":
                return self._parse_type_literal()
            if tok.value == "(":
                self._next()
                inner = self.parse_type()
                self._expect(")")
                return ParenthesizedType(start=tok.start, end=self._prev_end(), inner=inner)
            if tok.value == "[":
                return self._parse_tuple()
        if tok.kind == "ident":
            if tok.value in KEYWORD_TYPES:
                self._next()
                return KeywordType(start=tok.start, end=tok.end, name=tok.value)
            if tok.value in ("true", "false"):
                self._next()
                return LiteralType(start=tok.start, end=tok.end, raw=tok.value)
            if tok.value in TYPE_OPERATORS and self._starts_operand(1):
                self._next()
                operand = self._parse_postfix()
                return TypeOperator(
                    start=tok.start, end=operand.end, operator=tok.value, operand=operand
                )
            return self._parse_reference()
        self._fail(f"unexpected token {tok.value or 'end of input'!r}")
        raise AssertionError("unreachable")

    def _starts_operand(self, offset: int) -> bool:
        tok = self._peek(offset)
        if tok.kind in ("ident", "string", "number"):
            return True
        return tok.kind == "punct" and tok.value in ("{", "(", "[")

    def _parse_reference(self) -> TypeReference:
        first = self._expect_ident()
        name = first.value
        while self._is(".") and self._peek(1).kind == "ident":
            self._next()
            name = f"{name}.{self._next().value}"
        args: list[Node] = []
        if self._accept("<"):
            args.append(self.parse_type())
            while self._accept(","):
                args.append(self.parse_type())
            self._expect(">")
        return TypeReference(
            start=first.start, end=self._prev_end(), name=name, type_args=args
        )

    def _parse_tuple(self) -> TupleType:
        start = self._expect("[").start
        elements: list[Node] = []
        while not self._is("]"):
            self._accept("...")
            elements.append(self.parse_type())
            if not self._accept(","):
                break
        self._expect("]")
        return TupleType(start=start, end=self._prev_end(), elements=elements)

    def _parse_type_literal(self) -> TypeLiteral:
        start = self._expect("{").start
        members: list[Node] = []
        while not self._is("}"):
            if self._peek().kind == "eof":
                self._fail("unterminated type literal")
            members.append(self._parse_member())
            while self._accept(";") or self._accept(","):
                pass
        self._expect("}")
        return TypeLiteral(start=start, end=self._prev_end(), members=members)

    def _parse_member(self) -> Node:
        start = self._peek().start
        readonly = False
        if (self._is("+") or self._is("-")) and self._is("readonly", 1):
            self._next()
        if self._is("readonly") and not (
            self._is(":", 1) or self._is("?", 1) or self._is("(", 1)
        ):
            self._next()
            readonly = True

        if self._is("["):
            if self._peek(1).kind == "ident" and self._is(":", 2):
                return self._parse_index_signature(start)
            if self._peek(1).kind == "ident" and self._is("in", 2):
                return self._parse_mapped_member(start)
            self._fail("computed property keys are not supported")

        tok = self._peek()
        if tok.kind == "ident":
            key, key_kind = tok.value, "identifier"
        elif tok.kind == "string":
            key, key_kind = _unquote(tok.value), "string"
        elif tok.kind == "number":
            key, key_kind = tok.value, "number"
        else:
            self._fail(f"expected property name but found {tok.value or 'end of input'!r}")
            raise AssertionError("unreachable")
        self._next()
        optional = self._accept("?")
        if self._is("(") or self._is("<"):
            self._fail("method signatures are not supported")
        annotation = self.parse_type() if self._accept(":") else None
        return PropertySignature(
            start=start,
            end=self._prev_end(),
            key=key,
            key_kind=key_kind,
            optional=optional,
            readonly=readonly,
            type=annotation,
        )

    def _parse_index_signature(self, start: int) -> IndexSignature:
        self._expect("[")
        param = self._expect_ident().value
        self._expect(":")
        key_type = self.parse_type()
        self._expect("]")
        self._accept("?")
        self._expect(":")
        value = self.parse_type()
        return IndexSignature(
            start=start, end=self._prev_end(), param=param, key_type=key_type, type=value
        )

    def _parse_mapped_member(self, start: int) -> MappedMember:
        self._expect("[")
        param = self._expect_ident().value
        self._expect("in")
        constraint = self.parse_type()
        if self._accept("as"):
            self.parse_type()
        self._expect("]")
        optional = False
        if self._is("+") or self._is("-"):
            modifier = self._next().value
            self._expect("?")
            optional = modifier == "+"
        elif self._accept("?"):
            optional = True
        value = self.parse_type() if self._accept(":") else None
        return MappedMember(
            start=start,
            end=self._prev_end(),
            param=param,
            constraint=constraint,
            optional=optional,
            type=value,
        )


def parse(source: str) -> Program:
    """Parse TypeScript declarations into a :class:`Program`."""
    return Parser(source).parse_program()


def members_of(node: Node | None) -> Sequence[Node]:
    """Members of an interface body or type literal; empty for anything else."""
    if isinstance(node, InterfaceDeclaration):
        return node.body.members
    if isinstance(node, TypeLiteral):
        return node.members
    return ()
