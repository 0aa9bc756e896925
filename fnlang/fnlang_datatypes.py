"""
Defines the core data types for the fnlang runtime.

This module provides the token type produced by the lexer, the closed set of
AST nodes (which double as the evaluator's run-time values), the scope chain
used for lookup and call activation, and the error taxonomy shared by every
stage of the pipeline.
"""

from abc import ABC
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

# =================================================================
# Errors
# =================================================================

class FnLangError(Exception):
    """Base class for every error raised while lexing, parsing or evaluating."""
    kind = "FnLangError"

    def __init__(self, message: str, line: Optional[int] = None, col: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.line = line
        self.col = col

    def __str__(self) -> str:
        if self.line is not None:
            return f"{self.message} ({self.line}:{self.col})"
        return self.message


class LexicalError(FnLangError):
    """An unhandleable character, or input exhausted in the middle of a token."""
    kind = "LexicalError"


class ParseError(FnLangError):
    """Unexpected token, missing keyword/punctuation or unknown operator."""
    kind = "ParseError"


class EvaluationError(FnLangError):
    """A fatal run-time error.

    Carries the offending node (for source location) and a YAML rendering of
    the whole scope chain active at the point of failure.
    """
    kind = "EvaluationError"

    def __init__(self, message: str, node: Optional['Node'] = None, scope: Optional['Environment'] = None):
        loc = getattr(node, 'loc', None) or {}
        super().__init__(message, loc.get('line'), loc.get('col'))
        self.node = node
        self.scope_dump: Optional[str] = scope.dump() if scope is not None else None


# =================================================================
# Tokens
# =================================================================

class TokenKind(Enum):
    PUNCTUATION = "punctuation"
    NUMBER = "number"
    STRING = "string"
    IDENTIFIER = "identifier"
    OPERATOR = "operator"
    KEYWORD = "keyword"


class Keyword(Enum):
    IF = "if"
    THEN = "then"
    ELSE = "else"
    FN = "fn"
    TRUE = "true"
    FALSE = "false"


KEYWORDS: Dict[str, Keyword] = {k.value: k for k in Keyword}


@dataclass(frozen=True)
class Token:
    """An immutable lexical unit. Position is informational only."""
    kind: TokenKind
    value: Any
    line: int = field(default=0, compare=False)
    col: int = field(default=0, compare=False)

    def __repr__(self) -> str:
        match self.kind:
            case TokenKind.KEYWORD:
                return f"Keyword({self.value.value})"
            case TokenKind.NUMBER:
                return f"Number({self.value:g})"
            case _:
                return f"{self.kind.name.title()}({self.value})"


# =================================================================
# AST / value nodes
# =================================================================

class Node(ABC):
    """Base class for every syntax node.

    `loc` is attached by the parser after construction and `scoped` marks a
    node that came from a `{ ... }` block; neither takes part in equality.
    """
    loc: Optional[Dict[str, int]] = None
    scoped: bool = False


class Number(Node):
    def __init__(self, value: float):
        self.value = float(value)

    def __repr__(self) -> str:
        return f"Number({self.value!r})"

    def __eq__(self, other):
        return isinstance(other, Number) and self.value == other.value


class String(Node):
    def __init__(self, value: str):
        self.value = value

    def __repr__(self) -> str:
        return f"String({self.value!r})"

    def __eq__(self, other):
        return isinstance(other, String) and self.value == other.value


class Boolean(Node):
    def __init__(self, value: bool):
        self.value = bool(value)

    def __repr__(self) -> str:
        return f"Boolean({self.value})"

    def __eq__(self, other):
        return isinstance(other, Boolean) and self.value == other.value


class Variable(Node):
    """A reference to a binding. Never a final value."""
    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return f"Variable({self.name})"

    def __eq__(self, other):
        return isinstance(other, Variable) and self.name == other.name


NativeCallback = Callable[[List[Node]], Node]


class Function(Node):
    """A callable value.

    User functions carry a parameter list and a body. Host functions carry a
    `native` callback and the body is never evaluated. `closure` is only set
    when the evaluator runs with lexical closures enabled.
    """
    def __init__(self, parameters: List[str], body: Node,
                 native: Optional[NativeCallback] = None,
                 name: Optional[str] = None,
                 closure: Optional['Environment'] = None):
        self.parameters = list(parameters)
        self.body = body
        self.native = native
        self.name = name
        self.closure = closure

    @property
    def is_native(self) -> bool:
        return self.native is not None

    def __repr__(self) -> str:
        if self.native is not None:
            return f"Function({self.parameters!r}, [native code])"
        return f"Function({self.parameters!r}, {self.body!r})"

    def __eq__(self, other):
        if not isinstance(other, Function):
            return False
        # name and closure are not compared
        if self.native is not None or other.native is not None:
            return self.native is other.native
        return self.parameters == other.parameters and self.body == other.body


class Call(Node):
    def __init__(self, function: Node, arguments: List[Node]):
        self.function = function
        self.arguments = list(arguments)

    def __repr__(self) -> str:
        return f"Call({self.function!r}, {self.arguments!r})"

    def __eq__(self, other):
        return isinstance(other, Call) and self.function == other.function and self.arguments == other.arguments


class If(Node):
    def __init__(self, condition: Node, then: Node, otherwise: Optional[Node] = None):
        self.condition = condition
        self.then = then
        self.otherwise = otherwise

    def __repr__(self) -> str:
        return f"If({self.condition!r}, {self.then!r}, {self.otherwise!r})"

    def __eq__(self, other):
        return (isinstance(other, If) and self.condition == other.condition
                and self.then == other.then and self.otherwise == other.otherwise)


class Assign(Node):
    def __init__(self, operator: str, left: Node, right: Node):
        self.operator = operator
        self.left = left
        self.right = right

    def __repr__(self) -> str:
        return f"Assign({self.left!r} {self.operator} {self.right!r})"

    def __eq__(self, other):
        return (isinstance(other, Assign) and self.operator == other.operator
                and self.left == other.left and self.right == other.right)


class Binary(Node):
    def __init__(self, operator: str, left: Node, right: Node):
        self.operator = operator
        self.left = left
        self.right = right

    def __repr__(self) -> str:
        return f"Binary({self.left!r} {self.operator} {self.right!r})"

    def __eq__(self, other):
        return (isinstance(other, Binary) and self.operator == other.operator
                and self.left == other.left and self.right == other.right)


class Program(Node):
    """A sequential block of statements."""
    def __init__(self, statements: List[Node]):
        self.statements = list(statements)

    def __len__(self) -> int:
        return len(self.statements)

    def __iter__(self) -> Iterator[Node]:
        return iter(self.statements)

    def __repr__(self) -> str:
        return f"Program({self.statements!r})"

    def __eq__(self, other):
        return isinstance(other, Program) and self.statements == other.statements


VALUE_TYPES: Tuple[type, ...] = (Number, String, Boolean, Function)


def is_value(node: Any) -> bool:
    """True for the four node kinds that may be the result of evaluation."""
    return isinstance(node, VALUE_TYPES)


# =================================================================
# Environment
# =================================================================

class Environment:
    """A scope frame: name -> value bindings plus an optional parent.

    Writes only ever go to this frame; reads walk the parent chain.
    """
    def __init__(self, parent: Optional['Environment'] = None):
        self.bindings: Dict[str, Node] = {}
        self.parent = parent

    def define(self, name: str, value: Node):
        """Insert or overwrite a binding in this scope only."""
        if not isinstance(name, str):
            raise TypeError(f"Environment key must be a str, not {type(name)}")
        self.bindings[name] = value

    def find_owner(self, name: str) -> Optional['Environment']:
        """Finds the scope in the chain (self -> parent -> ...) that owns name."""
        scope = self
        while scope is not None:
            if name in scope.bindings:
                return scope
            scope = scope.parent
        return None

    def get(self, name: str) -> Node:
        owner = self.find_owner(name)
        if owner is None:
            raise EvaluationError(f"Undefined variable '{name}'", scope=self)
        return owner.bindings[name]

    def __setitem__(self, name: str, value: Node):
        self.define(name, value)

    def __getitem__(self, name: str) -> Node:
        return self.get(name)

    def __contains__(self, name: Any) -> bool:
        return isinstance(name, str) and self.find_owner(name) is not None

    def keys(self):
        """Returns a view of keys in the current scope only."""
        return self.bindings.keys()

    def chain(self) -> Iterator['Environment']:
        """Yields this scope and then each ancestor, innermost first."""
        scope = self
        while scope is not None:
            yield scope
            scope = scope.parent

    def depth(self) -> int:
        return sum(1 for _ in self.chain()) - 1

    def dump(self) -> str:
        """Renders every frame of the chain as YAML, innermost first."""
        from fnlang.fnlang_serialize import serialize
        frames = []
        for depth, scope in enumerate(self.chain()):
            frames.append({'scope': depth, 'bindings': dict(scope.bindings)})
        return serialize(frames, fmt='yaml')

    def __repr__(self) -> str:
        keys = ', '.join(self.bindings.keys())
        parent_id = f", parent=#{id(self.parent)}" if self.parent else ""
        return f"<Environment bindings=[{keys}]{parent_id}>"
