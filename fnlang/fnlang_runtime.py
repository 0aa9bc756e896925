# fnlang_runtime.py

import inspect
import os
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Optional, Sequence

from fnlang.fnlang_datatypes import (
    Boolean, Environment, EvaluationError, FnLangError, Function, LexicalError, NativeCallback,
    Node, ParseError
)
from fnlang.fnlang_interpreter import Evaluator
from fnlang.fnlang_parser import parse_source
from fnlang.fnlang_printer import Printer
from fnlang.fnlang_serialize import from_builtin, to_builtin

# ===================================================================
# 1. Native functions & host binding
# ===================================================================

def native_function(callback: NativeCallback, parameters: Sequence[str] = (), name: Optional[str] = None) -> Function:
    """Wraps a host callback as an fnlang Function value. The body is never evaluated."""
    return Function(list(parameters), Boolean(True), native=callback, name=name)


def fnlang_api_method(func):
    """A decorator to explicitly mark host methods as callable from fnlang."""
    func._is_fnlang_api = True
    return func


class FnLangHost:
    """Base class for Python objects whose API is exposed to scripts."""

    def api_methods(self) -> Dict[str, Callable]:
        methods = {}
        for name, member in inspect.getmembers(self):
            if not callable(member):
                continue
            # Decorator may mark the bound method or the underlying function
            is_api = getattr(member, "_is_fnlang_api", False)
            if not is_api:
                func = getattr(member, "__func__", None)
                is_api = func is not None and getattr(func, "_is_fnlang_api", False)
            if is_api:
                methods[name] = member
        return methods


def _wrap_host_method(name: str, method: Callable) -> Function:
    try:
        params = [p for p in inspect.signature(method).parameters]
    except (TypeError, ValueError):
        params = []

    def callback(args: List[Node]) -> Node:
        return from_builtin(method(*[to_builtin(a) for a in args]))

    return native_function(callback, params, name=name)


# ===================================================================
# 2. The Standard Library
# ===================================================================

class StdLib:
    """Contains Python implementations for all fnlang built-ins.

    Every method named `_<name>` is bound into a scope as `<name>`.
    """
    def __init__(self, write: Callable[[str], Any], printer: Optional[Printer] = None):
        self.write = write
        self.printer = printer or Printer()

    def bind(self, scope: Environment):
        for name, member in inspect.getmembers(self):
            if name.startswith('_') and not name.startswith('__') and callable(member):
                fn_name = name[1:]
                params = list(inspect.signature(member).parameters)
                scope.define(fn_name, native_function(member, params, name=fn_name))

    def _print(self, args: List[Node]) -> Node:
        self.write("".join(self.printer.display(a) for a in args))
        return Boolean(True)

    def _println(self, args: List[Node]) -> Node:
        self.write("".join(self.printer.display(a) for a in args) + "\n")
        return Boolean(True)


# ===================================================================
# 3. Script Execution
# ===================================================================

Location = Dict[str, Any]

@dataclass
class ExecutionResult:
    """The structured result of a script execution."""
    status: Literal['success', 'error']
    value: Any = None
    error_message: Optional[str] = None
    error_token: Optional[Location] = None
    side_effects: List[Dict] = field(default_factory=list)

    @property
    def output(self) -> str:
        """Everything the script wrote through print/println."""
        return "".join(e.get('message', '') for e in self.side_effects if e.get('topics') == ['stdout'])

    def format_error(self) -> str:
        """Prefixes the error with its source position when one is known."""
        if self.status != 'error':
            return ""
        text = self.error_message or "Unknown error"
        loc = self.error_token or {}
        if loc.get('line') is None or text.startswith("Error on line "):
            return text
        where = f"line {loc['line']}"
        if loc.get('col') is not None:
            where += f", col {loc['col']}"
        return f"Error on {where}: {text}"


class ScriptRunner:
    """Parses and executes fnlang code against a persistent root scope."""

    MAX_TRACE_FRAMES = 12
    # Each fnlang call costs about a dozen interpreter frames.
    DEFAULT_RECURSION_LIMIT = 20000

    def __init__(self, host_object: Optional[FnLangHost] = None, load_stdlib: bool = True,
                 lexical_closures: bool = False, recursion_limit: Optional[int] = None,
                 echo: bool = False):
        self.host_object = host_object
        self.root_scope = Environment()
        self.evaluator = Evaluator(lexical_closures=lexical_closures)
        self.printer = Printer()
        self.side_effects: List[Dict] = []
        self.echo = echo
        if recursion_limit is None:
            recursion_limit = int(os.environ.get("FNLANG_RECURSION_LIMIT") or self.DEFAULT_RECURSION_LIMIT)
        self.recursion_limit = recursion_limit

        if load_stdlib:
            StdLib(self._emit_stdout, self.printer).bind(self.root_scope)
        self._bind_host_api_methods()

    def _emit_stdout(self, text: str):
        self.side_effects.append({'topics': ['stdout'], 'message': text})
        if self.echo:
            sys.stdout.write(text)
            sys.stdout.flush()

    def _bind_host_api_methods(self):
        """Bind @fnlang_api_method methods of the host into the root scope."""
        host = self.host_object
        if not host:
            return
        for name, member in host.api_methods().items():
            self.root_scope.define(name, _wrap_host_method(name, member))

    # ------------------------------------------------------------------ error formatting

    def _source_context(self, source: str, line: int, col: Optional[int], radius: int = 2) -> str:
        """Source lines around `line`, the failing one marked with '>' and a caret under `col`."""
        lines = source.splitlines()
        if not 1 <= (line or 0) <= len(lines):
            return ""
        first, last = max(1, line - radius), min(len(lines), line + radius)
        gutter = len(str(last))
        excerpt = []
        for number in range(first, last + 1):
            marker = ">" if number == line else " "
            excerpt.append(f"{marker} {number:>{gutter}} | {lines[number - 1]}")
            if number == line and col is not None:
                excerpt.append(f"  {'':>{gutter}} | {' ' * max(col - 1, 0)}^")
        return "\n".join(excerpt)

    def _format_stacktrace(self) -> str:
        stack = self.evaluator.call_stack
        if not stack:
            return ""

        def fmt(arg):
            if isinstance(arg, Function):
                return "fn"
            return self.printer.pformat(arg)

        frames = []
        shown = stack[-self.MAX_TRACE_FRAMES:]
        if len(stack) > len(shown):
            frames.append(f"... {len(stack) - len(shown)} more")
        for frame in shown:
            name = frame.get('name') or '<call>'
            args = frame.get('args') or []
            args_s = ", ".join(fmt(a) for a in args)
            frames.append(f"({name} {args_s})" if args_s else f"({name})")

        return "fnlang stacktrace: " + " ".join(frames)

    def _format_error(self, e: Exception, source: str) -> tuple[str, Optional[Location]]:
        token = None
        match e:
            case FnLangError():
                msg = f"{e.kind}: {e.message}"
                if e.line is not None:
                    # format_error prefixes the location from the token
                    token = {'line': e.line, 'col': e.col}
                    context = self._source_context(source, e.line, e.col)
                    if context:
                        msg = f"{msg}\n{context}"
            case RecursionError():
                msg = "EvaluationError: maximum recursion depth exceeded"
            case _:
                msg = f"InternalError: {type(e).__name__}: {e}"

        if not isinstance(e, (LexicalError, ParseError)):
            st = self._format_stacktrace()
            if st:
                msg += "\n" + st
        if isinstance(e, EvaluationError) and e.scope_dump:
            msg += "\nScope chain:\n" + e.scope_dump.rstrip()
        return msg, token

    # ------------------------------------------------------------------ execution

    def handle_script(self, source_code: str) -> ExecutionResult:
        """The main entry point to execute a script."""
        self.side_effects = []
        self.evaluator.call_stack.clear()
        previous_limit = sys.getrecursionlimit()
        if self.recursion_limit and self.recursion_limit > previous_limit:
            sys.setrecursionlimit(self.recursion_limit)
        try:
            program = parse_source(source_code)
            self.evaluator._dbg("Parsed", len(program), "statements")
            value = self.evaluator.execute(program, self.root_scope)
            return ExecutionResult(status='success', value=value, side_effects=self.side_effects)
        except Exception as e:
            err_msg, err_token = self._format_error(e, source_code)
            # Emit consolidated stderr side-effect
            self.side_effects.append({'topics': ['stderr'], 'message': err_msg})
            return ExecutionResult(
                status='error',
                error_message=err_msg,
                error_token=err_token,
                side_effects=self.side_effects
            )
        finally:
            sys.setrecursionlimit(previous_limit)


def run_source(source: str, **runner_options) -> ExecutionResult:
    """One-shot helper: run `source` in a fresh ScriptRunner."""
    return ScriptRunner(**runner_options).handle_script(source)
