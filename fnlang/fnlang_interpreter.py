"""
The core fnlang interpreter: a tree-walking Evaluator over the AST.
"""
import copy
import math
import os
import sys
from typing import Any, Callable, Dict, List, Optional

from fnlang.fnlang_datatypes import (
    Assign, Binary, Boolean, Call, Environment, EvaluationError, Function, If,
    Node, Number, Program, String, Variable, is_value
)
from fnlang.fnlang_printer import Printer
from fnlang.fnlang_serialize import from_builtin

_printer = Printer()


def _show(node: Any) -> str:
    return _printer.pformat(node) if isinstance(node, Node) else repr(node)


def _as_value(node: Node) -> Node:
    """Values never carry the block marker of the syntax they came from."""
    if not node.scoped:
        return node
    value = copy.copy(node)
    value.scoped = False
    return value


def _recursion_error(node: Optional[Node], scope: Environment) -> EvaluationError:
    return EvaluationError("maximum recursion depth exceeded", node, scope)


class Evaluator:
    """The fnlang execution engine.

    By default a call's activation scope is chained to the *calling* scope,
    so free identifiers in a function body resolve dynamically. With
    `lexical_closures=True`, functions capture the scope they were
    evaluated in and calls chain to that instead.
    """
    def __init__(self, lexical_closures: bool = False):
        self.lexical_closures = lexical_closures
        self.current_node: Optional[Node] = None
        self.call_stack: List[Dict[str, Any]] = []
        self._binary_ops: Dict[str, Callable[[Binary, Node, Node, Environment], Node]] = {
            "+": self._add,
            "-": self._sub,
            "*": self._mul,
            "/": self._div,
            "%": self._mod,
            "==": self._eq,
            "!=": self._neq,
            "<": self._lt,
            ">": self._gt,
            "<=": self._lte,
            ">=": self._gte,
        }

    # ------------------------------------------------------------------ diagnostics

    def _dbg(self, *parts):
        if os.environ.get("FNLANG_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    def _push_frame(self, name, func, args, call_site_node):
        loc = getattr(call_site_node, 'loc', None)
        self.call_stack.append({
            'name': name,
            'func': func,
            'args': args,
            'call_site': loc,
        })

    def _pop_frame(self):
        if self.call_stack:
            self.call_stack.pop()

    # ------------------------------------------------------------------ entry points

    def evaluate(self, node: Node, scope: Environment) -> Optional[Node]:
        """Evaluates one node. Returns None for statement-only nodes."""
        self.current_node = node
        if node.scoped:
            scope = Environment(scope)
            self._dbg("Block scope", type(node).__name__)
        return self._eval(node, scope)

    def execute(self, program: Program, scope: Environment) -> Optional[Node]:
        """Runs each statement directly in `scope`; returns the last statement's value.

        Runaway recursion surfaces as an EvaluationError at the node being
        evaluated when the interpreter stack ran out.
        """
        try:
            return self._run_statements(program, scope)
        except RecursionError:
            raise _recursion_error(self.current_node, scope) from None

    def _run_statements(self, program: Program, scope: Environment) -> Optional[Node]:
        result = None
        for statement in program.statements:
            result = self.evaluate(statement, scope)
        return result

    def _eval(self, node: Node, scope: Environment) -> Optional[Node]:
        match node:
            case Number() | String() | Boolean():
                return _as_value(node)
            case Variable():
                return self._lookup(node, scope)
            case Program():
                result = self._run_statements(node, scope)
                # Only a block yields its last value; the top-level program yields none.
                return result if node.scoped else None
            case Assign():
                self._assign(node, scope)
                return None
            case Function():
                if self.lexical_closures and node.native is None and node.closure is None:
                    return Function(node.parameters, node.body, name=node.name, closure=scope)
                return _as_value(node)
            case Call():
                return self._call(node, scope)
            case If():
                return self._if(node, scope)
            case Binary():
                return self._binary(node, scope)
            case _:
                raise EvaluationError(f"Unrecognized node: {node!r}", node, scope)

    # ------------------------------------------------------------------ nodes

    def _lookup(self, node: Variable, scope: Environment) -> Node:
        owner = scope.find_owner(node.name)
        if owner is None:
            raise EvaluationError(f"Undefined variable '{node.name}'", node, scope)
        return owner.bindings[node.name]

    def _assign(self, node: Assign, scope: Environment):
        if not isinstance(node.left, Variable):
            raise EvaluationError(
                f"Can only assign to a variable: {_show(node.left)} = {_show(node.right)}", node, scope)
        value = self.evaluate(node.right, Environment(scope))
        if value is None:
            self._dbg("Assign skipped, no value", node.left.name)
            return
        scope.define(node.left.name, value)

    def _resolve_callee(self, node: Call, scope: Environment) -> Function:
        target = node.function
        if isinstance(target, Variable):
            func = self._lookup(target, scope)
        else:
            func = self.evaluate(target, scope)
        if not isinstance(func, Function):
            raise EvaluationError(f"Cannot call non-function: {_show(func)}", node, scope)
        return func

    def _call(self, node: Call, scope: Environment) -> Optional[Node]:
        func = self._resolve_callee(node, scope)
        name = node.function.name if isinstance(node.function, Variable) else (func.name or '<call>')

        if func.native is not None:
            args = []
            for arg in node.arguments:
                value = self.evaluate(arg, scope)
                if value is not None:
                    args.append(value)
            self._dbg("Native call", name, "argc", len(args))
            self._push_frame(name, func, args, node)
            result = func.native(args)
            self._pop_frame()
            try:
                result = from_builtin(result)
            except TypeError as e:
                raise EvaluationError(f"Native function '{name}' returned {e}", node, scope) from None
            if not is_value(result):
                raise EvaluationError(f"Native function '{name}' returned a non-value: {_show(result)}", node, scope)
            return result

        parent = func.closure if func.closure is not None else scope
        call_scope = Environment(parent)
        args = []
        for i, param in enumerate(func.parameters):
            value = None
            if i < len(node.arguments):
                value = self.evaluate(node.arguments[i], Environment(scope))
            if value is None:
                value = Boolean(False)
            call_scope.define(param, value)
            args.append(value)
        self._dbg("Function call", name, "argc", len(node.arguments), "params", func.parameters)
        self._push_frame(name, func, args, node)
        result = self.evaluate(func.body, call_scope)
        self._pop_frame()
        return result

    def _if(self, node: If, scope: Environment) -> Optional[Node]:
        condition = self.evaluate(node.condition, Environment(scope))
        if not isinstance(condition, Boolean):
            raise EvaluationError(
                f"Condition must evaluate to boolean, got {_show(condition)}", node.condition, scope)
        if condition.value:
            return self.evaluate(node.then, Environment(scope))
        if node.otherwise is not None:
            return self.evaluate(node.otherwise, Environment(scope))
        return Boolean(False)

    def _operand(self, expr: Node, side: str, node: Binary, scope: Environment) -> Node:
        value = self.evaluate(expr, Environment(scope))
        if value is None:
            raise EvaluationError(f"Unable to evaluate {side} operand of '{node.operator}'", expr, scope)
        return value

    def _binary(self, node: Binary, scope: Environment) -> Node:
        op = node.operator
        left = self._operand(node.left, "left", node, scope)
        if op == "||":
            return self._or(node, left, scope)
        if op == "&&":
            return self._and(node, left, scope)
        right = self._operand(node.right, "right", node, scope)
        handler = self._binary_ops.get(op)
        if handler is None:
            raise EvaluationError(f"Unknown operator '{op}'", node, scope)
        return handler(node, left, right, scope)

    # ------------------------------------------------------------------ operators

    def _type_error(self, verb: str, node: Binary, left: Node, right: Node, scope: Environment):
        return EvaluationError(
            f"Cannot {verb} operands: {_show(left)} {node.operator} {_show(right)}", node, scope)

    def _numbers(self, verb, node, left, right, scope):
        if isinstance(left, Number) and isinstance(right, Number):
            return left.value, right.value
        raise self._type_error(verb, node, left, right, scope)

    def _add(self, node, left, right, scope):
        if isinstance(left, String) and isinstance(right, String):
            return String(left.value + right.value)
        l, r = self._numbers("add", node, left, right, scope)
        return Number(l + r)

    def _sub(self, node, left, right, scope):
        l, r = self._numbers("subtract", node, left, right, scope)
        return Number(l - r)

    def _mul(self, node, left, right, scope):
        if isinstance(left, String) and isinstance(right, Number):
            count = right.value
            if math.isnan(count) or math.isinf(count) or count < 0 or not count.is_integer():
                raise EvaluationError(
                    f"Cannot repeat string {_show(left)} {_show(right)} times", node, scope)
            return String(left.value * int(count))
        l, r = self._numbers("multiply", node, left, right, scope)
        return Number(l * r)

    def _div(self, node, left, right, scope):
        l, r = self._numbers("divide", node, left, right, scope)
        if r == 0:
            # IEEE-754: x/0 is a signed infinity, 0/0 is nan.
            if l == 0 or math.isnan(l):
                return Number(math.nan)
            return Number(math.copysign(math.inf, l) * math.copysign(1.0, r))
        return Number(l / r)

    def _mod(self, node, left, right, scope):
        l, r = self._numbers("modulus", node, left, right, scope)
        if r == 0 or math.isinf(l):
            return Number(math.nan)
        return Number(math.fmod(l, r))

    def _eq(self, node, left, right, scope):
        return Boolean(left == right)

    def _neq(self, node, left, right, scope):
        return Boolean(not left == right)

    def _lt(self, node, left, right, scope):
        l, r = self._numbers("compare", node, left, right, scope)
        return Boolean(l < r)

    def _gt(self, node, left, right, scope):
        l, r = self._numbers("compare", node, left, right, scope)
        return Boolean(l > r)

    def _lte(self, node, left, right, scope):
        l, r = self._numbers("compare", node, left, right, scope)
        return Boolean(l <= r)

    def _gte(self, node, left, right, scope):
        l, r = self._numbers("compare", node, left, right, scope)
        return Boolean(l >= r)

    def _or(self, node: Binary, left: Node, scope: Environment) -> Boolean:
        if not isinstance(left, Boolean):
            raise EvaluationError(f"Cannot OR operands: {_show(left)} || {_show(node.right)}", node, scope)
        if left.value:
            return Boolean(True)
        right = self._operand(node.right, "right", node, scope)
        if not isinstance(right, Boolean):
            raise self._type_error("OR", node, left, right, scope)
        return right

    def _and(self, node: Binary, left: Node, scope: Environment) -> Boolean:
        if not isinstance(left, Boolean):
            raise EvaluationError(f"Cannot AND operands: {_show(left)} && {_show(node.right)}", node, scope)
        if not left.value:
            return Boolean(False)
        right = self._operand(node.right, "right", node, scope)
        if not isinstance(right, Boolean):
            raise self._type_error("AND", node, left, right, scope)
        return right


def evaluate(node: Node, scope: Environment, *, lexical_closures: bool = False) -> Optional[Node]:
    """Evaluates `node` against `scope` with a fresh Evaluator."""
    evaluator = Evaluator(lexical_closures=lexical_closures)
    try:
        return evaluator.evaluate(node, scope)
    except RecursionError:
        raise _recursion_error(evaluator.current_node, scope) from None
