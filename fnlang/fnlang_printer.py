"""
A pretty-printer for fnlang syntax trees and values.
"""
import math
from decimal import Decimal

from fnlang.fnlang_datatypes import (
    Assign, Binary, Boolean, Call, Function, If, Node, Number, Program, String, Variable
)
from fnlang.fnlang_parser import PRECEDENCE

# Nodes whose printed form is closed on the right and never needs parentheses.
_ATOMS = (Number, String, Boolean, Variable, Call)


def format_number(value: float) -> str:
    """Positional notation only; the lexer has no exponent syntax."""
    if math.isnan(value) or math.isinf(value):
        return str(value)
    if value.is_integer():
        return str(int(value))
    return format(Decimal(repr(value)), 'f')


class Printer:
    """Formats fnlang nodes into readable, valid fnlang source strings."""

    def __init__(self, indent_width=2):
        self._indent_char = " " * indent_width
        self._handlers = self._create_handlers()

    def pformat(self, obj, level=0):
        """Public entry point to format an object."""
        if isinstance(obj, Node) and obj.scoped:
            return self._pformat_block(obj, level)
        handler = self._get_handler(obj)
        return handler(obj, level)

    def display(self, value) -> str:
        """The text `print` writes for a value: strings raw, numbers bare."""
        match value:
            case None:
                return ""
            case String():
                return value.value
            case Number():
                return format_number(value.value)
            case _:
                return self.pformat(value)

    def _get_handler(self, obj):
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        return lambda o, l: repr(o)

    def _create_handlers(self):
        return {
            Number: self._pformat_number,
            String: self._pformat_string,
            Boolean: self._pformat_boolean,
            Variable: self._pformat_variable,
            Function: self._pformat_function,
            Call: self._pformat_call,
            If: self._pformat_if,
            Assign: self._pformat_operator,
            Binary: self._pformat_operator,
            Program: self._pformat_program,
        }

    # ------------------------------------------------------------------ leaves

    def _pformat_number(self, obj, level):
        return format_number(obj.value)

    def _pformat_string(self, obj, level):
        escaped = obj.value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'

    def _pformat_boolean(self, obj, level):
        return 'true' if obj.value else 'false'

    def _pformat_variable(self, obj, level):
        return obj.name

    # ------------------------------------------------------------------ compound

    def _pformat_function(self, obj, level):
        params = ", ".join(obj.parameters)
        if obj.native is not None:
            return f"fn({params}) [native code]"
        return f"fn({params}) {self.pformat(obj.body, level)}"

    def _pformat_call(self, obj, level):
        callee = self.pformat(obj.function, level)
        if not (obj.function.scoped or isinstance(obj.function, _ATOMS)):
            callee = f"({callee})"
        args = ", ".join(self.pformat(arg, level) for arg in obj.arguments)
        return f"{callee}({args})"

    def _pformat_if(self, obj, level):
        condition = self.pformat(obj.condition, level)
        then = self.pformat(obj.then, level)
        if obj.otherwise is None:
            return f"if {condition} then {then}"
        # An open-ended then-branch would swallow our else.
        if not obj.then.scoped and isinstance(obj.then, (If, Function, Assign)):
            then = f"({then})"
        otherwise = self.pformat(obj.otherwise, level)
        return f"if {condition} then {then} else {otherwise}"

    def _pformat_operator(self, obj, level):
        prec = PRECEDENCE[obj.operator]
        right_assoc = isinstance(obj, Assign)
        left = self._pformat_operand(obj.left, prec, level, tight=right_assoc)
        if right_assoc and isinstance(obj.right, (If, Function)):
            # The right-hand side of '=' always ends its enclosing expression.
            right = self.pformat(obj.right, level)
        else:
            right = self._pformat_operand(obj.right, prec, level, tight=not right_assoc)
        return f"{left} {obj.operator} {right}"

    def _pformat_operand(self, node, parent_prec, level, tight):
        text = self.pformat(node, level)
        if node.scoped or isinstance(node, _ATOMS):
            return text
        if isinstance(node, (Binary, Assign)):
            prec = PRECEDENCE[node.operator]
            if prec > parent_prec or (prec == parent_prec and not tight):
                return text
        return f"({text})"

    # ------------------------------------------------------------------ blocks

    def _pformat_program(self, obj, level):
        indent = self._indent_char * level
        return (";\n" + indent).join(self.pformat(stmt, level) for stmt in obj.statements)

    def _pformat_block(self, obj, level):
        if not isinstance(obj, Program):
            inner = self._get_handler(obj)(obj, level)
            return f"{{ {inner} }}"
        if not obj.statements:
            return "{}"
        outer_indent = self._indent_char * level
        inner_level = level + 1
        inner_indent = self._indent_char * inner_level
        lines = [inner_indent + self.pformat(stmt, inner_level) for stmt in obj.statements]
        return "{\n" + ";\n".join(lines) + f"\n{outer_indent}}}"
