from fnlang.fnlang_datatypes import (
    Assign, Binary, Boolean, Call, Environment, EvaluationError, FnLangError, Function, If,
    LexicalError, Number, ParseError, Program, String, Variable
)
from fnlang.fnlang_interpreter import Evaluator
from fnlang.fnlang_parser import parse_source
from fnlang.fnlang_printer import Printer
from fnlang.fnlang_runtime import (
    ExecutionResult, FnLangHost, ScriptRunner, fnlang_api_method, native_function
)

__all__ = [
    "ScriptRunner", "ExecutionResult", "FnLangHost", "fnlang_api_method", "native_function",
    "Evaluator", "Environment", "parse_source", "Printer",
    "Number", "String", "Boolean", "Variable", "Function", "Call", "If", "Assign", "Binary", "Program",
    "FnLangError", "LexicalError", "ParseError", "EvaluationError",
]
