import pytest
import yaml

from fnlang.fnlang_datatypes import (
    Assign, Binary, Boolean, Call, Environment, EvaluationError, FnLangError, Function,
    If, LexicalError, Number, ParseError, Program, String, Variable, is_value
)
from fnlang.fnlang_runtime import native_function


# --- Environment Tests ---

def test_environment_init():
    parent = Environment()
    child = Environment(parent=parent)
    assert child.parent is parent
    assert not child.bindings
    assert Environment().parent is None


def test_environment_define_and_get():
    scope = Environment()
    scope.define("a", Number(1))
    assert scope.get("a") == Number(1)
    scope["a"] = Number(2)  # last define wins
    assert scope["a"] == Number(2)


def test_environment_parent_chain_lookup():
    parent = Environment()
    parent["a"] = Number(100)
    parent["b"] = Number(200)

    child = Environment(parent=parent)
    child["b"] = Number(20)  # shadow parent

    assert child["a"] == Number(100)
    assert child["b"] == Number(20)
    assert parent["b"] == Number(200)
    assert child.find_owner("a") is parent
    assert child.find_owner("b") is child
    assert child.find_owner("c") is None


def test_environment_undefined_name_raises():
    scope = Environment(Environment())
    with pytest.raises(EvaluationError, match="Undefined variable 'nope'") as excinfo:
        scope.get("nope")
    assert excinfo.value.scope_dump is not None


def test_environment_contains_and_keys():
    parent = Environment()
    parent["a"] = Number(1)
    child = Environment(parent=parent)
    child["b"] = Number(2)

    assert "a" in child
    assert "b" in child
    assert "c" not in child
    assert 123 not in child
    assert list(child.keys()) == ["b"]


def test_environment_rejects_non_string_names():
    with pytest.raises(TypeError):
        Environment().define(1, Number(1))


def test_environment_chain_and_depth():
    root = Environment()
    mid = Environment(root)
    leaf = Environment(mid)
    assert list(leaf.chain()) == [leaf, mid, root]
    assert leaf.depth() == 2
    assert root.depth() == 0


def test_environment_dump_is_yaml_innermost_first():
    root = Environment()
    root["x"] = Number(1)
    root["greet"] = String("hi")
    child = Environment(root)
    child["f"] = Function(["a"], Binary("+", Variable("a"), Number(1)))

    frames = yaml.safe_load(child.dump())
    assert frames == [
        {'scope': 0, 'bindings': {'f': 'fn(a) a + 1'}},
        {'scope': 1, 'bindings': {'x': 1.0, 'greet': 'hi'}},
    ]


# --- Node Tests ---

def test_number_normalizes_to_float():
    assert Number(2).value == 2.0
    assert Number(2) == Number(2.0)
    assert Number(2) != String("2")


def test_structural_equality():
    a = Binary("+", Variable("x"), Call(Variable("f"), [Number(1)]))
    b = Binary("+", Variable("x"), Call(Variable("f"), [Number(1)]))
    assert a == b
    assert If(Boolean(True), Number(1)) == If(Boolean(True), Number(1), None)
    assert Assign("=", Variable("x"), Number(1)) != Binary("=", Variable("x"), Number(1))
    assert Program([Number(1)]) == Program([Number(1)])


def test_equality_ignores_location_and_block_marker():
    a = Number(1)
    a.loc = {'line': 3, 'col': 4}
    a.scoped = True
    assert a == Number(1)


def test_function_equality():
    body = Variable("a")
    assert Function(["a"], body) == Function(["a"], body, name="f")
    assert Function(["a"], body) != Function(["b"], body)

    def cb(args):
        return Boolean(True)
    assert native_function(cb) == native_function(cb, ["x"])
    assert native_function(cb) != native_function(lambda args: Boolean(True))
    assert native_function(cb) != Function([], Boolean(True))
    assert native_function(cb).is_native


def test_is_value():
    for node in (Number(1), String("s"), Boolean(False), Function([], Number(1))):
        assert is_value(node)
    for node in (Variable("x"), Program([]), Call(Variable("f"), [])):
        assert not is_value(node)
    assert not is_value(None)


# --- Errors ---

def test_error_hierarchy_and_formatting():
    for cls in (LexicalError, ParseError, EvaluationError):
        assert issubclass(cls, FnLangError)
    err = ParseError("bad", 3, 7)
    assert err.kind == "ParseError"
    assert str(err) == "bad (3:7)"
    assert str(FnLangError("plain")) == "plain"


def test_evaluation_error_takes_location_from_node():
    node = Variable("x")
    node.loc = {'line': 5, 'col': 2}
    err = EvaluationError("oops", node)
    assert (err.line, err.col) == (5, 2)
    assert err.node is node
    assert err.scope_dump is None
