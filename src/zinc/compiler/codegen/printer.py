"""Print Python expression ASTs as JavaScript source.

Only the subset of Python that reads naturally inside a template
interpolation is supported: literals, operators, attribute and item
access, calls, conditional expressions, f-strings, lambdas and simple
comprehensions. Field access on the render method's receiver is printed
as ``this.<field>``; the script generator later strips that prefix
textually, so nothing else may print as ``this.``.
"""

import ast
import json
from typing import List, Set

from zinc.compiler.exceptions import UntranslatableExpression

BINOPS = {
    ast.Add: "+",
    ast.Sub: "-",
    ast.Mult: "*",
    ast.Div: "/",
    ast.Mod: "%",
    ast.Pow: "**",
    ast.BitAnd: "&",
    ast.BitOr: "|",
    ast.BitXor: "^",
    ast.LShift: "<<",
    ast.RShift: ">>",
}

CMPOPS = {
    ast.Eq: "===",
    ast.NotEq: "!==",
    ast.Lt: "<",
    ast.LtE: "<=",
    ast.Gt: ">",
    ast.GtE: ">=",
    ast.Is: "===",
    ast.IsNot: "!==",
}

UNARYOPS = {ast.Not: "!", ast.USub: "-", ast.UAdd: "+", ast.Invert: "~"}

BUILTIN_FUNCTIONS = {
    "abs": "Math.abs",
    "min": "Math.min",
    "max": "Math.max",
    "round": "Math.round",
    "print": "console.log",
    "str": "String",
    "int": "parseInt",
    "float": "parseFloat",
    "bool": "Boolean",
}

METHODS = {
    "append": "push",
    "upper": "toUpperCase",
    "lower": "toLowerCase",
    "strip": "trim",
    "lstrip": "trimStart",
    "rstrip": "trimEnd",
    "startswith": "startsWith",
    "endswith": "endsWith",
}

# Nodes that need parentheses when nested inside another expression.
_COMPOUND = (
    ast.BinOp,
    ast.BoolOp,
    ast.Compare,
    ast.IfExp,
    ast.Lambda,
    ast.NamedExpr,
    ast.UnaryOp,
)


def js_string(value: str) -> str:
    """Quote a string as a JavaScript literal that is safe inside <script>."""
    return json.dumps(value).replace("</", "<\\/")


def is_template_call(node: ast.AST, tag: str = "html") -> bool:
    """Return True for ``html(...)`` and ``<anything>.html(...)`` calls."""
    if not isinstance(node, ast.Call):
        return False
    func = node.func
    if isinstance(func, ast.Name):
        return func.id == tag
    if isinstance(func, ast.Attribute):
        return func.attr == tag
    return False


class JSPrinter(ast.NodeVisitor):
    """Turns one expression tree into JavaScript text."""

    def __init__(self, receiver: str = "self", tag: str = "html") -> None:
        self.receiver = receiver
        self.tag = tag
        self._scopes: List[Set[str]] = []

    def print(self, node: ast.AST) -> str:
        return self.visit(node)

    def body(self, node: ast.Lambda) -> str:
        """Print a lambda body as a statement list.

        A tuple body is how several side effects are written in one Python
        lambda; each element becomes its own statement.
        """
        self._scopes.append(self._params(node))
        try:
            if isinstance(node.body, ast.Tuple):
                return "; ".join(self.visit(elt) for elt in node.body.elts)
            return self.visit(node.body)
        finally:
            self._scopes.pop()

    def generic_visit(self, node: ast.AST) -> str:
        raise UntranslatableExpression(
            f"Unsupported expression: {type(node).__name__}"
        )

    def is_receiver(self, node: ast.AST) -> bool:
        return (
            isinstance(node, ast.Name)
            and node.id == self.receiver
            and not any(self.receiver in scope for scope in self._scopes)
        )

    def _wrap(self, node: ast.AST) -> str:
        text = self.visit(node)
        if isinstance(node, _COMPOUND):
            return f"({text})"
        return text

    def _params(self, node: ast.Lambda) -> Set[str]:
        args = node.args
        if args.vararg or args.kwarg or args.kwonlyargs or args.defaults:
            raise UntranslatableExpression(
                "Lambdas may only take plain positional parameters"
            )
        return {a.arg for a in args.posonlyargs + args.args}

    def visit_Constant(self, node: ast.Constant) -> str:
        value = node.value
        if value is None:
            return "null"
        if value is True:
            return "true"
        if value is False:
            return "false"
        if isinstance(value, str):
            return js_string(value)
        if isinstance(value, (int, float)):
            if value != value:
                return "NaN"
            if value in (float("inf"), float("-inf")):
                return "Infinity" if value > 0 else "-Infinity"
            return repr(value)
        raise UntranslatableExpression(f"Unsupported constant: {value!r}")

    def visit_Name(self, node: ast.Name) -> str:
        if self.is_receiver(node):
            return "this"
        if node.id == "this":
            return "this_"
        return node.id

    def visit_Attribute(self, node: ast.Attribute) -> str:
        return f"{self._wrap(node.value)}.{node.attr}"

    def visit_Starred(self, node: ast.Starred) -> str:
        return f"...{self._wrap(node.value)}"

    def visit_Call(self, node: ast.Call) -> str:
        if node.keywords:
            raise UntranslatableExpression("Keyword arguments are not supported")

        func = node.func
        args = [self.visit(a) for a in node.args]
        joined = ", ".join(args)

        if is_template_call(node, self.tag):
            return f"html({joined})"

        if isinstance(func, ast.Name):
            if func.id == "setattr":
                return self._assignment(node)
            if func.id == "len" and len(node.args) == 1:
                return f"{self._wrap(node.args[0])}.length"
            if func.id in BUILTIN_FUNCTIONS:
                return f"{BUILTIN_FUNCTIONS[func.id]}({joined})"

        if isinstance(func, ast.Attribute):
            if func.attr == "join" and len(node.args) == 1:
                # sep.join(items) -> items.join(sep)
                return f"{self._wrap(node.args[0])}.join({self.visit(func.value)})"
            method = METHODS.get(func.attr, func.attr)
            return f"{self._wrap(func.value)}.{method}({joined})"

        return f"{self._wrap(func)}({joined})"

    def _assignment(self, node: ast.Call) -> str:
        if len(node.args) != 3:
            raise UntranslatableExpression("setattr() takes exactly three arguments")
        target, name, value = node.args
        if not (
            isinstance(name, ast.Constant)
            and isinstance(name.value, str)
            and name.value.isidentifier()
        ):
            raise UntranslatableExpression(
                "setattr() needs a literal attribute name to be replayed"
            )
        return f"{self._wrap(target)}.{name.value} = {self.visit(value)}"

    def visit_BinOp(self, node: ast.BinOp) -> str:
        left = self._wrap(node.left)
        right = self._wrap(node.right)
        if isinstance(node.op, ast.FloorDiv):
            return f"Math.floor({left} / {right})"
        op = BINOPS.get(type(node.op))
        if op is None:
            raise UntranslatableExpression(
                f"Unsupported operator: {type(node.op).__name__}"
            )
        return f"{left} {op} {right}"

    def visit_UnaryOp(self, node: ast.UnaryOp) -> str:
        return f"{UNARYOPS[type(node.op)]}{self._wrap(node.operand)}"

    def visit_BoolOp(self, node: ast.BoolOp) -> str:
        op = " && " if isinstance(node.op, ast.And) else " || "
        return op.join(self._wrap(v) for v in node.values)

    def visit_Compare(self, node: ast.Compare) -> str:
        operands = [node.left, *node.comparators]
        parts = []
        for i, op in enumerate(node.ops):
            parts.append(self._comparison(operands[i], op, operands[i + 1]))
        if len(parts) == 1:
            return parts[0]
        return " && ".join(f"({p})" for p in parts)

    def _comparison(self, left: ast.expr, op: ast.cmpop, right: ast.expr) -> str:
        if isinstance(op, (ast.Is, ast.IsNot)):
            negate = isinstance(op, ast.IsNot)
            for side, other in ((right, left), (left, right)):
                if isinstance(side, ast.Constant) and side.value is None:
                    # == null matches both null and undefined
                    return f"{self._wrap(other)} {'!=' if negate else '=='} null"
        if isinstance(op, (ast.In, ast.NotIn)):
            check = f"{self._wrap(right)}.includes({self.visit(left)})"
            return f"!{check}" if isinstance(op, ast.NotIn) else check
        return f"{self._wrap(left)} {CMPOPS[type(op)]} {self._wrap(right)}"

    def visit_IfExp(self, node: ast.IfExp) -> str:
        return (
            f"{self._wrap(node.test)} ? {self._wrap(node.body)} "
            f": {self._wrap(node.orelse)}"
        )

    def visit_Subscript(self, node: ast.Subscript) -> str:
        value = self._wrap(node.value)
        index = node.slice
        if isinstance(index, ast.Slice):
            if index.step is not None:
                raise UntranslatableExpression("Slice steps are not supported")
            lower = self.visit(index.lower) if index.lower else "0"
            if index.upper is None:
                return f"{value}.slice({lower})"
            return f"{value}.slice({lower}, {self.visit(index.upper)})"
        if (
            isinstance(index, ast.UnaryOp)
            and isinstance(index.op, ast.USub)
            and isinstance(index.operand, ast.Constant)
        ):
            return f"{value}.at({self.visit(index)})"
        return f"{value}[{self.visit(index)}]"

    def visit_List(self, node: ast.List) -> str:
        return "[" + ", ".join(self.visit(e) for e in node.elts) + "]"

    visit_Tuple = visit_List

    def visit_Dict(self, node: ast.Dict) -> str:
        entries = []
        for key, value in zip(node.keys, node.values):
            if key is None:
                entries.append(f"...{self._wrap(value)}")
            elif isinstance(key, ast.Constant) and isinstance(key.value, str):
                entries.append(f"{js_string(key.value)}: {self.visit(value)}")
            else:
                entries.append(f"[{self.visit(key)}]: {self.visit(value)}")
        return "{" + ", ".join(entries) + "}"

    def visit_JoinedStr(self, node: ast.JoinedStr) -> str:
        parts = []
        for value in node.values:
            if isinstance(value, ast.Constant):
                parts.append(
                    value.value.replace("\\", "\\\\")
                    .replace("`", "\\`")
                    .replace("${", "\\${")
                    .replace("</", "<\\/")
                )
            elif isinstance(value, ast.FormattedValue):
                if value.format_spec is not None:
                    raise UntranslatableExpression(
                        "Format specs in f-strings are not supported"
                    )
                parts.append("${" + self.visit(value.value) + "}")
            else:
                self.generic_visit(value)
        return "`" + "".join(parts) + "`"

    def visit_Lambda(self, node: ast.Lambda) -> str:
        params = ", ".join(a.arg for a in node.args.posonlyargs + node.args.args)
        self._scopes.append(self._params(node))
        try:
            body = self.visit(node.body)
        finally:
            self._scopes.pop()
        if isinstance(node.body, ast.Dict):
            body = f"({body})"
        return f"({params}) => {body}"

    def visit_ListComp(self, node: ast.ListComp) -> str:
        if len(node.generators) != 1 or node.generators[0].is_async:
            raise UntranslatableExpression(
                "Only single, synchronous comprehensions are supported"
            )
        gen = node.generators[0]
        chain = self._wrap(gen.iter)
        param, names = self._target(gen.target)
        self._scopes.append(names)
        try:
            for cond in gen.ifs:
                chain += f".filter(({param}) => {self.visit(cond)})"
            chain += f".map(({param}) => {self.visit(node.elt)})"
        finally:
            self._scopes.pop()
        return chain

    visit_GeneratorExp = visit_ListComp

    def _target(self, target: ast.expr) -> "tuple[str, Set[str]]":
        if isinstance(target, ast.Name):
            return target.id, {target.id}
        if isinstance(target, ast.Tuple) and all(
            isinstance(e, ast.Name) for e in target.elts
        ):
            names = [e.id for e in target.elts]  # type: ignore[attr-defined]
            return "[" + ", ".join(names) + "]", set(names)
        raise UntranslatableExpression("Unsupported comprehension target")

    def visit_NamedExpr(self, node: ast.NamedExpr) -> str:
        return f"{self.visit(node.target)} = {self.visit(node.value)}"


def print_expression(node: ast.AST, receiver: str = "self", tag: str = "html") -> str:
    """Print ``node`` as a JavaScript expression."""
    return JSPrinter(receiver, tag).print(node)


def print_body(node: ast.Lambda, receiver: str = "self", tag: str = "html") -> str:
    """Print the body of ``node`` as JavaScript statements."""
    return JSPrinter(receiver, tag).body(node)
