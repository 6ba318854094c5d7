"""Static analysis of component render methods.

Every ``html(...)`` call inside a render method is a template call site.
Its first argument is a literal template whose ``{}`` markers are the
interpolation slots; the remaining arguments are the interpolated
expressions. Each expression is classified once per render method:

* a client-side promise chain (``fetch(...).then(f).catch(g)``),
* an event handler (a ``lambda`` right after an ``on<event>=`` attribute),
* or a plain value, together with the receiver fields it reads and writes.

Fields are written with ``setattr(self, "name", value)`` or by calling a
mutating method directly on a field (``self.items.append(x)``).
"""

import ast
import inspect
import logging
import re
import string
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from zinc.compiler.codegen.printer import JSPrinter, is_template_call
from zinc.compiler.exceptions import TemplateSyntaxError, UntranslatableExpression

logger = logging.getLogger(__name__)

TEMPLATE_TAG = "html"

# An event attribute name right before the slot: `<button onclick={}`
# (an opening quote is allowed: `onclick="{}"`)
EVENT_ATTRIBUTE = re.compile(r"""\s(on\w+)=\s*["']?$""")

MUTATING_METHODS = frozenset(
    {
        "append",
        "extend",
        "insert",
        "pop",
        "remove",
        "clear",
        "update",
        "add",
        "discard",
        "sort",
        "reverse",
        "setdefault",
        "popitem",
    }
)


@dataclass(frozen=True)
class ExpressionClassification:
    """What one interpolated expression is and what it touches."""

    signals: Tuple[str, ...] = ()
    writes: Tuple[str, ...] = ()
    is_function: bool = False
    is_event: bool = False
    event_name: Optional[str] = None
    source: str = ""
    body_source: Optional[str] = None
    params: Tuple[str, ...] = ()
    is_async: bool = False
    promise_source: Optional[str] = None
    then_callback: Optional[str] = None
    catch_callback: Optional[str] = None
    # Fields an async chain reads; they are declared on the client but
    # never make the slot reactive
    reads: Tuple[str, ...] = ()
    # False when `source` is Python text because no JavaScript form exists
    translatable: bool = True
    python_source: str = ""
    template: str = ""
    slot: int = 0
    lineno: int = 0


_CACHE: Dict[Any, Tuple[ExpressionClassification, ...]] = {}
_CACHE_LOCK = threading.Lock()


def split_template(template: str) -> List[str]:
    """Split ``template`` into the static text around its ``{}`` slots.

    The result always has one more element than there are slots.
    ``{{`` and ``}}`` stand for literal braces.

    Raises:
        ValueError: for malformed braces or slots other than ``{}``.
    """
    segments = [""]
    for literal, field, format_spec, conversion in string.Formatter().parse(template):
        segments[-1] += literal
        if field is None:
            continue
        if field != "" or format_spec or conversion:
            raise ValueError(
                f"Only bare {{}} slots are supported in templates, found {{{field}}}"
            )
        segments.append("")
    return segments


def _names(target: ast.AST) -> Set[str]:
    return {n.id for n in ast.walk(target) if isinstance(n, ast.Name)}


class _FieldScanner(ast.NodeVisitor):
    """Collects the receiver fields an expression reads and writes."""

    def __init__(self, receiver: str) -> None:
        self.receiver = receiver
        self.signals: List[str] = []
        self.writes: List[str] = []
        self._scopes: List[Set[str]] = []

    def _is_receiver(self, node: ast.AST) -> bool:
        return (
            isinstance(node, ast.Name)
            and node.id == self.receiver
            and not any(self.receiver in scope for scope in self._scopes)
        )

    def _read(self, name: str) -> None:
        if name not in self.signals:
            self.signals.append(name)

    def _write(self, name: str) -> None:
        self._read(name)
        if name not in self.writes:
            self.writes.append(name)

    def visit_Attribute(self, node: ast.Attribute) -> None:
        # self.items.length is a read of `items`
        if self._is_receiver(node.value):
            self._read(node.attr)
        self.generic_visit(node)

    def visit_Call(self, node: ast.Call) -> None:
        func = node.func
        if (
            isinstance(func, ast.Name)
            and func.id == "setattr"
            and len(node.args) >= 2
            and self._is_receiver(node.args[0])
            and isinstance(node.args[1], ast.Constant)
            and isinstance(node.args[1].value, str)
        ):
            self._write(node.args[1].value)
        elif (
            isinstance(func, ast.Attribute)
            and func.attr in MUTATING_METHODS
            and isinstance(func.value, ast.Attribute)
            and self._is_receiver(func.value.value)
        ):
            self._write(func.value.attr)
        self.generic_visit(node)

    def visit_Lambda(self, node: ast.Lambda) -> None:
        self._scopes.append({a.arg for a in node.args.posonlyargs + node.args.args})
        self.generic_visit(node)
        self._scopes.pop()

    def _visit_comprehension(self, node: ast.AST) -> None:
        generators = node.generators  # type: ignore[attr-defined]
        # The first iterable is evaluated in the enclosing scope
        self.visit(generators[0].iter)

        scope: Set[str] = set()
        for gen in generators:
            scope |= _names(gen.target)
        self._scopes.append(scope)
        for field, value in ast.iter_fields(node):
            if field != "generators":
                self.visit(value)
        for i, gen in enumerate(generators):
            if i:
                self.visit(gen.iter)
            for cond in gen.ifs:
                self.visit(cond)
        self._scopes.pop()

    visit_ListComp = _visit_comprehension
    visit_SetComp = _visit_comprehension
    visit_DictComp = _visit_comprehension
    visit_GeneratorExp = _visit_comprehension


def _is_method_call(node: ast.AST, name: str) -> bool:
    return (
        isinstance(node, ast.Call)
        and isinstance(node.func, ast.Attribute)
        and node.func.attr == name
        and len(node.args) == 1
        and not node.keywords
    )


def match_promise_chain(
    node: ast.AST,
) -> Optional[Tuple[ast.expr, ast.expr, Optional[ast.expr]]]:
    """Match ``receiver.then(f)`` or ``receiver.then(f).catch(g)``.

    Returns (receiver, f, g or None), or None when ``node`` is not a chain.
    """
    catch = None
    if _is_method_call(node, "catch"):
        catch = node.args[0]  # type: ignore[attr-defined]
        node = node.func.value  # type: ignore[attr-defined]
    if not _is_method_call(node, "then"):
        return None
    return node.func.value, node.args[0], catch  # type: ignore[attr-defined]


class RenderAnalyzer(ast.NodeVisitor):
    """Walks a render method body and classifies every template slot."""

    def __init__(
        self,
        receiver: str,
        line_offset: int = 0,
        file_path: Optional[str] = None,
        tag: str = TEMPLATE_TAG,
    ) -> None:
        self.receiver = receiver
        self.line_offset = line_offset
        self.file_path = file_path
        self.tag = tag
        self.results: List[ExpressionClassification] = []

    def visit_Call(self, node: ast.Call) -> None:
        if is_template_call(node, self.tag):
            self._analyze_site(node)
        self.generic_visit(node)

    def _error(self, message: str, lineno: int) -> TemplateSyntaxError:
        return TemplateSyntaxError(message, file_path=self.file_path, line=lineno)

    def _analyze_site(self, node: ast.Call) -> None:
        lineno = node.lineno + self.line_offset
        if node.keywords:
            raise self._error("Template calls take positional arguments only", lineno)
        if not node.args:
            raise self._error("Template call without a template string", lineno)

        template_node, *values = node.args
        if not (
            isinstance(template_node, ast.Constant)
            and isinstance(template_node.value, str)
        ):
            logger.warning(
                "Skipping template call at %s:%s: the template is not a string literal",
                self.file_path or "<source>",
                lineno,
            )
            return

        template = template_node.value
        try:
            segments = split_template(template)
        except ValueError as e:
            raise self._error(str(e), lineno) from e

        if len(segments) - 1 != len(values):
            raise self._error(
                f"Template has {len(segments) - 1} slots but {len(values)} values",
                lineno,
            )

        for slot, expr in enumerate(values):
            if isinstance(expr, ast.Starred):
                raise self._error("Starred template values are not supported", lineno)
            self.results.append(
                self._classify(expr, segments[slot], template, slot, lineno)
            )

    def _classify(
        self, expr: ast.expr, before: str, template: str, slot: int, lineno: int
    ) -> ExpressionClassification:
        site: Dict[str, Any] = {
            "template": template,
            "slot": slot,
            "lineno": lineno,
            "python_source": ast.unparse(expr),
        }
        printer = JSPrinter(self.receiver, self.tag)

        chain = match_promise_chain(expr)
        if chain is not None:
            promise, then, catch = chain
            reads = _FieldScanner(self.receiver)
            reads.visit(expr)
            try:
                return ExpressionClassification(
                    is_async=True,
                    reads=tuple(reads.signals),
                    source=printer.print(expr),
                    promise_source=printer.print(promise),
                    then_callback=printer.print(then),
                    catch_callback=printer.print(catch) if catch is not None else None,
                    **site,
                )
            except UntranslatableExpression as e:
                logger.debug("Promise chain at line %s stays server-side: %s", lineno, e)
                return ExpressionClassification(
                    is_async=True,
                    source=site["python_source"],
                    translatable=False,
                    **site,
                )

        scanner = _FieldScanner(self.receiver)
        scanner.visit(expr)

        is_function = isinstance(expr, ast.Lambda)
        match = EVENT_ATTRIBUTE.search(before)
        is_event = is_function and match is not None
        params: Tuple[str, ...] = ()
        if isinstance(expr, ast.Lambda):
            params = tuple(a.arg for a in expr.args.posonlyargs + expr.args.args)

        translatable = True
        body_source = None
        try:
            source = printer.print(expr)
            if isinstance(expr, ast.Lambda):
                body_source = printer.body(expr)
        except UntranslatableExpression as e:
            logger.debug("Slot %s at line %s has no client form: %s", slot, lineno, e)
            source = site["python_source"]
            translatable = False

        return ExpressionClassification(
            signals=tuple(scanner.signals),
            writes=tuple(scanner.writes),
            is_function=is_function,
            is_event=is_event,
            event_name=match.group(1) if is_event and match else None,
            source=source,
            body_source=body_source,
            params=params,
            translatable=translatable,
            **site,
        )


def analyze_source(
    source: str,
    first_line: int = 1,
    file_path: Optional[str] = None,
    tag: str = TEMPLATE_TAG,
) -> Tuple[ExpressionClassification, ...]:
    """Classify every template slot in the source of one render method.

    Not cached. ``first_line`` is the line the source starts on in its file,
    used for line numbers in results and errors.
    """
    offset = first_line - 1
    text = source
    first = next((line for line in source.splitlines() if line.strip()), "")
    if first[:1].isspace():
        # An indented method: parse it as the body of a synthetic class so
        # multi-line strings keep their exact contents.
        text = "class _Render:\n" + source
        offset -= 1

    try:
        tree = ast.parse(text)
    except SyntaxError as e:
        raise TemplateSyntaxError(
            f"Cannot parse render method: {e.msg}",
            file_path=file_path,
            line=(e.lineno or 1) + offset,
        ) from e

    func = next(
        (
            n
            for n in ast.walk(tree)
            if isinstance(n, (ast.FunctionDef, ast.AsyncFunctionDef))
        ),
        None,
    )
    if func is None:
        raise TemplateSyntaxError(
            "No function definition found in render source", file_path=file_path
        )

    positional = func.args.posonlyargs + func.args.args
    receiver = positional[0].arg if positional else "self"

    analyzer = RenderAnalyzer(receiver, offset, file_path, tag)
    for stmt in func.body:
        analyzer.visit(stmt)
    return tuple(analyzer.results)


def analyze_render(
    render_fn: Callable[..., Any],
) -> Tuple[ExpressionClassification, ...]:
    """Classify every template slot of ``render_fn``, memoized per function.

    Bound methods share the entry of their underlying function. The cache
    lives for the whole process; render methods are assumed not to change.
    """
    fn = getattr(render_fn, "__func__", render_fn)
    cached = _CACHE.get(fn)
    if cached is not None:
        return cached

    name = getattr(fn, "__qualname__", repr(fn))
    logger.debug("Analyzing render method %s", name)
    try:
        lines, first_line = inspect.getsourcelines(fn)
        file_path = inspect.getsourcefile(fn)
    except (OSError, TypeError) as e:
        raise TemplateSyntaxError(f"Cannot read the source of {name}: {e}") from e

    result = analyze_source("".join(lines), first_line, file_path)
    with _CACHE_LOCK:
        return _CACHE.setdefault(fn, result)
