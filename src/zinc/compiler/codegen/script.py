"""Generate the inline client script for one rendered component.

The script declares one local per tracked field, looks up every element
carrying an identifier, defines ``__update()`` to recompute all bindings,
installs the handlers and re-issues any promise chains. Sources arrive
with receiver fields printed as ``this.<field>``; the prefix is stripped
textually so they refer to the locals instead.
"""

import json
import re
from typing import Any, Iterable, List, Sequence

from zinc.compiler.codegen.printer import js_string
from zinc.compiler.exceptions import ScriptGenerationError
from zinc.runtime.bindings import ZID_ATTRIBUTE, AsyncBinding, Binding, Handler

THIS_PREFIX = re.compile(r"\bthis\.")

RESERVED_WORDS = frozenset(
    {
        "arguments", "await", "break", "case", "catch", "class", "const",
        "continue", "debugger", "default", "delete", "do", "else", "enum",
        "eval", "export", "extends", "false", "finally", "for", "function",
        "if", "implements", "import", "in", "instanceof", "interface", "let",
        "new", "null", "package", "private", "protected", "public", "return",
        "static", "super", "switch", "this", "throw", "true", "try", "typeof",
        "undefined", "var", "void", "while", "with", "yield",
    }
)

# Names the script itself defines or relies on
HELPER_NAMES = frozenset(
    {"document", "html", "fetch", "__update", "__attr", "__esc", "__piece", "__fill"}
)

ATTR_HELPER = (
    "  function __attr(el, name, v) {\n"
    "    if (v === false || v == null) el.removeAttribute(name);\n"
    '    else el.setAttribute(name, v === true ? "" : v);\n'
    "  }\n"
)

ASYNC_HELPERS = (
    "  function __esc(s) {\n"
    "    return s.replace(/&/g, \"&amp;\").replace(/</g, \"&lt;\")"
    ".replace(/>/g, \"&gt;\").replace(/\"/g, \"&quot;\");\n"
    "  }\n"
    "  function __piece(v) {\n"
    '    if (v === false || v == null) return "";\n'
    '    if (Array.isArray(v)) return v.map(__piece).join("");\n'
    "    if (v.__html !== undefined) return v.__html;\n"
    "    return __esc(String(v));\n"
    "  }\n"
    "  function html(t, ...vs) {\n"
    "    let i = 0;\n"
    "    return { __html: t.replace(/\\{\\{|\\}\\}|\\{\\}/g, "
    '(m) => (m === "{}" ? __piece(vs[i++]) : m[0])) };\n'
    "  }\n"
    "  function __fill(el, v) {\n"
    "    if (v != null && v.__html !== undefined) el.innerHTML = v.__html;\n"
    '    else el.textContent = v == null ? "" : String(v);\n'
    "  }\n"
)


def strip_receiver(source: str) -> str:
    """Rewrite ``this.<field>`` accesses to plain local names."""
    return THIS_PREFIX.sub("", source)


def _unique(names: Iterable[str]) -> List[str]:
    seen: List[str] = []
    for name in names:
        if name not in seen:
            seen.append(name)
    return seen


def _field_literal(component: Any, name: str) -> str:
    if not name.isidentifier() or name in RESERVED_WORDS or name in HELPER_NAMES:
        raise ScriptGenerationError(
            f"Field '{name}' of {type(component).__name__} cannot be used as a "
            "client-side variable name"
        )
    try:
        value = getattr(component, name)
    except AttributeError as e:
        raise ScriptGenerationError(
            f"{type(component).__name__} has no field '{name}' to hydrate"
        ) from e
    try:
        literal = json.dumps(value)
    except (TypeError, ValueError) as e:
        raise ScriptGenerationError(
            f"Field '{name}' of {type(component).__name__} holds a "
            f"{type(value).__name__}, which has no literal form: {e}"
        ) from e
    return literal.replace("</", "<\\/")


def generate_script(
    component: Any,
    bindings: Sequence[Binding],
    handlers: Sequence[Handler],
    async_bindings: Sequence[AsyncBinding] = (),
) -> str:
    """Build the ``<script>`` block that hydrates ``component``.

    Deterministic: the same records and field values give the same text.

    Raises:
        ScriptGenerationError: a tracked field has no JSON form, or its
            name cannot be a JavaScript variable.
    """
    fields = _unique(
        [s for b in bindings for s in b.signals]
        + [w for h in handlers for w in h.writes]
        + [s for h in handlers for s in h.signals]
        + [f for a in async_bindings for f in a.fields]
    )
    ids = _unique(
        [b.id for b in bindings]
        + [h.id for h in handlers]
        + [a.id for a in async_bindings]
    )

    script = "\n<script>\n(function() {\n"

    for name in fields:
        script += f"  let {name} = {_field_literal(component, name)};\n"

    for element_id in ids:
        script += (
            f"  const {element_id} = "
            f"document.querySelector('[{ZID_ATTRIBUTE}=\"{element_id}\"]');\n"
        )

    if any(b.attribute is not None for b in bindings):
        script += ATTR_HELPER
    if async_bindings:
        script += ASYNC_HELPERS

    script += "  function __update() {\n"
    for b in bindings:
        expr = strip_receiver(b.source)
        if b.attribute is None:
            script += f"    {b.id}.textContent = {expr};\n"
        else:
            script += f"    __attr({b.id}, {js_string(b.attribute)}, {expr});\n"
    script += "  }\n"

    for h in handlers:
        body = strip_receiver(h.source)
        params = ", ".join(h.params)
        script += f"  {h.id}.{h.event} = ({params}) => {{ {body}; __update(); }};\n"

    for a in async_bindings:
        script += f"  {strip_receiver(a.promise_source)}\n"
        script += f"    .then({strip_receiver(a.then_callback)})\n"
        script += f"    .then((r) => __fill({a.id}, r))"
        if a.catch_callback is not None:
            script += (
                f"\n    .catch((e) => __fill({a.id}, "
                f"({strip_receiver(a.catch_callback)})(e)))"
            )
        script += ";\n"

    script += "})();\n</script>"
    return script
