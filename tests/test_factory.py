import re

import pytest
from markupsafe import Markup
from zinc import Component, fetch
from zinc.compiler.exceptions import HydrationError, TemplateError
from zinc.runtime.bindings import IdCounter
from zinc.runtime.factory import create_html_factory, render_component


def zids(html: str) -> list:
    markup = re.sub(r"<script>.*?</script>", "", html, flags=re.S)
    return re.findall(r'data-zid="([^"]*)"', markup)


class Greeting(Component):
    def __init__(self, name: str) -> None:
        self.name = name

    def render(self, ctx):
        return ctx.html("<p>Hello {}</p>", self.name)


class Counter(Component):
    def __init__(self, count: int = 0) -> None:
        self.count = count

    def render(self, ctx):
        return ctx.html(
            "<button onclick={}>Clicked {} times</button>",
            lambda: setattr(self, "count", self.count + 1),
            self.count,
        )


class SplitCounter(Component):
    def __init__(self) -> None:
        self.count = 0

    def render(self, ctx):
        return ctx.html(
            "<div><p>{}</p><p>{} / {}</p><button onclick={}>+</button></div>",
            self.count,
            self.count,
            self.count * 2,
            lambda: setattr(self, "count", self.count + 1),
        )


class LabelledCounter(Component):
    def __init__(self) -> None:
        self.count = 0

    def render(self, ctx):
        return ctx.html(
            "<button onclick={}>+</button><p><b>Count:</b> {}</p>",
            lambda: setattr(self, "count", self.count + 1),
            self.count,
        )


class Toggle(Component):
    def __init__(self) -> None:
        self.on = False

    def render(self, ctx):
        return ctx.html(
            '<div class="{}"><button onclick={}>toggle</button></div>',
            "on" if self.on else "off",
            lambda: setattr(self, "on", not self.on),
        )


class Submit(Component):
    def __init__(self) -> None:
        self.busy = False

    def render(self, ctx):
        return ctx.html(
            "<button disabled={} onclick={}>Send</button>",
            self.busy,
            lambda: setattr(self, "busy", True),
        )


class Link(Component):
    def __init__(self, title) -> None:
        self.title = title

    def render(self, ctx):
        return ctx.html('<a href="/docs" title="{}">Docs</a>', self.title)


class Checkbox(Component):
    def __init__(self, checked) -> None:
        self.checked = checked

    def render(self, ctx):
        return ctx.html("<input type=checkbox checked={}>", self.checked)


class Flags(Component):
    def render(self, ctx):
        return ctx.html("<p>{}|{}|{}|{}</p>", True, False, None, 0)


class TodoList(Component):
    def __init__(self, items) -> None:
        self.items = items

    def render(self, ctx):
        return ctx.html(
            "<ul>{}</ul>",
            [ctx.html("<li>{}</li>", item) for item in self.items],
        )


class Mixed(Component):
    def render(self, ctx):
        return ctx.html(
            "<div>{}</div>",
            ["a<b", None, False, Markup("<hr>"), Greeting("x"), 3],
        )


class Inner(Component):
    def __init__(self) -> None:
        self.count = 0

    def render(self, ctx):
        return ctx.html(
            "<span class=inner><button onclick={}>{}</button></span>",
            lambda: setattr(self, "count", self.count + 1),
            self.count,
        )


class Middle(Component):
    def __init__(self) -> None:
        self.count = 0

    def render(self, ctx):
        return ctx.html(
            "<section class=middle><button onclick={}>{}</button>{}</section>",
            lambda: setattr(self, "count", self.count + 1),
            self.count,
            Inner(),
        )


class Outer(Component):
    def __init__(self) -> None:
        self.count = 0

    def render(self, ctx):
        return ctx.html(
            "<div class=outer>{}<button onclick={}>{}</button></div>",
            Middle(),
            lambda: setattr(self, "count", self.count + 1),
            self.count,
        )


class Profile(Component):
    def render(self, ctx):
        return ctx.html(
            "<div class=profile>{}</div>",
            fetch("/api/user").then(lambda user: ctx.html("<b>{}</b>", user["name"])),
        )


class SafeProfile(Component):
    def render(self, ctx):
        return ctx.html(
            "<div>{}</div>",
            fetch("/api/user")
            .then(lambda user: user["name"])
            .catch(lambda error: "Could not load"),
        )


class Untranslatable(Component):
    def __init__(self) -> None:
        self.count = 0

    def render(self, ctx):
        return ctx.html(
            "<p>{}</p><button onclick={}>+</button>",
            f"{self.count:03}",
            lambda: setattr(self, "count", self.count + 1),
        )


class LiveMarkup(Component):
    def __init__(self) -> None:
        self.items = ["a"]

    def render(self, ctx):
        return ctx.html(
            "<ul>{}</ul><button onclick={}>add</button>",
            [ctx.html("<li>{}</li>", item) for item in self.items],
            lambda: self.items.append("b"),
        )


class UserCard(Component):
    def __init__(self, user_id: int) -> None:
        self.user_id = user_id

    def render(self, ctx):
        return ctx.html(
            "<div>{}</div>",
            fetch(f"/api/users/{self.user_id}").then(lambda r: r.json()),
        )


class Flag(Component):
    def __init__(self, done: bool = False) -> None:
        self.done = done

    def render(self, ctx):
        return ctx.html(
            "<p>{}</p><button onclick={}>toggle</button>",
            self.done,
            lambda: setattr(self, "done", not self.done),
        )


class Owner(Component):
    def __init__(self) -> None:
        self.owner = None

    def render(self, ctx):
        return ctx.html(
            "<p>Owner: {}</p><button onclick={}>claim</button>",
            self.owner,
            lambda: setattr(self, "owner", "me"),
        )


class ScriptSlot(Component):
    def __init__(self) -> None:
        self.count = 0

    def render(self, ctx):
        return ctx.html(
            "<script>var n = {};</script><button onclick={}>+</button>",
            self.count,
            lambda: setattr(self, "count", self.count + 1),
        )


class CommentSlot(Component):
    def __init__(self) -> None:
        self.count = 0

    def render(self, ctx):
        return ctx.html(
            "<!-- {} --><button onclick={}>+</button>",
            self.count,
            lambda: setattr(self, "count", self.count + 1),
        )


class Wrapper(Component):
    def __init__(self) -> None:
        self.count = 0

    def render(self, ctx):
        inner = ctx.html(
            "<button onclick={}>{}</button>",
            lambda: setattr(self, "count", self.count + 1),
            self.count,
        )
        return ctx.html("<div class=wrapper>{}</div>", inner)


def test_static_content_has_no_script() -> None:
    html = render_component(Greeting("Ada"))
    assert html == "<p>Hello Ada</p>"
    assert isinstance(html, Markup)


def test_read_only_field_is_inlined() -> None:
    first = render_component(Greeting("Ada"))
    second = render_component(Greeting("Grace"))
    assert first.replace("Ada", "Grace") == second
    for html in (first, second):
        assert "data-zid" not in html
        assert "<script>" not in html


def test_plain_values_are_escaped() -> None:
    html = render_component(Greeting('<script>alert("x")</script>'))
    assert "<script>" not in html
    assert "&lt;script&gt;alert(&quot;x&quot;)&lt;/script&gt;" in html


def test_counter() -> None:
    html = render_component(Counter(3))
    assert html.startswith('<button data-zid="_0">Clicked 3 times</button>')
    assert zids(html) == ["_0"]
    assert "onclick" not in html.split("<script>")[0]
    assert "let count = 3;" in html
    assert '_0.textContent = "Clicked " + (count) + " times";' in html
    assert "_0.onclick = () => { count = count + 1; __update(); };" in html


def test_one_identifier_per_element() -> None:
    html = render_component(SplitCounter())
    markup = html.split("<script>")[0]
    assert zids(markup) == ["_1", "_2", "_0"]
    assert '<p data-zid="_1">0</p>' in markup
    assert '<p data-zid="_2">0 / 0</p>' in markup
    assert '_2.textContent = "" + (count) + " / " + (count * 2);' in html


def test_text_next_to_elements_is_wrapped() -> None:
    html = render_component(LabelledCounter())
    markup = html.split("<script>")[0]
    assert '<p><b>Count:</b><span data-zid="_1"> 0</span></p>' in markup
    assert '_1.textContent = " " + (count);' in html


def test_reactive_attribute() -> None:
    html = render_component(Toggle())
    assert html.startswith(
        '<div class="off" data-zid="_1"><button data-zid="_0">toggle</button></div>'
    )
    assert '__attr(_1, "class", on ? "on" : "off");' in html
    assert "_0.onclick = () => { on = !on; __update(); };" in html


def test_reactive_attribute_currently_false_is_omitted_but_bound() -> None:
    html = render_component(Submit())
    assert html.startswith('<button data-zid="_0">Send</button>')
    assert '__attr(_0, "disabled", busy);' in html
    assert "_0.onclick = () => { busy = true; __update(); };" in html


@pytest.mark.parametrize("value", [False, None])
def test_falsy_quoted_attribute_is_removed(value) -> None:
    assert render_component(Link(value)) == '<a href="/docs">Docs</a>'


def test_quoted_attribute_value_is_escaped() -> None:
    html = render_component(Link('say "hi"'))
    assert html == '<a href="/docs" title="say &quot;hi&quot;">Docs</a>'


def test_unquoted_attribute() -> None:
    assert render_component(Checkbox(False)) == "<input type=checkbox>"
    assert render_component(Checkbox(True)) == '<input type=checkbox checked="">'
    assert render_component(Checkbox("yes")) == '<input type=checkbox checked="yes">'


def test_booleans_in_text() -> None:
    assert render_component(Flags()) == "<p>true|||0</p>"


def test_sequences_and_nested_templates() -> None:
    html = render_component(TodoList(["milk", "<eggs>"]))
    assert html == "<ul><li>milk</li><li>&lt;eggs&gt;</li></ul>"


def test_sequence_items() -> None:
    html = render_component(Mixed())
    assert html == "<div>a&lt;b<hr><p>Hello x</p>3</div>"


def test_nested_components() -> None:
    html = render_component(Outer())
    assert re.search(
        r'<div class="?outer"?><section class="?middle"?>.*'
        r'<span class="?inner"?>.*</span>.*</section>.*</div>',
        html,
        re.S,
    )
    ids = zids(html)
    assert len(ids) == len(set(ids)) == 3
    # The parent is resolved before its children
    assert ids == ["_1", "_2", "_0"]
    assert html.count("<script>") == 3


def test_shared_counter_across_renders() -> None:
    counter = IdCounter()
    first = render_component(Counter(), id_counter=counter)
    second = render_component(Counter(), id_counter=counter)
    assert zids(first) == ["_0"]
    assert zids(second) == ["_1"]


def test_own_nested_output_is_spliced_without_script() -> None:
    html = render_component(Wrapper())
    assert html.count("<script>") == 1
    assert html.startswith(
        '<div class=wrapper><button data-zid="_0">0</button></div>\n<script>'
    )


def test_async_anchor() -> None:
    html = render_component(Profile())
    assert html.startswith('<div class="profile"><span data-zid="_0"></span></div>')
    assert '  fetch("/api/user")\n    .then((user) => html("<b>{}<\\/b>", user["name"]))' in html
    assert ".then((r) => __fill(_0, r))" in html
    assert ".catch" not in html


def test_async_anchor_with_catch() -> None:
    html = render_component(SafeProfile())
    assert '.catch((e) => __fill(_0, ((error) => "Could not load")(e)))' in html


def test_untranslatable_live_expression() -> None:
    with pytest.raises(HydrationError, match="no JavaScript form"):
        render_component(Untranslatable())


def test_live_sequence_is_spliced_without_binding() -> None:
    html = render_component(LiveMarkup())
    assert html.startswith('<ul><li>a</li></ul><button data-zid="_0">add</button>')
    assert zids(html) == ["_0"]
    assert 'let items = ["a"];' in html
    assert '_0.onclick = () => { items.push("b"); __update(); };' in html


def test_value_count_mismatch() -> None:
    html = create_html_factory(Greeting("x"))
    with pytest.raises(TemplateError, match="1 slots but 2 values"):
        html("<p>{}</p>", 1, 2)
    with pytest.raises(TemplateError, match="Only bare"):
        html("<p>{name}</p>", 1)


def test_unanalyzed_template_inlines_values() -> None:
    html = create_html_factory(Counter())
    output = html("<em>{}</em>", "<x>")
    assert output == "<em>&lt;x&gt;</em>"
    assert html.bindings == [] and html.handlers == []


def test_async_chain_declares_the_fields_it_reads() -> None:
    html = render_component(UserCard(7))
    assert "let user_id = 7;" in html
    assert "  fetch(`/api/users/${user_id}`)\n    .then((r) => r.json())" in html
    assert html.index("let user_id") < html.index("fetch(")
    # Reading a field does not make the anchor reactive
    assert "  function __update() {\n  }\n" in html


@pytest.mark.parametrize("done, text", [(False, "false"), (True, "true")])
def test_reactive_boolean_text_matches_client(done, text) -> None:
    html = render_component(Flag(done))
    assert f'<p data-zid="_1">{text}</p>' in html
    assert "_1.textContent = done;" in html
    assert "_0.onclick = () => { done = !done; __update(); };" in html


def test_reactive_none_in_composed_text_matches_client() -> None:
    html = render_component(Owner())
    assert '<p data-zid="_1">Owner: null</p>' in html
    assert '_1.textContent = "Owner: " + (owner);' in html
    assert "let owner = null;" in html


@pytest.mark.parametrize("component", [ScriptSlot, CommentSlot])
def test_live_slot_out_of_reach_is_rejected(component) -> None:
    with pytest.raises(TemplateError, match="no binding can reach it"):
        render_component(component())
