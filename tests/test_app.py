import unittest
from unittest.mock import patch

from starlette.testclient import TestClient
from zinc import Component, PageNotFound, TemplateSyntaxError, Zinc


class Home(Component):
    def render(self, ctx):
        return ctx.html("<h1>{}</h1>", "Home")


class Counter(Component):
    def __init__(self, start: int = 0) -> None:
        self.count = start

    def render(self, ctx):
        return ctx.html(
            "<button onclick={}>{}</button>",
            lambda: setattr(self, "count", self.count + 1),
            self.count,
        )


class Broken(Component):
    def render(self, ctx):
        raise RuntimeError("boom")


class BadTemplate(Component):
    def __init__(self) -> None:
        self.a = 1

    def render(self, ctx):
        return ctx.html("<p>{}{}</p>", self.a)


class RequestEcho(Component):
    def render(self, ctx):
        return ctx.html("<p>{}</p>", ctx.request.url.path)


def build_app(debug: bool = False) -> Zinc:
    app = Zinc(debug=debug)
    app.add_route("/", Home, name="home")
    app.add_route("/counter/:start:int", Counter, name="counter")
    app.add_route("/broken", Broken)
    app.add_route("/bad", BadTemplate)
    app.add_route("/echo", RequestEcho)
    return app


class TestZincApp(unittest.TestCase):
    def setUp(self) -> None:
        self.app = build_app()
        self.client = TestClient(self.app)

    def test_static_page(self) -> None:
        response = self.client.get("/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.text, "<h1>Home</h1>")
        self.assertTrue(response.headers["content-type"].startswith("text/html"))

    def test_path_parameters_are_coerced(self) -> None:
        response = self.client.get("/counter/7")
        self.assertEqual(response.status_code, 200)
        self.assertIn('<button data-zid="_0">7</button>', response.text)
        self.assertIn("let count = 7;", response.text)

    def test_trailing_slash(self) -> None:
        response = self.client.get("/counter/2/")
        self.assertEqual(response.status_code, 200)
        self.assertIn("let count = 2;", response.text)

    def test_ids_restart_for_every_request(self) -> None:
        first = self.client.get("/counter/1").text
        second = self.client.get("/counter/1").text
        self.assertEqual(first, second)

    def test_not_found(self) -> None:
        response = self.client.get("/missing")
        self.assertEqual(response.status_code, 404)
        self.assertIn("404", response.text)
        # :int parameters only match digits
        self.assertEqual(self.client.get("/counter/abc").status_code, 404)

    def test_request_is_available_to_render(self) -> None:
        self.assertEqual(self.client.get("/echo").text, "<p>/echo</p>")

    def test_url_for(self) -> None:
        self.assertEqual(self.app.url_for("home"), "/")
        self.assertEqual(self.app.url_for("counter", start=3), "/counter/3")
        with self.assertRaises(KeyError):
            self.app.url_for("nope")

    def test_render_path(self) -> None:
        self.assertEqual(self.app.render_path("/"), "<h1>Home</h1>")
        with self.assertRaises(PageNotFound):
            self.app.render_path("/missing")

    def test_factory_must_produce_component(self) -> None:
        self.app.add_route("/wrong", lambda: "not a component")
        with self.assertRaises(TypeError):
            self.app.render_path("/wrong")

    def test_errors_propagate_without_debug(self) -> None:
        client = TestClient(self.app, raise_server_exceptions=False)
        response = client.get("/broken")
        self.assertEqual(response.status_code, 500)
        self.assertNotIn("boom", response.text)

        with self.assertRaises(RuntimeError):
            self.client.get("/broken")

    def test_route_decorator_returns_class_unchanged(self) -> None:
        app = Zinc(debug=False)

        @app.route("/about", name="about")
        class About(Component):
            def render(self, ctx):
                return ctx.html("<p>{}</p>", "About")

        self.assertTrue(issubclass(About, Component))
        self.assertEqual(app.url_for("about"), "/about")
        self.assertEqual(app.render_path("/about"), "<p>About</p>")


class TestDebugPages(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(build_app(debug=True))

    def test_exception_page(self) -> None:
        response = self.client.get("/broken")
        self.assertEqual(response.status_code, 500)
        self.assertIn("RuntimeError", response.text)
        self.assertIn("boom", response.text)
        self.assertIn("test_app.py", response.text)

    def test_template_error_page(self) -> None:
        response = self.client.get("/bad")
        self.assertEqual(response.status_code, 500)
        self.assertIn("Template Error", response.text)
        self.assertIn("2 slots but 1 values", response.text)
        self.assertIn("test_app.py", response.text)

    def test_not_found_is_not_an_error(self) -> None:
        self.assertEqual(self.client.get("/missing").status_code, 404)


class TestDebugConfig(unittest.TestCase):
    def test_debug_from_environment(self) -> None:
        with patch.dict("os.environ", {"ZINC_DEBUG": "true"}):
            self.assertTrue(Zinc().debug)
        with patch.dict("os.environ", {"ZINC_DEBUG": "0"}):
            self.assertFalse(Zinc().debug)

    def test_explicit_debug_wins(self) -> None:
        with patch.dict("os.environ", {"ZINC_DEBUG": "1"}):
            self.assertFalse(Zinc(debug=False).debug)

    def test_template_errors_carry_location(self) -> None:
        with self.assertRaises(TemplateSyntaxError) as info:
            build_app().render_path("/bad")
        self.assertTrue(info.exception.file_path.endswith("test_app.py"))
        self.assertIsNotNone(info.exception.line)


if __name__ == "__main__":
    unittest.main()
