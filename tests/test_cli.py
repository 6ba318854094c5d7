import sys
import textwrap
import uuid

import pytest
from click import BadParameter
from click.testing import CliRunner
from zinc import Zinc, __version__
from zinc.cli.main import cli, import_app

APP_SOURCE = textwrap.dedent(
    """
    from zinc import Component, Zinc

    app = Zinc(debug=False)


    @app.route("/")
    class Home(Component):
        def render(self, ctx):
            return ctx.html("<h1>{}</h1>", "Hello from zinc")


    @app.route("/counter/:start:int")
    class Counter(Component):
        def __init__(self, start):
            self.count = start

        def render(self, ctx):
            return ctx.html(
                "<button onclick={}>{}</button>",
                lambda: setattr(self, "count", self.count + 1),
                self.count,
            )
    """
)


@pytest.fixture
def app_module(tmp_path, monkeypatch):
    name = f"zinc_cli_app_{uuid.uuid4().hex}"
    (tmp_path / f"{name}.py").write_text(APP_SOURCE)
    monkeypatch.chdir(tmp_path)
    monkeypatch.syspath_prepend(str(tmp_path))
    yield name
    sys.modules.pop(name, None)


def test_version() -> None:
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_help_lists_commands() -> None:
    result = CliRunner().invoke(cli, ["--help"])
    assert result.exit_code == 0
    for command in ("dev", "run", "render"):
        assert command in result.output


def test_render_root(app_module) -> None:
    result = CliRunner().invoke(cli, ["render", f"{app_module}:app"])
    assert result.exit_code == 0, result.output
    assert "<h1>Hello from zinc</h1>" in result.output


def test_render_path_with_parameters(app_module) -> None:
    result = CliRunner().invoke(cli, ["render", f"{app_module}:app", "/counter/4"])
    assert result.exit_code == 0, result.output
    assert '<button data-zid="_0">4</button>' in result.output
    assert "let count = 4;" in result.output


def test_render_unknown_path(app_module) -> None:
    result = CliRunner().invoke(cli, ["render", f"{app_module}:app", "/missing"])
    assert result.exit_code == 1


def test_render_requires_module_and_attribute() -> None:
    result = CliRunner().invoke(cli, ["render", "no_colon_here"])
    assert result.exit_code == 2


def test_import_app(app_module) -> None:
    app = import_app(f"{app_module}:app")
    assert isinstance(app, Zinc)
    with pytest.raises(BadParameter, match="not found"):
        import_app(f"{app_module}:missing")
