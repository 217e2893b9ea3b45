import pytest

from videolab import cli
from videolab.cli import InvalidPort, resolve_port


@pytest.fixture
def uvicorn_calls(monkeypatch):
    calls = []
    monkeypatch.setattr(cli.uvicorn, "run", lambda app, **kwargs: calls.append(kwargs))
    monkeypatch.delenv("PORT", raising=False)
    return calls


@pytest.mark.parametrize(
    "argv,environ,expected",
    [
        ([], {}, 3000),
        (["8080"], {}, 8080),
        (["--port=9000"], {}, 9000),
        (["--port", "9001"], {}, 9001),
        (["-p", "9002"], {}, 9002),
        (["8080", "-p", "9002"], {"PORT": "4000"}, 8080),
        (["-p", "9002"], {"PORT": "4000"}, 9002),
        ([], {"PORT": "4000"}, 4000),
        ([], {"PORT": "abc"}, 3000),
        ([], {"PORT": "0"}, 3000),
    ],
)
def test_resolve_port(argv, environ, expected):
    args = cli.build_parser().parse_args(argv)
    assert resolve_port(args.port, args.port_option, environ) == expected


@pytest.mark.parametrize("value", ["0", "70000", "65536", "abc", "-5"])
def test_resolve_port_rejects_invalid(value):
    with pytest.raises(InvalidPort):
        resolve_port(value, None, {})


def test_env_port_out_of_range_is_rejected():
    with pytest.raises(InvalidPort):
        resolve_port(None, None, {"PORT": "70000"})


def test_main_exits_on_out_of_range_port(uvicorn_calls):
    with pytest.raises(SystemExit) as exc:
        cli.main(["70000"])
    assert exc.value.code == 1
    assert uvicorn_calls == []


def test_main_help_exits_cleanly(uvicorn_calls, capsys):
    with pytest.raises(SystemExit) as exc:
        cli.main(["--help"])
    assert exc.value.code == 0
    assert "--port" in capsys.readouterr().out
    assert uvicorn_calls == []


def test_main_runs_server(uvicorn_calls):
    cli.main(["8080", "--host", "127.0.0.1"])
    assert uvicorn_calls == [{"host": "127.0.0.1", "port": 8080}]
