"""Container entrypoint."""
import pytest

from scripts import start


def test_gunicorn_argv_serves_wsgi_app():
    argv = start.gunicorn_argv(9000, 3)
    assert argv[:2] == ["gunicorn", "app.wsgi:app"]
    assert argv[argv.index("--bind") + 1] == "0.0.0.0:9000"
    assert argv[argv.index("--workers") + 1] == "3"


def test_start_skips_release_and_execs_gunicorn(monkeypatch):
    calls = []
    monkeypatch.setenv("PORT", "8123")
    monkeypatch.setenv("WEB_CONCURRENCY", "4")
    monkeypatch.setenv("SKIP_RELEASE", "1")
    monkeypatch.setattr(start.os, "execvp", lambda file, args: calls.append((file, args)))

    start.main()

    assert calls == [("gunicorn", start.gunicorn_argv(8123, 4))]


@pytest.mark.parametrize("name,value", [("PORT", "0"), ("PORT", "http"), ("WEB_CONCURRENCY", "100")])
def test_start_rejects_bad_settings(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    monkeypatch.setattr(start.os, "execvp", lambda file, args: pytest.fail("gunicorn should not start"))
    with pytest.raises(SystemExit) as exc:
        start.main()
    assert exc.value.code == 1
