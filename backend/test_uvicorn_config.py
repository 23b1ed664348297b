import uvicorn

import config
import uvicorn_config


def test_run_uses_config(monkeypatch):
    calls = []
    monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))

    uvicorn_config.run()

    app, kwargs = calls[0]
    assert app == "main:app"
    assert kwargs["host"] == config.HOST
    assert kwargs["port"] == config.PORT
    assert kwargs["reload"] == config.RELOAD
    assert kwargs["log_level"] == config.LOG_LEVEL
    assert kwargs["workers"] == 1
