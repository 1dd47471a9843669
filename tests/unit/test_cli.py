import json
from uuid import uuid4

import pytest

from src.api import deps
from src.api.auth_utils import decode_access_token
from src.app_shell import cli


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("ASSET_DATA_DIR", str(tmp_path / "data"))
    deps.get_settings.cache_clear()
    deps.get_storage_backend.cache_clear()
    yield tmp_path / "data"
    deps.get_settings.cache_clear()
    deps.get_storage_backend.cache_clear()


def test_token_command(capsys):
    cli.main(["token", "user-9", "--role", "designer"])

    token = capsys.readouterr().out.strip()
    claims = decode_access_token(token)
    assert claims["sub"] == "user-9"
    assert claims["role"] == "designer"


def test_migrate_then_stats(data_dir, capsys):
    cli.main(["migrate"])
    assert "Applied 1 migration(s)." in capsys.readouterr().out
    assert (data_dir / "assets.db").exists()

    cli.main(["stats"])

    stats = json.loads(capsys.readouterr().out)
    assert stats == {"total": 0, "total_bytes": 0, "by_type": {}, "by_visibility": {}}


def test_purge_unknown_exits_nonzero(data_dir):
    cli.main(["migrate"])
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["purge", str(uuid4())])
    assert exc_info.value.code == 1


def test_purge_rejects_malformed_id(data_dir):
    with pytest.raises(SystemExit):
        cli.main(["purge", "not-a-uuid"])


def test_serve_runs_uvicorn(monkeypatch):
    calls = []
    monkeypatch.setattr(cli.uvicorn, "run", lambda app, **kw: calls.append((app, kw)))

    cli.main(["serve", "--port", "9001"])

    assert calls == [("src.api.main:app", {"host": "127.0.0.1", "port": 9001, "reload": False})]
