import json
import sqlite3

import pytest

from retro.cli import main

KEY_LINE = "0x" + "11" * 32


@pytest.fixture(autouse=True)
def _clean_db_env(monkeypatch):
    for name in ("DB_TYPE", "DB_CONNECTION_STRING", "DB_POOL_MAX_CONNS"):
        monkeypatch.setenv(name, "")


def _write_config(path, database_lines, resume=False):
    text = (
        "concurrency:\n"
        "  max_parallel_wallets: 1\n"
        "state:\n"
        f"  resume_enabled: {'true' if resume else 'false'}\n"
        "database:\n" + "".join(f"  {line}\n" for line in database_lines) + "tasks: []\n"
    )
    path.write_text(text, encoding="utf-8")
    return path


def _keys_file(tmp_path, content=KEY_LINE + "\n"):
    path = tmp_path / "keys.txt"
    path.write_text(content, encoding="utf-8")
    return path


def test_missing_config_is_fatal(tmp_path, capsys):
    with pytest.raises(SystemExit) as info:
        main(["--config", str(tmp_path / "absent.yml"), "--wallets", str(tmp_path / "k.txt")])
    assert info.value.code == 1
    assert "Файл конфигурации не найден" in capsys.readouterr().out


def test_invalid_yaml_is_fatal(tmp_path, capsys):
    config = tmp_path / "config.yml"
    config.write_text("concurrency: [unclosed\n  - : :\n", encoding="utf-8")
    with pytest.raises(SystemExit) as info:
        main(["--config", str(config), "--wallets", str(tmp_path / "k.txt")])
    assert info.value.code == 1
    assert "Ошибка парсинга файла конфигурации" in capsys.readouterr().out


def test_unsupported_database_type_is_fatal(tmp_path, capsys):
    config = _write_config(tmp_path / "config.yml", ["type: mongodb"])
    with pytest.raises(SystemExit) as info:
        main(["--config", str(config), "--wallets", str(_keys_file(tmp_path))])
    assert info.value.code == 1
    assert "Ошибка конфигурации хранилища данных" in capsys.readouterr().out


def test_missing_keys_file_is_fatal(tmp_path, capsys):
    config = _write_config(tmp_path / "config.yml", ["type: none"])
    with pytest.raises(SystemExit) as info:
        main(["--config", str(config), "--wallets", str(tmp_path / "absent.txt")])
    assert info.value.code == 1
    assert "Файл ключей не найден" in capsys.readouterr().out


def test_keys_file_without_valid_keys_is_fatal(tmp_path, capsys):
    config = _write_config(tmp_path / "config.yml", ["type: none"])
    keys = _keys_file(tmp_path, "# only a comment\n\nnot-a-key\n")
    with pytest.raises(SystemExit) as info:
        main(["--config", str(config), "--wallets", str(keys)])
    assert info.value.code == 1
    assert "В файле ключей не найдено валидных ключей" in capsys.readouterr().out


def test_successful_run_without_storage(tmp_path, capsys):
    config = _write_config(tmp_path / "config.yml", ["type: none"])
    result = main(["--config", str(config), "--wallets", str(_keys_file(tmp_path))])
    out = capsys.readouterr().out
    assert result == 0
    assert "Retro Template завершил работу." in out
    assert out.index("Запуск Retro Template...") < out.index("Retro Template завершил работу.")


def test_successful_run_saves_resume_state(tmp_path, capsys):
    db_path = tmp_path / "data" / "retro.db"
    config = _write_config(
        tmp_path / "config.yml",
        ["type: sqlite", f"connection_string: {json.dumps(str(db_path))}"],
        resume=True,
    )
    result = main(["--config", str(config), "--wallets", str(_keys_file(tmp_path))])
    assert result == 0
    assert db_path.exists()
    with sqlite3.connect(db_path) as conn:
        row = conn.execute(
            "SELECT value FROM application_state WHERE key = ?",
            ("last_completed_wallet_index",),
        ).fetchone()
    assert row == ("0",)
    assert "Retro Template завершил работу." in capsys.readouterr().out


def test_resumed_run_skips_completed_wallets(tmp_path, capsys):
    db_path = tmp_path / "retro.db"
    config = _write_config(
        tmp_path / "config.yml",
        ["type: sqlite", f"connection_string: {json.dumps(str(db_path))}"],
        resume=True,
    )
    keys = _keys_file(tmp_path)
    assert main(["--config", str(config), "--wallets", str(keys)]) == 0
    capsys.readouterr()
    assert main(["--config", str(config), "--wallets", str(keys)]) == 0
    out = capsys.readouterr().out
    assert "Все кошельки уже были обработаны в предыдущем сеансе." in out
    assert "Нет ключей для обработки в этом сеансе." in out