"""Command-line entry point: load configuration, keys and storage, then process wallets."""

import argparse
import asyncio
import signal
import sys

from dotenv import load_dotenv

from retro.app import Application
from retro.bootstrap import register_tasks_from_config
from retro.config import ConfigNotFoundError, ConfigParseError, load_config
from retro.database import MissingConnectionStringError, UnsupportedDBTypeError, new_storage
from retro.keyloader import KeysFileNotFoundError, NoValidKeysError, load_keys
from retro.logger import ColorLogger

DEFAULT_CONFIG_PATH = "config/config.yml"
DEFAULT_WALLETS_PATH = "local/data/private_keys.txt"

_SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def _build_parser():
    parser = argparse.ArgumentParser(prog="retro", description="Process wallets with configured tasks.")
    parser.add_argument(
        "--config", default=DEFAULT_CONFIG_PATH, help="Path to the configuration file"
    )
    parser.add_argument(
        "--wallets", default=DEFAULT_WALLETS_PATH, help="Path to the private keys file"
    )
    return parser


def _fatal(log, message, **fields):
    log.fatal(message, **fields)
    raise SystemExit(1)


def _load_config(path, log):
    log.info("Загрузка конфигурации...", path=path)
    try:
        cfg = load_config(path)
    except ConfigNotFoundError as exc:
        _fatal(log, "Файл конфигурации не найден", path=path, error=exc)
    except ConfigParseError as exc:
        _fatal(
            log,
            "Ошибка парсинга файла конфигурации (проверьте YAML синтаксис)",
            path=path,
            error=exc,
        )
    except Exception as exc:
        _fatal(log, "Не удалось прочитать файл конфигурации", path=path, error=exc)
    log.info(
        "Конфигурация успешно загружена",
        max_parallel=cfg.concurrency.max_parallel_wallets,
    )
    return cfg


async def _open_storage(cfg, log):
    db = cfg.database
    try:
        return await new_storage(log, db.type, db.connection_string, db.pool_max_conns)
    except (UnsupportedDBTypeError, MissingConnectionStringError) as exc:
        _fatal(log, "Ошибка конфигурации хранилища данных", db_type=db.type, error=exc)
    except Exception as exc:
        _fatal(log, "Не удалось инициализировать хранилище данных", db_type=db.type, error=exc)


def _load_keys(path, log):
    log.info("Загрузка приватных ключей...", path=path)
    try:
        keys = load_keys(path, log)
    except KeysFileNotFoundError as exc:
        _fatal(log, "Файл ключей не найден", path=path, error=exc)
    except NoValidKeysError as exc:
        _fatal(log, "В файле ключей не найдено валидных ключей", path=path, error=exc)
    except Exception as exc:
        _fatal(log, "Не удалось прочитать файл ключей", path=path, error=exc)
    log.info("Ключи успешно загружены", count=len(keys))
    return keys


async def _close_resources(log, resources):
    log.info("Graceful shutdown: закрытие ресурсов...")
    seen = set()
    for number, resource in enumerate(resources, start=1):
        if resource is None or id(resource) in seen:
            continue
        seen.add(id(resource))
        log.debug("Closing resource...", index=number)
        try:
            await resource.close()
        except Exception as exc:
            log.error("Ошибка закрытия ресурса при остановке", index=number, error=exc)
        else:
            log.debug("Resource closed.", index=number)


def _install_signal_handlers(loop, app_task, log):
    installed = []

    def on_signal(sig):
        log.warn("Получен сигнал завершения", signal=sig.name)
        log.warn("Инициируется плавная остановка... Отменяем контекст.")
        app_task.cancel()

    for sig in _SHUTDOWN_SIGNALS:
        try:
            loop.add_signal_handler(sig, on_signal, sig)
        except (NotImplementedError, RuntimeError, ValueError):
            continue
        installed.append(sig)
    return installed


async def _run(args, log):
    cfg = _load_config(args.config, log)
    tx_logger, state_storage = await _open_storage(cfg, log)
    try:
        keys = _load_keys(args.wallets, log)
        register_tasks_from_config(cfg, log)
        application = Application(cfg, keys, tx_logger, state_storage, log)

        loop = asyncio.get_running_loop()
        app_task = asyncio.create_task(application.run())
        installed = _install_signal_handlers(loop, app_task, log)
        try:
            await app_task
        except asyncio.CancelledError:
            if not app_task.cancelled():
                raise
            log.warn("Контекст был отменен.")
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)
        log.info("Retro Template ожидает завершения операций перед выходом...")
    finally:
        await _close_resources(log, (tx_logger, state_storage))
    log.info("Retro Template завершил работу.")


def main(argv=None):
    """Run the application; exit with status 1 on a fatal error."""
    load_dotenv()
    log = ColorLogger(sys.stdout)
    args = _build_parser().parse_args(argv)
    log.info("Запуск Retro Template...")
    try:
        asyncio.run(_run(args, log))
    except SystemExit:
        raise
    except Exception as exc:
        _fatal(log, "Критическая ошибка (panic)", error=exc)
    return 0


if __name__ == "__main__":
    sys.exit(main())