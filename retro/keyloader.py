"""Loading of private keys from a text file."""

import re
from dataclasses import dataclass, field
from pathlib import Path

from retro.signer import private_key_to_address

_KEY_HEX = re.compile(r"[0-9a-fA-F]{64}")


class KeyLoadError(Exception):
    """Base class for key file problems."""


class KeysFileNotFoundError(KeyLoadError):
    """The key file does not exist."""


class KeysFileReadError(KeyLoadError):
    """The key file could not be read."""


class NoValidKeysError(KeyLoadError):
    """The key file holds no valid private key."""


@dataclass(frozen=True)
class LoadedKey:
    """A private key and the address derived from it."""

    private_key: int = field(repr=False)
    address: str


def load_keys(path, log):
    """Read one hex private key per line; blank lines and '#' comments are skipped."""
    path = Path(path)
    try:
        with path.open(encoding="utf-8", errors="replace") as handle:
            lines = list(handle)
    except FileNotFoundError as exc:
        raise KeysFileNotFoundError(f"файл ключей '{path}': key file not found") from exc
    except OSError as exc:
        raise KeysFileReadError(
            f"чтение файла ключей '{path}': failed to read key file: {exc}"
        ) from exc

    keys = []
    for line_number, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        key = _parse_key(line.removeprefix("0x"), line_number, path, log)
        if key is not None:
            keys.append(key)

    if not keys:
        log.error("В файле не найдено валидных приватных ключей", file=str(path))
        raise NoValidKeysError(f"no valid private keys found in the file: '{path}'")
    return keys


def _parse_key(text, line_number, path, log):
    if _KEY_HEX.fullmatch(text):
        value = int(text, 16)
        try:
            return LoadedKey(private_key=value, address=private_key_to_address(value))
        except ValueError:
            pass
    log.warn(
        "Неверный формат приватного ключа",
        line=line_number,
        file=str(path),
        error="invalid private key format",
    )
    return None