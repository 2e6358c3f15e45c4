"""Pre-flight check for a jukebox deployment's environment file.

Loads ``AppSettings`` and builds the provider registry from an ``.env`` file so
a missing ``JB_SECRET`` or half-configured provider is caught before the web
app or the reauth worker starts. Optionally records a SHA256 baseline of the
file and later reports drift; an unnoticed ``JB_SECRET`` change signs every
user out.

    python -m scripts.check_env check --env-file /srv/jukebox/.env
    python -m scripts.check_env record --env-file /srv/jukebox/.env \
        --hash-file /srv/jukebox/.env.sha256
    python -m scripts.check_env verify --env-file /srv/jukebox/.env \
        --hash-file /srv/jukebox/.env.sha256
"""

from __future__ import annotations

import argparse
import hashlib
import sys
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from jukebox.clients import ProviderRegistry, build_provider_registry
from jukebox.core.config import AppSettings, _load_env_file

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_RUNTIME_ERROR = 5


class EnvCheckError(Exception):
    def __init__(self, message: str, exit_code: int) -> None:
        super().__init__(message)
        self.exit_code = exit_code


def load_registry(env_file: Path) -> ProviderRegistry:
    """Build settings and providers exactly as the app would from ``env_file``."""
    if not env_file.is_file():
        raise EnvCheckError(f"Environment file {env_file} does not exist.", EXIT_RUNTIME_ERROR)

    _load_env_file(str(env_file))
    try:
        settings = AppSettings(_env_file=env_file)  # type: ignore[call-arg]
        return build_provider_registry(settings)
    except ValidationError as exc:
        missing = ", ".join(".".join(str(loc) for loc in err["loc"]) for err in exc.errors())
        raise EnvCheckError(f"Invalid settings: {missing}", EXIT_VALIDATION_ERROR) from exc
    except ValueError as exc:
        raise EnvCheckError(f"Invalid provider configuration: {exc}", EXIT_VALIDATION_ERROR) from exc


def digest(env_file: Path) -> str:
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def record_baseline(env_file: Path, hash_file: Path) -> None:
    value = digest(env_file)
    hash_file.write_text(value + "\n", encoding="utf-8")
    print(f"Baseline {value} written to {hash_file}")


def compare_baseline(env_file: Path, hash_file: Path) -> None:
    if not hash_file.is_file():
        raise EnvCheckError(
            f"No baseline at {hash_file}; run 'record' first.", EXIT_RUNTIME_ERROR
        )
    expected = hash_file.read_text(encoding="utf-8").strip()
    actual = digest(env_file)
    if expected != actual:
        raise EnvCheckError(
            f"{env_file} changed since the baseline was recorded "
            f"(expected {expected}, found {actual}). "
            "A new JB_SECRET invalidates every session.",
            EXIT_CHECKSUM_ERROR,
        )
    print("Environment file matches baseline.")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate jukebox settings and detect .env drift."
    )
    commands = parser.add_subparsers(dest="command", required=True)
    for name, help_text, needs_hash in (
        ("check", "Validate settings and providers only.", False),
        ("record", "Validate, then store the checksum baseline.", True),
        ("verify", "Validate, then compare against the checksum baseline.", True),
    ):
        command = commands.add_parser(name, help=help_text)
        command.add_argument("--env-file", type=Path, default=Path(".env"))
        if needs_hash:
            command.add_argument("--hash-file", type=Path, required=True)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        registry = load_registry(args.env_file)
        for slug, provider in registry.items():
            print(f"{slug}: callback {provider.descriptor.redirect_url}")
        if args.command == "record":
            record_baseline(args.env_file, args.hash_file)
        elif args.command == "verify":
            compare_baseline(args.env_file, args.hash_file)
    except EnvCheckError as exc:
        print(str(exc), file=sys.stderr)
        return exc.exit_code
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
