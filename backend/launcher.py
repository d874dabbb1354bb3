"""
DentalCare Pro development launcher.

Runs once per invocation, strictly in this order:
1. the Python runtime must be at least MIN_PYTHON
2. server and client dependencies must be importable
3. the SQLite database must exist, otherwise the seed command creates it
4. banner, then the combined dev command (API + Streamlit client)
5. Ctrl+C is forwarded to the dev process and the launcher exits with 0
6. otherwise the launcher exits with the dev process' own status

Every failure in steps 1-3 is fatal: a message for the operator and exit 1.

Usage:
    python -m backend.launcher
    dentalcare-start
"""
from __future__ import annotations

import importlib.util
import platform
import signal
import subprocess
import sys
from pathlib import Path
from typing import Callable, Iterable

from backend.config import API_PORT, CLIENT_PORT, DB_PATH, DEV_COMMAND, ROOT_DIR, SEED_COMMAND

MIN_PYTHON = (3, 10)

SERVER_MODULES = ("fastapi", "uvicorn", "sqlalchemy", "jose", "passlib")
CLIENT_MODULES = ("streamlit", "requests")

DEMO_CREDENTIALS = [
    ("Admin", "admin@dentalcare.com", "admin123"),
    ("Dentist", "sarah.johnson@dentalcare.com", "dentist123"),
    ("Receptionist", "emily.davis@dentalcare.com", "receptionist123"),
]


# =========================
# Errors
# =========================
class LaunchError(Exception):
    """Fatal prerequisite failure: reported to the operator, exit status 1."""


class EnvironmentUnmet(LaunchError):
    """The Python runtime is too old."""


class DependencyMissing(LaunchError):
    """Server or client packages are not installed."""


class SeedFailure(LaunchError):
    """The seed command exited with a non-zero status."""


# =========================
# Checks
# =========================
def parse_version(identifier: str) -> tuple[int, ...]:
    """'3.12.1' -> (3, 12, 1); a leading 'v' ('v18.2.0') and suffixes ('3.13.0rc1') are tolerated."""
    parts = []
    for chunk in identifier.strip().lstrip("vV").split("."):
        digits = ""
        for ch in chunk:
            if not ch.isdigit():
                break
            digits += ch
        if not digits:
            break
        parts.append(int(digits))
    if not parts:
        raise ValueError(f"Unparsable version: {identifier!r}")
    return tuple(parts)


def check_runtime(version: str | None = None, minimum: tuple[int, ...] = MIN_PYTHON) -> None:
    version = version or platform.python_version()
    try:
        current = parse_version(version)
    except ValueError as e:
        raise EnvironmentUnmet(f"Cannot read the Python version: {e}") from e

    if current[: len(minimum)] < minimum:
        required = ".".join(str(n) for n in minimum)
        raise EnvironmentUnmet(
            f"Python {required} or higher is required.\n"
            f"   Current version: {version}\n"
            f"   Please upgrade Python and try again."
        )


def _missing_modules(modules: Iterable[str], find_spec: Callable = importlib.util.find_spec) -> list[str]:
    return [m for m in modules if find_spec(m) is None]


def check_dependencies(find_spec: Callable = importlib.util.find_spec) -> None:
    for label, modules in (("Server", SERVER_MODULES), ("Client", CLIENT_MODULES)):
        missing = _missing_modules(modules, find_spec)
        if missing:
            raise DependencyMissing(
                f"{label} dependencies not installed ({', '.join(missing)}).\n"
                f"   Run: pip install -e ."
            )


def ensure_database(db_path: Path = DB_PATH, seed_command: str = SEED_COMMAND, cwd: Path = ROOT_DIR) -> None:
    if db_path.exists():
        return

    print("📊 Database not found. Creating and seeding database...")
    seed = subprocess.Popen(seed_command, cwd=str(cwd), shell=True)
    code = seed.wait()
    if code != 0:
        raise SeedFailure(f"Failed to seed database (exit code {code})")
    print("✅ Database created and seeded successfully!\n")


# =========================
# Dev process
# =========================
def print_banner() -> None:
    print("🚀 Starting DentalCare Pro...")
    print(f"   Frontend: http://localhost:{CLIENT_PORT}")
    print(f"   Backend:  http://localhost:{API_PORT}")
    print("\n📋 Demo Credentials:")
    for role, email, password in DEMO_CREDENTIALS:
        print(f"   {role + ':':<14}{email} / {password}")
    print("\n⏳ Starting servers...\n")


def _interrupt_handler(proc: subprocess.Popen) -> Callable:
    def handler(signum, frame) -> None:
        print("\n🛑 Shutting down DentalCare Pro...")
        # best effort: the child's own cleanup is not awaited
        if proc.poll() is None:
            proc.send_signal(signal.SIGINT)
        sys.exit(0)

    return handler


def start_application(dev_command: str = DEV_COMMAND, cwd: Path = ROOT_DIR) -> int:
    """Banner, spawn the dev command, forward Ctrl+C; returns the dev process exit status."""
    print_banner()

    dev = subprocess.Popen(dev_command, cwd=str(cwd), shell=True)
    signal.signal(signal.SIGINT, _interrupt_handler(dev))

    code = dev.wait()
    if code < 0:
        # killed by a signal: report it the way a shell does
        code = 128 - code
    print(f"\n🏁 DentalCare Pro stopped with code {code}")
    return code


def main() -> None:
    print("🦷 DentalCare Pro - Starting Application...\n")
    try:
        check_runtime()
        check_dependencies()
        ensure_database()
    except LaunchError as e:
        print(f"❌ {e}", file=sys.stderr)
        sys.exit(1)

    sys.exit(start_application())


if __name__ == "__main__":
    main()
