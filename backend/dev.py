from __future__ import annotations

import logging
import signal
import subprocess
import sys
import time

from backend.config import API_HOST, API_PORT, CLIENT_PORT, LOG_LEVEL, ROOT_DIR

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.5  # seconds
SHUTDOWN_TIMEOUT = 5  # seconds before kill()


def server_command() -> list[str]:
    return [
        sys.executable, "-m", "uvicorn", "backend.api_main:app",
        "--reload",
        "--host", API_HOST,
        "--port", str(API_PORT),
    ]


def client_command() -> list[str]:
    return [
        sys.executable, "-m", "streamlit", "run", "streamlit_app.py",
        "--server.port", str(CLIENT_PORT),
        "--server.headless", "true",
    ]


def _stop(procs: dict[str, subprocess.Popen]) -> None:
    # a repeated Ctrl+C (the launcher forwards one too) must not cut the shutdown short
    previous = signal.signal(signal.SIGINT, signal.SIG_IGN)
    try:
        for name, proc in procs.items():
            if proc.poll() is None:
                logger.info("Stopping %s (pid %s)", name, proc.pid)
                proc.terminate()
        for name, proc in procs.items():
            try:
                proc.wait(timeout=SHUTDOWN_TIMEOUT)
            except subprocess.TimeoutExpired:
                logger.warning("%s ignored terminate(), killing it", name)
                proc.kill()
                proc.wait()
    finally:
        if previous is not None:
            signal.signal(signal.SIGINT, previous)


def run(commands: dict[str, list[str]] | None = None) -> int:
    """
    Run the API server and the Streamlit client side by side.
    When one exits the other is stopped; the result is the exit status
    of the first non-zero process that ended on its own (0 otherwise).
    """
    commands = commands or {"api": server_command(), "client": client_command()}
    procs = {name: subprocess.Popen(cmd, cwd=str(ROOT_DIR)) for name, cmd in commands.items()}

    try:
        while True:
            exited = {name: p.returncode for name, p in procs.items() if p.poll() is not None}
            if exited:
                break
            time.sleep(POLL_INTERVAL)
    except KeyboardInterrupt:
        _stop(procs)
        return 0

    for name, code in exited.items():
        logger.info("%s exited with code %s", name, code)
    _stop(procs)

    # the survivors were terminated by _stop(): their status is not a failure
    failed = [code for code in exited.values() if code != 0]
    return failed[0] if failed else 0


def main() -> None:
    logging.basicConfig(level=LOG_LEVEL, format="[dev] %(levelname)s %(message)s")
    sys.exit(run())


if __name__ == "__main__":
    main()
