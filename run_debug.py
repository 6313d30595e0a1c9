#!/usr/bin/env python3
"""
Локальный запуск API с автоперезагрузкой и подробными логами.

    python run_debug.py            # 127.0.0.1:8000
    PORT=9000 python run_debug.py
"""

import os
import subprocess
import sys


def build_command(host: str, port: str) -> list:
    return [
        sys.executable, "-m", "uvicorn", "speech_practice.main:app",
        "--reload",
        "--host", host,
        "--port", port,
        "--log-level", "debug",
    ]


def main() -> int:
    host = os.environ.get("HOST", "127.0.0.1")
    port = os.environ.get("PORT", "8000")
    cmd = build_command(host, port)
    env = {**os.environ, "LOG_LEVEL": "DEBUG"}

    print(f"🎙️  Speech Practice API (debug): http://{host}:{port}/docs")
    print(f"   {' '.join(cmd)}")

    process = subprocess.Popen(cmd, env=env)
    try:
        return process.wait()
    except KeyboardInterrupt:
        print("\n⏹️  Остановка сервера...")
        process.terminate()
        return process.wait()


if __name__ == "__main__":
    sys.exit(main())
