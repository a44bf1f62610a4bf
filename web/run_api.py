import logging
import platform
import subprocess

from helpers.globals import cfg
from web.app import app, preflight


def server_settings() -> dict:
    """Collect the api.* launcher settings, with defaults for a bare config."""
    return {
        "host": cfg("api.host", "127.0.0.1"),
        "port": int(cfg("api.port", 5001)),
        "workers": int(cfg("api.workers", 2)),
        "threads": int(cfg("api.threads", 4)),
        "log_level": str(cfg("api.log_level", "info")).lower(),
    }


def pick_server(system: str = None) -> str:
    system = (system or platform.system()).lower()
    return "waitress" if "windows" in system else "gunicorn"


def gunicorn_command(host, port, workers, threads, log_level) -> list:
    return [
        "gunicorn",
        "--bind", f"{host}:{port}",
        "--workers", str(workers),
        "--threads", str(threads),
        "--log-level", str(log_level).lower(),
        "web.app:app",
    ]


def main():
    """Serve the classifier API with the platform's WSGI server."""
    if not preflight():
        logging.error("[API] Preflight failed, not starting")
        return

    settings = server_settings()
    logging.getLogger().setLevel(settings["log_level"].upper())

    server = pick_server()
    logging.info(
        f"[API] {server} on {settings['host']}:{settings['port']} "
        f"workers={settings['workers']} threads={settings['threads']}"
    )

    if server == "waitress":
        try:
            from waitress import serve
        except ImportError:
            logging.error("[API] waitress is required on Windows: pip install waitress")
            return
        serve(app, host=settings["host"], port=settings["port"], threads=settings["threads"])
        return

    subprocess.run(gunicorn_command(**settings), check=True)


if __name__ == "__main__":
    main()
