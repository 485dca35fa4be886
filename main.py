"""
main.py — Server launcher.

    python main.py

Host, port and auto-reload come from COORD_SERVER_HOST, COORD_SERVER_PORT
and COORD_SERVER_RELOAD. The FastAPI application itself lives in app.py;
this module only starts uvicorn against it.

Equivalent direct invocation:
    uvicorn app:app --host 127.0.0.1 --port 8000
"""

from __future__ import annotations

import uvicorn

from backend.utils.config import Settings, get_settings


def _banner(settings: Settings) -> str:
    base_url = f"http://{settings.server_host}:{settings.server_port}"
    rule = "-" * 60
    return "\n".join(
        [
            rule,
            f"  {settings.app_name} v{settings.app_version}",
            rule,
            f"  Listening on : {base_url}",
            f"  OpenAPI docs : {base_url}/docs",
            f"  Database     : {settings.database_path}",
            f"  Demo seeding : {'on' if settings.seed_demo_data else 'off'}",
            rule,
        ]
    )


def main() -> None:
    settings = get_settings()
    print(_banner(settings))

    # Blocks until CTRL+C
    uvicorn.run(
        "app:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.server_reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
