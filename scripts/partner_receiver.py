from __future__ import annotations

import uvicorn

from amberdist.apps.partner_receiver.app import create_app, load_receiver_settings


def main() -> None:
    # Serve the reference partner endpoint with env-driven settings.
    settings = load_receiver_settings()
    uvicorn.run(create_app(settings=settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
