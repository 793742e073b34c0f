"""Module entrypoint for running the liveness API and oracle with shared settings."""

import uvicorn

from ao_price_oracle.core.config import get_settings


def main() -> int:
    """Run the API service using configured host and port."""

    settings = get_settings()
    uvicorn.run(
        "ao_price_oracle.services.api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_config=None,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
