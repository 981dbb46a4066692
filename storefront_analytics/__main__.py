"""Run the API with uvicorn: ``python -m storefront_analytics``."""

import uvicorn

from storefront_analytics.core.config import get_settings


def main() -> None:
    """Start the API server on the configured host and port."""
    settings = get_settings()
    uvicorn.run(
        "storefront_analytics.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
