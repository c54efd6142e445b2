from os import environ

from uvicorn import run

from retail_ledger.log import configure_logging


def main() -> None:
    configure_logging()
    # keep the handlers installed by configure_logging for uvicorn's loggers too
    run(
        "retail_ledger.app:app",
        host=environ.get("HOST", "0.0.0.0"),
        port=int(environ.get("PORT", 8000)),
        workers=int(environ.get("WORKERS", 1)),
        log_config=None,
        proxy_headers=environ.get("PROXY_HEADERS", "1") == "1",
    )


if __name__ == "__main__":
    main()
