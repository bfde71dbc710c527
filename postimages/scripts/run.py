"""Serve the Postimages API with uvicorn."""

import uvicorn

from postimages.config import config


def main() -> None:
    # Logging is set up by postimages.main; requests go through its middleware
    uvicorn.run(
        "postimages.main:app",
        host=config.HOST,
        port=config.PORT,
        reload=config.DEBUG,
        log_config=None,
        access_log=False,
    )


if __name__ == "__main__":
    main()
