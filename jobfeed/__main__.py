import uvicorn

from .config import settings
from .logs import configure_logging


def main() -> None:
    configure_logging(settings.LOG_LEVEL)
    uvicorn.run("jobfeed.main:app", host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    main()
