import logging

import uvicorn

from booking_chat.config import LOG_LEVEL


def main():
    """Run the FastAPI application with uvicorn server."""
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s - %(levelname)s - %(message)s")
    uvicorn.run("booking_chat.app:app", host="0.0.0.0", port=8000, reload=True)


if __name__ == "__main__":
    main()
