import os

import uvicorn

from vn_txn_parser.logger import get_logging_config


def run() -> None:
    uvicorn.run(
        "vn_txn_parser.app:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        log_config=get_logging_config(),
    )


if __name__ == "__main__":
    run()
