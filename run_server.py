import logging
import os

import uvicorn

if __name__ == "__main__":
    logging.basicConfig(
        level=os.environ.get("MILESTONE_LEDGER_LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    logging.getLogger(__name__).info("Docs available at: http://localhost:8000/docs")

    uvicorn.run(
        "milestone_ledger.api.server:app",
        host=os.environ.get("MILESTONE_LEDGER_HOST", "127.0.0.1"),
        port=int(os.environ.get("MILESTONE_LEDGER_PORT", "8000")),
    )
