"""
Entry point for running the demo host with `python -m backend`.
"""
import logging

import uvicorn

from backend.settings import get_settings

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    uvicorn.run("backend.main:app", host="0.0.0.0", port=get_settings().port, reload=True)
