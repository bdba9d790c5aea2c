"""
GuardNomad Safety Backend — FastAPI
Modular entry point. All logic is split across:
  config.py, models.py, search_service.py, safety_service.py,
  location_service.py, routes.py, cache.py, breaker.py
"""

import logging

from config import LOG_LEVEL

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

from routes import app  # noqa: E402,F401

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
