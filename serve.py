"""Single-port server for the prediction DAO API."""
import os

import uvicorn

from predictiondao.api.app import create_app

app = create_app(use_lifespan=True)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "5008")))
