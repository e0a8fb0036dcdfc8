"""Run the API server with Uvicorn on the configured ``PORT``."""

import uvicorn

from .main import app


def main() -> None:
    uvicorn.run(app, host="0.0.0.0", port=app.state.config.port)


if __name__ == "__main__":
    main()
