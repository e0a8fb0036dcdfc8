"""
Expose the FastAPI application instance.

Importing this module creates a FastAPI application from the environment
and registers all routes, so the service can be run with Uvicorn:

```sh
uvicorn miniide.api:app
python -m miniide.api
```
"""

from .main import app, create_app

__all__ = ["app", "create_app"]
