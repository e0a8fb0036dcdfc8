"""Backend service for the browser mini IDE.

This package serves the JSON API behind the editor: accounts and session
tokens, a small store of saved source files, and execution of C++ and
Python snippets through interchangeable backends.

The top-level modules include:

* ``config`` – configuration handling for environment variables.
* ``errors`` – domain errors translated to HTTP statuses by the API.
* ``models`` – Pydantic models defining request and response schemas.
* ``sessions`` – users, tokens and login rate limiting.
* ``storage`` – the flat directory of saved source files.
* ``executor`` – execution backends and the dispatcher in front of them.
* ``api`` – FastAPI application exposing HTTP endpoints.
"""

__version__ = "1.0.1"
