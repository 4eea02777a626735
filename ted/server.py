"""HTTP API for ted.

``ted serve`` exposes the resolvers and the history log as a small JSON
API so editors and launchers can ask for commands without shelling out
to the CLI.  The server never executes anything.

Endpoints:

``POST /agent``
    Body ``{"query": "..."}``.  Returns ``command``, ``explanation`` and
    the result of the safety check.
``POST /ask``
    Body ``{"question": "..."}``.  Returns ``commands``, a list of
    ``{"command", "description"}`` objects.
``GET /history``
    Returns the recorded entries, newest first.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from . import __version__, history
from .config import load_config
from .providers import BaseProvider, ProviderError, get_provider
from .validator import validate_command

logger = logging.getLogger(__name__)


def _provider() -> BaseProvider:
    try:
        return get_provider(load_config())
    except (ValueError, ProviderError) as exc:
        raise HTTPException(status_code=503, detail=str(exc))


def _text_field(request: dict, name: str) -> str:
    value = request.get(name)
    if not isinstance(value, str) or not value.strip():
        raise HTTPException(status_code=400, detail=f"'{name}' field must be a non-empty string")
    return value.strip()


def create_app() -> FastAPI:
    app = FastAPI(title="ted", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/agent")
    def agent(request: dict) -> dict:
        query = _text_field(request, "query")
        provider = _provider()
        try:
            response = provider.generate_agent_command(query)
        except ProviderError as exc:
            raise HTTPException(status_code=502, detail=str(exc))
        finally:
            provider.close()
        valid, reason = validate_command(response.command)
        return {
            "command": response.command,
            "explanation": response.explanation,
            "valid": valid,
            "reason": reason,
        }

    @app.post("/ask")
    def ask(request: dict) -> dict:
        question = _text_field(request, "question")
        provider = _provider()
        try:
            response = provider.generate_ask_commands(question)
        except ProviderError as exc:
            raise HTTPException(status_code=502, detail=str(exc))
        finally:
            provider.close()
        return {
            "commands": [
                {"command": option.command, "description": option.description}
                for option in response.commands
            ]
        }

    @app.get("/history")
    def list_history() -> dict:
        try:
            with history.load() as log:
                entries = log.get_entries()
        except history.HistoryError as exc:
            logger.error("History unavailable: %s", exc)
            raise HTTPException(status_code=503, detail=str(exc))
        return {
            "entries": [
                {
                    "id": e.id,
                    "timestamp": e.timestamp.isoformat(),
                    "command_kind": e.command_kind,
                    "query": e.query,
                    "response": e.response,
                    "selected": e.selected,
                }
                for e in entries
            ]
        }

    return app
