# management.py
# Model management endpoints, mixed into Client.
#
# Relies on Client for _request(), _json() and config.

import logging
import re
import time
from typing import Any

from ollama_agent import capabilities
from ollama_agent.errors import (
    ConnectionFailed,
    EmbeddingError,
    HTTPError,
    NotFoundError,
    OllamaError,
    RequestTimeout,
)

logger = logging.getLogger(__name__)

_NAME_PARTS = re.compile(r"[:._-]")


def suggest_models(requested: str, available: list[str], limit: int = 5) -> list[str]:
    """
    Installed model names resembling *requested*.

    Substring containment in either direction wins; only when nothing
    matches are the names compared part by part (split on : . _ -).
    """
    if not available:
        return []

    wanted = requested.lower()
    matches = [m for m in available if wanted in m.lower() or m.lower() in wanted]

    if not matches:
        wanted_parts = [p for p in _NAME_PARTS.split(wanted) if p]
        for model in available:
            parts = [p for p in _NAME_PARTS.split(model.lower()) if p]
            if any(w in p or p in w for w in wanted_parts for p in parts):
                matches.append(model)

    return matches[:limit]


class ModelManagementMixin:
    def pull(self, model: str) -> bool:
        """Download *model* and block until the server reports completion."""
        logger.info("Pulling model %s", model)
        self._request(
            "POST",
            "/api/pull",
            {"model": model, "stream": False},
            timeout=self.config.timeout * 10,
            requested_model=model,
        )
        return True

    def list_models(self) -> list[dict[str, Any]]:
        """Installed models (/api/tags), each with an inferred "capabilities" map."""
        body = self._json(self._request("GET", "/api/tags"), "models")
        models = body.get("models") or []
        for entry in models:
            entry["capabilities"] = capabilities.for_model(entry)
        return models

    tags = list_models

    def list_model_names(self) -> list[str]:
        return [m["name"] for m in self.list_models() if m.get("name")]

    def list_running(self) -> list[dict[str, Any]]:
        """Models currently loaded in memory (/api/ps)."""
        body = self._json(self._request("GET", "/api/ps"), "running models")
        models = body.get("models") or []
        for entry in models:
            entry["capabilities"] = capabilities.for_model(entry)
        return models

    ps = list_running

    def show_model(self, model: str, verbose: bool = False) -> dict[str, Any]:
        body: dict[str, Any] = {"model": model}
        if verbose:
            body["verbose"] = True
        info = self._json(self._request("POST", "/api/show", body, requested_model=model), "show")
        info["capabilities"] = capabilities.for_model({"name": model, **info})
        return info

    def delete_model(self, model: str) -> bool:
        self._request("DELETE", "/api/delete", {"model": model}, requested_model=model)
        return True

    def copy_model(self, source: str, destination: str) -> bool:
        self._request("POST", "/api/copy", {"source": source, "destination": destination}, requested_model=source)
        return True

    def create_model(
        self,
        model: str,
        from_: str,
        system: str | None = None,
        template: str | None = None,
        license: str | list[str] | None = None,
        parameters: dict[str, Any] | None = None,
        messages: list[dict[str, Any]] | None = None,
        quantize: str | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"model": model, "from": from_, "stream": False}
        optional = {
            "system": system,
            "template": template,
            "license": license,
            "parameters": parameters,
            "messages": messages,
            "quantize": quantize,
        }
        body.update({k: v for k, v in optional.items() if v is not None})
        response = self._request("POST", "/api/create", body, timeout=self.config.timeout * 5)
        return self._json(response, "create")

    def push_model(self, model: str, insecure: bool = False) -> dict[str, Any]:
        body: dict[str, Any] = {"model": model, "stream": False}
        if insecure:
            body["insecure"] = True
        response = self._request("POST", "/api/push", body, timeout=self.config.timeout * 10, requested_model=model)
        return self._json(response, "push")

    def embed(self, model: str, input: str | list[str]) -> list[float] | list[list[float]]:
        """
        Embedding vector(s) for *input* from /api/embeddings.

        A single string gives one vector. A list of strings always gives a
        list of vectors, even when the server answers with a single one.
        """
        body = self._json(
            self._request("POST", "/api/embeddings", {"model": model, "input": input}, requested_model=model),
            "embeddings",
        )
        if not isinstance(body, dict) or body.get("embedding") is None:
            keys = ", ".join(body) if isinstance(body, dict) else type(body).__name__
            raise EmbeddingError(f"Embedding not found in response. Response keys: {keys}. Full response: {body!r:.200}")

        embedding = body["embedding"]
        if isinstance(embedding, list) and not embedding:
            raise EmbeddingError(
                f"Empty embedding returned for {model}. The model may not be loaded (try pulling it) "
                f"or may not be an embedding model. Response: {body!r:.300}"
            )

        if isinstance(input, list) and not (isinstance(embedding, list) and isinstance(embedding[0], list)):
            return [embedding]
        return embedding

    def version(self) -> str:
        return self._json(self._request("GET", "/api/version"), "version").get("version", "")

    def health(self, return_meta: bool = False) -> bool | dict[str, Any]:
        """True when the server answers /api/version; never raises for transport failures."""
        started = time.monotonic()
        meta: dict[str, Any] = {"endpoint": "/api/version"}
        try:
            response = self._request("GET", "/api/version")
            ok = True
            meta["status_code"] = response.status_code
        except RequestTimeout:
            ok = False
            meta["error"] = "timeout"
        except (ConnectionFailed, HTTPError) as exc:
            ok = False
            meta["error"] = str(exc)
        meta["latency_ms"] = round((time.monotonic() - started) * 1000.0, 1)

        if not return_meta:
            return ok
        return {"ok": ok, "meta": meta}

    def _enrich_not_found(self, error: NotFoundError) -> NotFoundError:
        """Attach installed-model suggestions to a 404. Falls back to *error* if listing fails."""
        if error.requested_model is None:
            return error
        try:
            available = self.list_model_names()
        except OllamaError as exc:
            logger.debug("Could not list models for suggestions: %s", exc)
            return error
        return NotFoundError(
            error.args[0],
            requested_model=error.requested_model,
            suggestions=suggest_models(error.requested_model, available),
        )
