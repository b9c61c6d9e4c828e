"""HTTP server exposing e-book generation to the browser GUI."""
from __future__ import annotations

import asyncio
import json
import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Coroutine, Optional
from urllib.parse import parse_qs, urlparse

from ebook_factory.client import GeminiClient
from ebook_factory.config import ConfigError, Settings
from ebook_factory.cover import COVER_MIME_TYPE, CoverError, decode_cover_image
from ebook_factory.gateway import GeminiGateway
from ebook_factory.gui import get_gui_html
from ebook_factory.markdown import blocks_to_html, render_markdown
from ebook_factory.orchestrator import Gateway, GenerationOrchestrator
from ebook_factory.store import BookStore

logger = logging.getLogger(__name__)

EXPORT_MESSAGE = "PDF export is not available yet. Nothing was written."


class ApiError(ValueError):
    """Raised when API input is invalid."""


class NotFoundError(ApiError):
    """Raised when the requested resource does not exist yet."""


class EventLoopThread:
    """Run an asyncio event loop on a daemon thread for generation work."""

    def __init__(self) -> None:
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._run, name="ebook-factory-loop", daemon=True
        )
        self._started = False

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def start(self) -> "EventLoopThread":
        if not self._started:
            self._thread.start()
            self._started = True
        return self

    def submit(self, coro: Coroutine[Any, Any, Any]) -> Future:
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def stop(self) -> None:
        if not self._started:
            self.loop.close()
            return
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=5)
        self.loop.close()
        self._started = False


@dataclass
class AppContext:
    settings: Settings
    store: BookStore
    orchestrator: GenerationOrchestrator
    runner: EventLoopThread


def build_app(settings: Settings, gateway: Optional[Gateway] = None) -> AppContext:
    store = BookStore()
    if gateway is None:
        gateway = GeminiGateway(GeminiClient.from_settings(settings))
    orchestrator = GenerationOrchestrator(store, gateway, settings)
    return AppContext(
        settings=settings,
        store=store,
        orchestrator=orchestrator,
        runner=EventLoopThread(),
    )


def _log_future_failure(future: Future) -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.error("Generation failed", exc_info=error)


def _parse_chapter_id(value: Any) -> int:
    if isinstance(value, bool):
        raise ApiError("Chapter id must be a whole number.")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ApiError("Chapter id must be a whole number.") from exc


def get_state_api(app: AppContext, query: dict[str, Any]) -> dict[str, Any]:
    response = app.store.snapshot().to_dict()
    response["api_key_configured"] = app.settings.has_api_key
    return response


def get_chapter_api(app: AppContext, query: dict[str, Any]) -> dict[str, Any]:
    if "id" not in query:
        raise ApiError("id is required.")
    chapter_id = _parse_chapter_id(query["id"])
    book = app.store.snapshot().book
    chapter = book.chapter_by_id(chapter_id) if book else None
    if chapter is None:
        raise NotFoundError("Chapter not found.")
    blocks = render_markdown(chapter.content) if chapter.content else []
    response = chapter.to_dict()
    response["blocks"] = [block.to_dict() for block in blocks]
    response["html"] = blocks_to_html(blocks)
    ids = book.chapter_ids
    position = ids.index(chapter_id)
    response["previous_id"] = ids[position - 1] if position > 0 else None
    response["next_id"] = ids[position + 1] if position < len(ids) - 1 else None
    return response


def generate_api(app: AppContext, payload: dict[str, Any]) -> dict[str, Any]:
    topic = payload.get("topic")
    if topic is not None and not isinstance(topic, str):
        raise ApiError("topic must be a string.")
    try:
        cleaned = app.orchestrator.prepare_topic(topic)
    except ConfigError as exc:
        raise ApiError(str(exc)) from exc
    if cleaned is None:
        raise ApiError("topic is required.")
    future = app.runner.submit(app.orchestrator.start_generation(cleaned))
    future.add_done_callback(_log_future_failure)
    return {"status": "planning", "topic": cleaned}


def select_api(app: AppContext, payload: dict[str, Any]) -> dict[str, Any]:
    if "offset" in payload:
        offset = _parse_chapter_id(payload["offset"])
        selected = app.store.select_relative(offset)
        return {"selected_chapter_id": selected}
    chapter_id = payload.get("chapter_id")
    if chapter_id is not None:
        chapter_id = _parse_chapter_id(chapter_id)
    try:
        selected = app.store.select_chapter(chapter_id)
    except ValueError as exc:
        raise NotFoundError(str(exc)) from exc
    return {"selected_chapter_id": selected}


def export_api(app: AppContext, payload: dict[str, Any]) -> dict[str, Any]:
    if app.store.snapshot().book is None:
        raise ApiError("There is no e-book to export yet.")
    return {"status": "unavailable", "message": EXPORT_MESSAGE}


def _read_json(handler: BaseHTTPRequestHandler) -> dict[str, Any]:
    try:
        length = int(handler.headers.get("Content-Length", 0))
    except (TypeError, ValueError) as exc:
        raise ApiError("Invalid Content-Length header.") from exc
    if length <= 0:
        return {}
    raw = handler.rfile.read(length)
    if not raw:
        return {}
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ApiError("Invalid JSON payload.") from exc
    payload = json.loads(text)
    if not isinstance(payload, dict):
        raise ApiError("JSON payload must be an object.")
    return payload


def _send_json(handler: BaseHTTPRequestHandler, payload: dict[str, Any], status: int) -> None:
    body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    handler.send_response(status)
    handler.send_header("Content-Type", "application/json")
    handler.send_header("Content-Length", str(len(body)))
    handler.send_header("Cache-Control", "no-store")
    handler.end_headers()
    handler.wfile.write(body)


def _send_html(handler: BaseHTTPRequestHandler, html: str) -> None:
    body = html.encode("utf-8")
    handler.send_response(HTTPStatus.OK)
    handler.send_header("Content-Type", "text/html; charset=utf-8")
    handler.send_header("Content-Length", str(len(body)))
    handler.end_headers()
    handler.wfile.write(body)


def _send_bytes(handler: BaseHTTPRequestHandler, body: bytes, content_type: str) -> None:
    handler.send_response(HTTPStatus.OK)
    handler.send_header("Content-Type", content_type)
    handler.send_header("Content-Length", str(len(body)))
    handler.send_header("Cache-Control", "no-store")
    handler.end_headers()
    try:
        handler.wfile.write(body)
    except (BrokenPipeError, ConnectionResetError):
        return


def _parse_query(handler: BaseHTTPRequestHandler) -> dict[str, Any]:
    query = parse_qs(urlparse(handler.path).query)
    return {key: values[0] for key, values in query.items() if values}


def _handle_cover(handler: BaseHTTPRequestHandler, app: AppContext) -> None:
    book = app.store.snapshot().book
    try:
        image = decode_cover_image(book.cover_image_base64 if book else None)
    except CoverError as exc:
        _send_json(handler, {"error": str(exc)}, HTTPStatus.NOT_FOUND)
        return
    _send_bytes(handler, image, COVER_MIME_TYPE)


_GET_ROUTES: dict[str, Callable[[AppContext, dict[str, Any]], dict[str, Any]]] = {
    "/api/state": get_state_api,
    "/api/chapter": get_chapter_api,
}
_POST_ROUTES: dict[str, Callable[[AppContext, dict[str, Any]], dict[str, Any]]] = {
    "/api/generate": generate_api,
    "/api/select": select_api,
    "/api/export": export_api,
}


def _handle_api(handler: BaseHTTPRequestHandler, app: AppContext, method: str) -> None:
    path = urlparse(handler.path).path
    try:
        if method == "GET":
            if path == "/api/cover":
                _handle_cover(handler, app)
                return
            handler_fn = _GET_ROUTES.get(path)
            payload = _parse_query(handler)
        else:
            handler_fn = _POST_ROUTES.get(path)
            payload = _read_json(handler) if handler_fn else {}
        if handler_fn is None:
            _send_json(handler, {"error": "Unknown endpoint"}, HTTPStatus.NOT_FOUND)
            return
        response = handler_fn(app, payload)
        _send_json(handler, response, HTTPStatus.OK)
    except NotFoundError as exc:
        _send_json(handler, {"error": str(exc)}, HTTPStatus.NOT_FOUND)
    except ApiError as exc:
        _send_json(handler, {"error": str(exc)}, HTTPStatus.BAD_REQUEST)
    except json.JSONDecodeError:
        _send_json(handler, {"error": "Invalid JSON payload."}, HTTPStatus.BAD_REQUEST)


class EbookFactoryServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], app: AppContext) -> None:
        super().__init__(address, EbookFactoryRequestHandler)
        self.app = app


class EbookFactoryRequestHandler(BaseHTTPRequestHandler):
    """Serve the GUI page and its JSON API."""

    server: EbookFactoryServer

    def do_GET(self) -> None:  # noqa: N802 - required by BaseHTTPRequestHandler
        if self.path.startswith("/api/"):
            _handle_api(self, self.server.app, "GET")
            return
        _send_html(self, get_gui_html())

    def do_POST(self) -> None:  # noqa: N802 - required by BaseHTTPRequestHandler
        if not self.path.startswith("/api/"):
            _send_json(self, {"error": "Unsupported endpoint"}, HTTPStatus.NOT_FOUND)
            return
        _handle_api(self, self.server.app, "POST")

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        logger.debug("%s - %s", self.address_string(), format % args)


def run_server(
    host: str = "127.0.0.1",
    port: int = 8080,
    settings: Optional[Settings] = None,
) -> EbookFactoryServer:
    """Run the E-book Factory HTTP server until interrupted."""
    app = build_app(settings or Settings.from_env())
    app.runner.start()
    server = EbookFactoryServer((host, port), app)
    print(f"E-book Factory GUI available at http://{host}:{port}")
    if not app.settings.has_api_key:
        print("[config] No API key configured; generation is disabled.")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()
        app.runner.submit(_cancel_generation(app.orchestrator)).result(timeout=5)
        app.runner.stop()
    return server


async def _cancel_generation(orchestrator: GenerationOrchestrator) -> None:
    orchestrator.cancel()
