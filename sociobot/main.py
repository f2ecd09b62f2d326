# Entry point for the FastAPI app
from fastapi import FastAPI, Request, BackgroundTasks
from fastapi.responses import JSONResponse, PlainTextResponse
import logging
import time
from contextlib import asynccontextmanager

from . import config, agent, message_handler, profile_store, security, sheets_client
from .adapters import get_adapter_for_channel
from .rag import chunk_store, retriever

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

default_message = f"{config.ORG_NAME} bot OK"


def startup_checks():
    profile_store.init_db()
    logger.info(f"[STARTUP] Knowledge index: {chunk_store.index_state().value}")
    if not config.SPREADSHEET_ID:
        logger.warning("[STARTUP] SPREADSHEET_ID not set: every caller will be treated as interested party")
    if not config.GENERATOR_ENABLED:
        logger.warning("[STARTUP] Generator disabled: replying with scripted rules only")


@asynccontextmanager
async def lifespan(app: FastAPI):
    startup_checks()
    yield


app = FastAPI(lifespan=lifespan)


@app.exception_handler(404)
async def not_found_handler(request: Request, exc):
    return JSONResponse(status_code=404, content={"error": "Ruta no encontrada", "path": request.url.path})


@app.get("/", response_class=PlainTextResponse)
def root():
    return default_message


@app.get("/healthz", response_class=PlainTextResponse)
def healthz():
    return "ok"


# ---------------------- Meta webhook ----------------------

@app.get("/webhook")
async def verify_webhook(request: Request):
    """Subscription handshake: echo hub.challenge when the verify token matches."""
    params = request.query_params
    if security.verify_subscription(params.get("hub.mode"), params.get("hub.verify_token")):
        return PlainTextResponse(params.get("hub.challenge", ""))
    logger.warning(f"[WEBHOOK] Verification rejected from {security.get_client_ip(request)}")
    return PlainTextResponse("Forbidden", status_code=403)


async def process_webhook_messages(messages):
    adapter = get_adapter_for_channel("whatsapp")
    for msg in messages:
        await message_handler.handle_message(adapter, msg)


@app.post("/webhook")
async def receive_webhook(request: Request, background_tasks: BackgroundTasks):
    """Acknowledge Meta right away (avoids retries); messages are handled in the background."""
    body = await request.body()
    security.validate_signature(request, body)

    try:
        data = await request.json()
    except Exception:
        logger.error(f"[WEBHOOK] Could not parse request body: {body[:200]!r}")
        return {"status": "ignored"}
    if not isinstance(data, dict):
        logger.warning(f"[WEBHOOK] Ignoring non-object payload: {type(data).__name__}")
        return {"status": "ignored"}

    messages = get_adapter_for_channel("whatsapp").parse_incoming(data)
    if messages:
        logger.info(f"[WEBHOOK] {len(messages)} message(s) received")
        background_tasks.add_task(process_webhook_messages, messages)
    return {"status": "ok"}


# ---------------------- Test & debug endpoints ----------------------

@app.post("/probar-mensaje")
async def probar_mensaje(request: Request):
    """Send a message straight to the agent (no WhatsApp involved)."""
    try:
        data = await request.json()
    except Exception:
        data = {}
    if not isinstance(data, dict):
        data = {}
    numero = str(data.get("numero") or "").strip()
    mensaje = str(data.get("mensaje") or "").strip()
    if not numero or not mensaje:
        return JSONResponse(status_code=400, content={"error": "Faltan numero o mensaje"})

    start = time.monotonic()
    await sheets_client.log_message(direction="inbound", phone=numero, message=mensaje, extra=data.get("extra") or {})
    try:
        result = await agent.run_agent(numero, mensaje)
    except Exception as e:
        logger.exception("[PROBAR] Error agente")
        await sheets_client.log_message(
            direction="outbound", phone=numero, reply="", error=str(e) or "Fallo el agente",
            extra={"latency_ms": int((time.monotonic() - start) * 1000)},
        )
        return JSONResponse(status_code=500, content={"error": "Fallo el agente"})

    await sheets_client.log_message(
        direction="outbound", phone=numero, is_member=result.is_member, name=result.name or "",
        tone=result.tone, reply=result.text,
        extra={"latency_ms": int((time.monotonic() - start) * 1000), "source": result.source},
    )
    return {"respuesta": result.text}


@app.get("/debug/phone/{n}")
def debug_phone(n: str):
    return {"input": n, "normalized": sheets_client.normalize_phone_ar(n)}


@app.get("/debug/check/{n}")
async def debug_check(n: str):
    member = await sheets_client.check_member(n)
    return member.to_dict()


@app.get("/debug/rag")
async def debug_rag(q: str = ""):
    q = q.strip()
    if not q:
        return JSONResponse(status_code=400, content={"error": "Falta query ?q="})
    try:
        details = await retriever.retrieve_with_details(q)
    except Exception as e:
        logger.exception("[RAG] Debug retrieve failed")
        return JSONResponse(status_code=500, content={"error": str(e) or "Error RAG"})
    return {
        "query": q,
        "context": details["formatted_content"],
        "scores": [{"file": c.source_id, "score": round(c.score, 4)} for c in details["chunks"]],
        "index_state": chunk_store.index_state().value,
    }


@app.post("/debug/rag/reindex")
async def debug_rag_reindex():
    try:
        chunks = await chunk_store.rebuild_index()
    except Exception as e:
        logger.exception("[RAG] Reindex failed")
        return JSONResponse(status_code=500, content={"ok": False, "error": str(e) or "Error reindex"})
    return {"ok": True, "chunks": len(chunks)}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
