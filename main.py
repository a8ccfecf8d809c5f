import asyncio
import logging
from typing import Dict, List, Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from blast_errors import (
    BlastError,
    Cancelled,
    FetchError,
    JobFailedError,
    PollTimeoutError,
    PollTransientError,
    SubmissionError,
    ValidationError,
)
from blast_models import DEFAULT_DATABASE, JobHandle, SearchRequest
from chat_service import AssistantReply, ChatSession, parse_assistant_reply, random_greeting
from controller import BlastPipeline
from ebi_blast import EBIBlastClient
from env_loader import load_settings
from groq_compat import VALID_GROQ_MODELS, GroqClient, resolve_model
from structures import STRUCTURE_SOURCES, StructureFetchError, fetch_structure

load_dotenv('.env.local')

logging.basicConfig(level=logging.INFO,
                    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger("main")

app = FastAPI(
    title="Dr. Rhesus Research Assistant API",
    description="BLAST job orchestration, structure lookup and chat for the Dr. Rhesus assistant",
    version="1.0.0"
)

# Enable CORS for frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Pydantic models for request/response
class BlastRunRequest(BaseModel):
    program: str = "blastp"
    database: str = DEFAULT_DATABASE
    sequence: str


class BlastSearchRequest(BaseModel):
    sequence: str
    program: str = "blastp"
    database: Optional[str] = None
    summarize: bool = True


class ChatRequest(BaseModel):
    message: str
    history: List[Dict[str, str]] = []
    model: Optional[str] = None


# Dependencies, overridden in tests
def get_blast_client() -> EBIBlastClient:
    settings = load_settings()
    return EBIBlastClient(base_url=settings.ebi_blast_url,
                          email=settings.contact_email,
                          timeout=settings.http_timeout)


def get_pipeline() -> BlastPipeline:
    return BlastPipeline.from_settings(load_settings())


def get_llm_client() -> GroqClient:
    settings = load_settings()
    return GroqClient(api_key=settings.groq_api_key,
                      model=settings.groq_model,
                      base_url=settings.groq_base_url)


def get_structure_fetcher():
    return fetch_structure


async def watch_disconnect(http_request: Request, cancel_event: asyncio.Event, interval: float = 0.5):
    """Set cancel_event once the HTTP client has gone away"""
    while not cancel_event.is_set():
        if await http_request.is_disconnected():
            logger.info("Client disconnected, cancelling BLAST search")
            cancel_event.set()
            return
        await asyncio.sleep(interval)


async def get_cancel_event(http_request: Request):
    cancel_event = asyncio.Event()
    watcher = asyncio.create_task(watch_disconnect(http_request, cancel_event))
    try:
        yield cancel_event
    finally:
        watcher.cancel()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _status_for(error: BlastError) -> int:
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, PollTimeoutError):
        return 504
    if isinstance(error, Cancelled):
        return 499
    if isinstance(error, (SubmissionError, JobFailedError, FetchError, PollTransientError)):
        return 502
    return 500


@app.get("/")
async def root():
    return {"message": "Dr. Rhesus API is running!", "greeting": random_greeting()}


@app.get("/models")
async def get_available_models():
    """Get list of available chat models"""
    return {"models": VALID_GROQ_MODELS}


@app.post("/api/blast")
async def blast_proxy_run(body: BlastRunRequest,
                          action: Optional[str] = Query(None),
                          client: EBIBlastClient = Depends(get_blast_client)):
    """Same-origin proxy for EBI job submission"""
    if action != "run":
        return _error(400, "Invalid request")
    request = SearchRequest(program=body.program, database=body.database, sequence=body.sequence)
    try:
        handle = await asyncio.to_thread(client.submit, request)
    except BlastError as e:
        logger.error(f"[BLAST PROXY ERROR] {e}")
        return _error(_status_for(e), str(e))
    return {"jobId": handle.job_id}


@app.get("/api/blast")
async def blast_proxy_read(action: Optional[str] = Query(None),
                           jobId: Optional[str] = Query(None),
                           client: EBIBlastClient = Depends(get_blast_client)):
    """Same-origin proxy for EBI job status and results"""
    if not jobId or action not in ("status", "result"):
        return _error(400, "Invalid request")
    handle = JobHandle(jobId)
    try:
        if action == "status":
            status = await asyncio.to_thread(client.get_status, handle)
            return {"status": status}
        return await asyncio.to_thread(client.get_result, handle)
    except BlastError as e:
        logger.error(f"[BLAST PROXY ERROR] {e}")
        return _error(_status_for(e), str(e))


@app.post("/blast/search")
async def blast_search(body: BlastSearchRequest,
                       pipeline: BlastPipeline = Depends(get_pipeline),
                       cancel_event=Depends(get_cancel_event)):
    """Run a full BLAST search and return hits plus an optional summary"""
    try:
        search = SearchRequest.from_text(body.sequence,
                                         program=body.program,
                                         database=body.database or load_settings().database)
        result = await pipeline.run(search, cancel_event=cancel_event, summarize=body.summarize)
    except BlastError as e:
        logger.error(f"BLAST search failed: {e}")
        raise HTTPException(status_code=_status_for(e), detail=str(e))
    return result.to_dict()


@app.post("/chat", response_model=AssistantReply)
async def chat_endpoint(body: ChatRequest, llm: GroqClient = Depends(get_llm_client)):
    """Send one user turn to Dr. Rhesus and return the parsed reply"""
    if not body.message.strip():
        raise HTTPException(status_code=400, detail="Message must not be empty")
    if body.model:
        llm.model = resolve_model(body.model)
    session = ChatSession(llm, history=body.history)
    reply_text = await asyncio.to_thread(session.send_message, body.message)
    return parse_assistant_reply(reply_text)


@app.get("/structure/{source}/{identifier}", response_class=PlainTextResponse)
async def get_structure(source: str, identifier: str, fetcher=Depends(get_structure_fetcher)):
    """Return a PDB file from RCSB or AlphaFold DB"""
    if source not in STRUCTURE_SOURCES:
        raise HTTPException(status_code=400, detail=f"Unknown structure source '{source}'")
    try:
        pdb_text = await asyncio.to_thread(fetcher, identifier, source)
    except StructureFetchError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return PlainTextResponse(pdb_text)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
