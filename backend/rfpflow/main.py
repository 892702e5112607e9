# main.py
# FastAPI app. Start with:
#     uvicorn rfpflow.main:app --reload --port 5000

import time
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from . import ai_helpers, models, services
from .advisor import NarrativeAdvisor, OpenAINarrativeGenerator
from .comparison import ComparisonService
from .config import Settings, settings
from .emailer import EmailSender, default_sender
from .errors import (
    ExternalCapabilityError,
    InsufficientDataError,
    InvalidRequestError,
    NotFoundError,
    RfpFlowError,
)
from .log import configure_logging, get_logger
from .storage import Storage, seed_demo_data

log = get_logger(__name__)

ERROR_STATUS = {
    NotFoundError: 404,
    InsufficientDataError: 400,
    InvalidRequestError: 400,
    ExternalCapabilityError: 502,
}


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.monotonic()
        rlog = log.bind(method=request.method, path=request.url.path)
        try:
            response = await call_next(request)
        except Exception as exc:
            rlog.error("request_failed", error=str(exc), duration_ms=round((time.monotonic() - start) * 1000, 2))
            raise
        rlog.info("request_completed", status=response.status_code,
                  duration_ms=round((time.monotonic() - start) * 1000, 2))
        return response


# --- dependencies ---

def get_store(request: Request) -> Storage:
    return request.app.state.store


def get_comparison(request: Request) -> ComparisonService:
    return request.app.state.comparison


def get_sender(request: Request) -> EmailSender:
    return request.app.state.sender


def get_ai_client(request: Request) -> Optional[ai_helpers.OpenAIJsonClient]:
    return request.app.state.ai_client


router = APIRouter(prefix="/api/v1")


@router.get("/dashboard/stats", response_model=models.DashboardStats)
def dashboard_stats(store: Storage = Depends(get_store)):
    return store.dashboard_stats()


# --- RFP endpoints ---

@router.get("/rfps", response_model=List[models.Rfp])
def list_rfps(store: Storage = Depends(get_store)):
    return store.list_rfps()


@router.get("/rfps/recent", response_model=List[models.Rfp])
def recent_rfps(store: Storage = Depends(get_store)):
    return store.list_rfps()[:6]


@router.post("/rfps/from-nl")
def rfp_from_nl(body: models.NlInput, client=Depends(get_ai_client)):
    # draft only; the client reviews it and POSTs /rfps to save
    draft = ai_helpers.extract_rfp_from_text(body.text, client=client)
    return {"rfp": draft.model_dump(mode="json", by_alias=True)}


@router.post("/rfps", response_model=models.Rfp, status_code=201)
def create_rfp(body: models.RfpCreate, store: Storage = Depends(get_store)):
    return store.create_rfp(body)


@router.get("/rfps/{rfp_id}", response_model=models.Rfp)
def get_rfp(rfp_id: str, store: Storage = Depends(get_store)):
    r = store.get_rfp(rfp_id)
    if not r:
        raise NotFoundError("RFP", rfp_id)
    return r


@router.patch("/rfps/{rfp_id}", response_model=models.Rfp)
def update_rfp(rfp_id: str, body: models.RfpUpdate, store: Storage = Depends(get_store)):
    r = store.update_rfp(rfp_id, body)
    if not r:
        raise NotFoundError("RFP", rfp_id)
    return r


@router.delete("/rfps/{rfp_id}", status_code=204)
def delete_rfp(rfp_id: str, store: Storage = Depends(get_store)):
    if not store.delete_rfp(rfp_id):
        raise NotFoundError("RFP", rfp_id)
    return Response(status_code=204)


@router.post("/rfps/{rfp_id}/send", response_model=models.SendRfpResult)
def send_rfp(rfp_id: str, body: models.SendRfpRequest,
             store: Storage = Depends(get_store), sender: EmailSender = Depends(get_sender)):
    return services.send_rfp(store, sender, rfp_id, body.vendor_ids)


@router.get("/rfps/{rfp_id}/proposals", response_model=List[models.Proposal])
def list_proposals_for_rfp(rfp_id: str, store: Storage = Depends(get_store)):
    return store.get_proposals_by_rfp(rfp_id)


@router.get("/rfps/{rfp_id}/comparison", response_model=models.ComparisonResult)
def compare_proposals(rfp_id: str, comparison: ComparisonService = Depends(get_comparison)):
    return comparison.compare(rfp_id)


# --- Vendor endpoints ---

@router.get("/vendors", response_model=List[models.Vendor])
def list_vendors(store: Storage = Depends(get_store)):
    return store.list_vendors()


@router.get("/vendors/{vendor_id}", response_model=models.Vendor)
def get_vendor(vendor_id: str, store: Storage = Depends(get_store)):
    v = store.get_vendor(vendor_id)
    if not v:
        raise NotFoundError("Vendor", vendor_id)
    return v


@router.post("/vendors", response_model=models.Vendor, status_code=201)
def create_vendor(body: models.VendorCreate, store: Storage = Depends(get_store)):
    return store.create_vendor(body)


@router.patch("/vendors/{vendor_id}", response_model=models.Vendor)
def update_vendor(vendor_id: str, body: models.VendorUpdate, store: Storage = Depends(get_store)):
    v = store.update_vendor(vendor_id, body)
    if not v:
        raise NotFoundError("Vendor", vendor_id)
    return v


@router.delete("/vendors/{vendor_id}", status_code=204)
def delete_vendor(vendor_id: str, store: Storage = Depends(get_store)):
    if not store.delete_vendor(vendor_id):
        raise NotFoundError("Vendor", vendor_id)
    return Response(status_code=204)


# --- Inbound webhook (vendor replies) ---

@router.post("/email/webhook", response_model=models.IngestResult)
def email_webhook(payload: models.EmailWebhookPayload, response: Response,
                  store: Storage = Depends(get_store), client=Depends(get_ai_client)):
    result = services.ingest_vendor_reply(store, payload, client=client)
    response.status_code = 201 if result.proposal_id else 200
    return result


# --- Proposals ---

@router.get("/proposals", response_model=List[models.Proposal])
def list_proposals(store: Storage = Depends(get_store)):
    return store.list_proposals()


@router.get("/proposals/{proposal_id}", response_model=models.Proposal)
def get_proposal(proposal_id: str, store: Storage = Depends(get_store)):
    p = store.get_proposal(proposal_id)
    if not p:
        raise NotFoundError("Proposal", proposal_id)
    return p


@router.get("/outbox", response_model=List[models.OutboxMessage])
def list_outbox(store: Storage = Depends(get_store)):
    return store.list_outbox()


async def handle_rfpflow_error(request: Request, exc: RfpFlowError) -> JSONResponse:
    status = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 500)
    if status >= 500:
        log.error("request_error", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=status, content={"message": str(exc)})


def create_app(
    cfg: Settings = settings,
    store: Optional[Storage] = None,
    advisor: Optional[NarrativeAdvisor] = None,
    sender: Optional[EmailSender] = None,
    ai_client: Optional[ai_helpers.OpenAIJsonClient] = None,
) -> FastAPI:
    """Wire the app. Anything not passed in is built from settings."""
    if store is None:
        store = Storage(cfg.data_dir)
        if cfg.seed_demo_data:
            seed_demo_data(store)
    if ai_client is None:
        ai_client = ai_helpers.default_client(cfg)
    if advisor is None:
        narrative_client = ai_helpers.default_client(cfg, timeout=cfg.narrative_timeout_seconds)
        generator = OpenAINarrativeGenerator(narrative_client) if narrative_client else None
        advisor = NarrativeAdvisor(generator, timeout=cfg.narrative_timeout_seconds)

    app = FastAPI(title="RFP Flow API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins_list,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    app.state.store = store
    app.state.ai_client = ai_client
    app.state.sender = sender or default_sender(cfg, store)
    app.state.comparison = ComparisonService(store, advisor)

    app.add_exception_handler(RfpFlowError, handle_rfpflow_error)
    app.include_router(router)

    @app.get("/health")
    def health():
        return {"status": "ok", "ai_enabled": app.state.ai_client is not None}

    log.info("app_created", ai_enabled=ai_client is not None, persistent=cfg.data_dir is not None)
    return app


app = create_app()


def run() -> None:
    import uvicorn

    configure_logging()
    uvicorn.run("rfpflow.main:app", host=settings.api_host, port=settings.api_port)
