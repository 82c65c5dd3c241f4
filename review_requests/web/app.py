"""
FastAPI Web Application - Review Request API
=============================================

JSON endpoints for the dashboard plus the two tracking endpoints hit by
email clients (open pixel, click redirect). Route handlers only translate
HTTP to service calls; all behavior lives in the application layer.
"""

import base64
import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.responses import JSONResponse, RedirectResponse, Response
from pydantic import BaseModel, ConfigDict, Field

from ..application import ReviewRequestService
from ..domain.errors import InputError, PersistenceError, ReviewRequestError
from ..domain.models import BatchMetadata
from ..infrastructure.config import Settings, get_settings
from ..infrastructure.mailer import SmtpMailTransport
from ..infrastructure.persistence import init_database

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Transparent 1x1 GIF
TRACKING_PIXEL = base64.b64decode("R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7")

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


# ── Request bodies ─────────────────────────────────────────────────

class SendRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    location_id: str = Field(alias="locationId")
    customer_ids: Optional[List[str]] = Field(default=None, alias="customerIds")
    business_name: Optional[str] = Field(default=None, alias="businessName")
    review_link: Optional[str] = Field(default=None, alias="reviewLink")
    custom_sender_name: Optional[str] = Field(default=None, alias="customSenderName")


class SyncReviewsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    location_id: str = Field(alias="locationId")
    reviews: List[Dict[str, Any]] = Field(default_factory=list)


# ── Service wiring ─────────────────────────────────────────────────

def build_service(settings: Settings) -> ReviewRequestService:
    """Default production wiring: SQLite file + SMTP transport."""
    for issue in settings.validate():
        logger.warning(issue)

    db = init_database(settings.database_file)
    transport = SmtpMailTransport.from_settings(settings.mail)
    return ReviewRequestService(db, transport, settings)


def get_service(request: Request) -> ReviewRequestService:
    return request.app.state.service


router = APIRouter(prefix="/api/review-requests")


# ── Upload ─────────────────────────────────────────────────────────

@router.post("/upload")
async def upload_customers(
    file: UploadFile = File(...),
    user_id: str = Form(..., alias="userId"),
    location_id: str = Form(..., alias="locationId"),
    business_name: str = Form(..., alias="businessName"),
    location_name: str = Form("", alias="locationName"),
    review_link: str = Form("", alias="reviewLink"),
    service: ReviewRequestService = Depends(get_service),
):
    """Import customers from a CSV/Excel upload."""
    upload_settings = service.settings.upload

    if not file.filename:
        return JSONResponse({"error": "No file uploaded"}, status_code=400)

    ext = Path(file.filename).suffix.lower()
    if ext not in upload_settings.allowed_extensions:
        return JSONResponse(
            {"error": f"Invalid file type: {ext or 'unknown'}. Allowed types: CSV, TSV, XLS, XLSX"},
            status_code=400,
        )

    content = await file.read()
    if len(content) > upload_settings.max_file_bytes:
        return JSONResponse({"error": "File too large (max 10MB)"}, status_code=413)

    meta = BatchMetadata(
        user_id=user_id,
        location_id=location_id,
        business_name=business_name,
        location_name=location_name,
        review_link=review_link,
        file_name=file.filename,
        file_size=len(content),
    )
    result = service.upload(meta, content, file.content_type)

    return {
        "success": True,
        "message": f"Successfully imported {result.new_customers} customers",
        **result.to_dict(),
    }


# ── Customers & batches ────────────────────────────────────────────

@router.get("/customers")
async def list_customers(
    user_id: str = Query(..., alias="userId"),
    location_id: str = Query(..., alias="locationId"),
    status: Optional[str] = None,
    batch_id: Optional[str] = Query(None, alias="batchId"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    service: ReviewRequestService = Depends(get_service),
):
    customers = service.get_customers(user_id, location_id, status, batch_id, limit, offset)
    return {"success": True, "customers": [asdict(c) for c in customers], "count": len(customers)}


@router.delete("/customer/{customer_id}")
async def delete_customer(
    customer_id: str,
    user_id: str = Query(..., alias="userId"),
    service: ReviewRequestService = Depends(get_service),
):
    service.delete_customer(user_id, customer_id)
    return {"success": True, "message": "Customer deleted"}


@router.get("/batches")
async def list_batches(
    user_id: str = Query(..., alias="userId"),
    location_id: str = Query(..., alias="locationId"),
    service: ReviewRequestService = Depends(get_service),
):
    batches = service.get_batches(user_id, location_id)
    return {"success": True, "batches": [asdict(b) for b in batches]}


@router.delete("/batch/{batch_id}")
async def delete_batch(
    batch_id: str,
    user_id: str = Query(..., alias="userId"),
    service: ReviewRequestService = Depends(get_service),
):
    service.delete_batch(user_id, batch_id)
    return {"success": True, "message": "Batch deleted"}


@router.delete("/all")
async def delete_all(
    user_id: str = Query(..., alias="userId"),
    location_id: str = Query(..., alias="locationId"),
    service: ReviewRequestService = Depends(get_service),
):
    service.delete_all_for_location(user_id, location_id)
    return {"success": True, "message": "All customers deleted"}


# ── Stats ──────────────────────────────────────────────────────────

@router.get("/stats")
async def location_stats(
    user_id: str = Query(..., alias="userId"),
    location_id: str = Query(..., alias="locationId"),
    service: ReviewRequestService = Depends(get_service),
):
    return {"success": True, "stats": service.get_stats(user_id, location_id)}


@router.get("/tracking-stats")
async def tracking_stats(
    user_id: str = Query(..., alias="userId"),
    location_id: str = Query(..., alias="locationId"),
    service: ReviewRequestService = Depends(get_service),
):
    return {"success": True, "stats": service.get_tracking_stats(user_id, location_id)}


# ── Sending ────────────────────────────────────────────────────────

@router.post("/send")
def send_review_requests(body: SendRequest, service: ReviewRequestService = Depends(get_service)):
    """Blocking send loop; FastAPI runs sync handlers in its threadpool."""
    summary = service.send_review_requests(
        body.user_id,
        body.location_id,
        customer_ids=body.customer_ids,
        business_name=body.business_name,
        review_link=body.review_link,
        sender_name=body.custom_sender_name,
    )
    return {
        "success": True,
        "message": f"Sent {summary.sent} emails ({summary.failed} failed)",
        **summary.to_dict(),
    }


@router.get("/email-pool-status")
async def email_pool_status(service: ReviewRequestService = Depends(get_service)):
    return {"success": True, **service.get_transport_status()}


# ── Review sync ────────────────────────────────────────────────────

@router.post("/sync-reviews")
async def sync_reviews(body: SyncReviewsRequest, service: ReviewRequestService = Depends(get_service)):
    result = service.match_reviews(body.user_id, body.location_id, body.reviews)
    return {
        "success": True,
        "message": f"Matched {result.matched} of {result.total} reviews",
        **result.to_dict(),
    }


# ── Tracking (called by email clients) ─────────────────────────────

@router.get("/track/open/{customer_id}")
async def track_open(customer_id: str, service: ReviewRequestService = Depends(get_service)):
    """Always answers with the pixel, whatever happens to the bookkeeping."""
    try:
        service.track_open(customer_id)
    except Exception as e:
        logger.exception(f"Track open error for {customer_id}: {e}")

    return Response(content=TRACKING_PIXEL, media_type="image/gif", headers=NO_CACHE_HEADERS)


@router.get("/track/click/{customer_id}")
async def track_click(customer_id: str, service: ReviewRequestService = Depends(get_service)):
    """Redirect to the customer's review page (or the fallback URL)."""
    review_link = None
    try:
        review_link = service.track_click(customer_id)
    except Exception as e:
        logger.exception(f"Track click error for {customer_id}: {e}")

    target = review_link or service.settings.tracking.fallback_redirect_url
    return RedirectResponse(url=target, status_code=302)


# ── App factory ────────────────────────────────────────────────────

def create_app(service: Optional[ReviewRequestService] = None) -> FastAPI:
    """Build the app; tests inject a ready service, production builds one at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "service", None) is None:
            app.state.service = build_service(get_settings())
        logger.info("Review request service ready")
        yield

    app = FastAPI(title="Review Requests", description="Review request & attribution pipeline", lifespan=lifespan)
    app.state.service = service

    @app.exception_handler(InputError)
    async def input_error_handler(request: Request, exc: InputError):
        return JSONResponse({"error": str(exc)}, status_code=400)

    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(request: Request, exc: PersistenceError):
        logger.error(f"Persistence error on {request.url.path}: {exc}")
        return JSONResponse({"error": str(exc)}, status_code=500)

    @app.exception_handler(ReviewRequestError)
    async def pipeline_error_handler(request: Request, exc: ReviewRequestError):
        return JSONResponse({"error": str(exc)}, status_code=500)

    app.include_router(router)
    return app


app = create_app()
