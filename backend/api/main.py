# -*- coding: utf-8 -*-
"""
FastAPI Backend for WordFlow

Glossary management API
Supports term CRUD, categories, status counts, bulk import with
duplicate resolution, and export
"""
import sys
from pathlib import Path
from typing import Optional, List, Dict, Any
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, UploadFile, File, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel, Field
from loguru import logger
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

sys.path.insert(0, str(Path(__file__).parent.parent))

from config import settings
from database import init_db, close_db
from glossary import (
    CandidateTerm,
    ErrorKind,
    GlossaryError,
    ImportSessionManager,
    ResolutionAction,
    ResolutionRequest,
    SqlTermStore,
    TermStatus,
    detect_duplicates,
)
from glossary import importer


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - handle startup and shutdown"""
    logger.info("Starting WordFlow API...")

    await init_db()
    app.state.store = SqlTermStore()
    app.state.imports = ImportSessionManager()
    logger.info("Glossary store ready")

    yield

    logger.info("Shutting down WordFlow API...")
    app.state.imports.clear()
    await close_db()
    logger.info("Shutdown complete")


# Initialize rate limiter
limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)

# Initialize FastAPI app with lifespan
app = FastAPI(
    title="WordFlow API",
    description="Translation glossary management",
    version="1.0.0",
    lifespan=lifespan
)

# Attach rate limiter to app
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS for frontend - configured via CORS_ORIGINS env var
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)

ERROR_STATUS_CODES = {
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.STORE_UNAVAILABLE: 503,
}


@app.exception_handler(GlossaryError)
async def glossary_error_handler(request: Request, exc: GlossaryError):
    """Map glossary errors to HTTP status codes"""
    status_code = ERROR_STATUS_CODES.get(exc.kind, 500)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": exc.message or str(exc), "kind": exc.kind.value},
    )


def get_store(request: Request) -> SqlTermStore:
    return request.app.state.store


def get_imports(request: Request) -> ImportSessionManager:
    return request.app.state.imports


# === Request / Response Models ===

class TermCreateRequest(BaseModel):
    """Request to add a glossary term"""
    source: str = Field(..., min_length=1)
    target_a: str = ""
    target_b: str = ""
    category: str = ""
    status: TermStatus = TermStatus.DRAFT
    remark: str = ""


class TermUpdateRequest(BaseModel):
    """Partial update of a glossary term; omitted fields are unchanged"""
    source: Optional[str] = None
    target_a: Optional[str] = None
    target_b: Optional[str] = None
    category: Optional[str] = None
    status: Optional[TermStatus] = None
    remark: Optional[str] = None


class TermResponse(BaseModel):
    """Response for a glossary term"""
    id: str
    source: str
    target_a: str
    target_b: str
    category: str
    status: str
    remark: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class TermListResponse(BaseModel):
    """Response for glossary list"""
    entries: List[TermResponse]
    total: int
    categories: List[str]


class DuplicateCheckRequest(BaseModel):
    """Single term to check against the glossary before adding it"""
    source: str = ""
    target_a: str = ""
    target_b: str = ""


class DuplicateCheckResponse(BaseModel):
    duplicate: bool
    matched_field: Optional[str] = None
    existing: Optional[TermResponse] = None


class BulkDeleteRequest(BaseModel):
    ids: List[str]


class CategoryRequest(BaseModel):
    name: str


class ImportRequest(BaseModel):
    """Request to import glossary entries"""
    format: str = "json"  # json or csv
    data: str  # JSON string or CSV content


class ResolveRequest(BaseModel):
    """User decision for the duplicates of an import"""
    action: ResolutionAction
    selected_existing_ids: List[str] = []


class ImportSessionResponse(BaseModel):
    """State of an import: pending duplicates or the applied result"""
    session_id: str
    state: str
    duplicates: List[Dict[str, Any]]
    unique_count: int
    invalid_count: int
    result: Optional[Dict[str, Any]] = None


# === API Endpoints ===

@app.get("/")
async def root():
    """Health check"""
    return {
        "status": "ok",
        "app": settings.APP_NAME,
        "version": "1.0.0"
    }


@app.get("/api/glossary", response_model=TermListResponse)
async def list_terms(
    category: Optional[str] = None,
    status: Optional[TermStatus] = None,
    search: Optional[str] = None,
    store: SqlTermStore = Depends(get_store),
):
    """Get glossary terms"""
    terms = await store.list_terms(
        category=category,
        status=status.value if status else None,
        search=search,
    )
    categories = await store.list_categories()
    return TermListResponse(
        entries=[TermResponse(**t.to_dict()) for t in terms],
        total=len(terms),
        categories=categories,
    )


@app.get("/api/glossary/stats")
async def glossary_stats(store: SqlTermStore = Depends(get_store)):
    """Term counts per workflow status"""
    return await store.status_counts()


@app.post("/api/glossary/check-duplicate", response_model=DuplicateCheckResponse)
async def check_duplicate(
    request: DuplicateCheckRequest,
    store: SqlTermStore = Depends(get_store),
):
    """Check a single term against the glossary before adding it"""
    candidate = CandidateTerm(
        source=request.source,
        target_a=request.target_a,
        target_b=request.target_b,
    )
    detection = detect_duplicates([candidate], await store.list_terms())
    if detection.invalid:
        raise HTTPException(status_code=400, detail="Source text is required")
    if not detection.duplicates:
        return DuplicateCheckResponse(duplicate=False)

    match = detection.duplicates[0]
    return DuplicateCheckResponse(
        duplicate=True,
        matched_field=match.matched_field.value,
        existing=TermResponse(**match.existing.to_dict()),
    )


@app.get("/api/glossary/categories")
async def list_categories(store: SqlTermStore = Depends(get_store)):
    """Get glossary categories"""
    return {"categories": await store.list_categories()}


@app.post("/api/glossary/categories", status_code=201)
async def add_category(request: CategoryRequest, store: SqlTermStore = Depends(get_store)):
    """Add a glossary category"""
    name = await store.add_category(request.name)
    return {"success": True, "name": name}


@app.delete("/api/glossary/categories/{name}")
async def delete_category(name: str, store: SqlTermStore = Depends(get_store)):
    """Delete a glossary category; terms keep their category text"""
    if not await store.delete_category(name):
        raise HTTPException(status_code=404, detail="Category not found")
    return {"success": True, "message": f"Deleted category: {name}"}


@app.post("/api/glossary/bulk-delete")
async def bulk_delete(request: BulkDeleteRequest, store: SqlTermStore = Depends(get_store)):
    """Delete several glossary terms"""
    deleted = await store.delete_terms(request.ids)
    return {"success": True, "deleted": deleted}


@app.post("/api/glossary/import", response_model=ImportSessionResponse)
@limiter.limit(settings.IMPORT_RATE_LIMIT)
async def import_glossary(
    request: Request,
    import_request: ImportRequest,
    store: SqlTermStore = Depends(get_store),
    imports: ImportSessionManager = Depends(get_imports),
):
    """Import glossary entries from JSON or CSV text"""
    if import_request.format == "json":
        candidates = importer.parse_json(import_request.data)
    elif import_request.format == "csv":
        candidates = importer.parse_csv(import_request.data)
    else:
        raise HTTPException(status_code=400, detail=f"Unsupported format: {import_request.format}")

    if not candidates:
        raise HTTPException(status_code=400, detail="No valid terms found in import data")

    session = await imports.start(store, candidates)
    return ImportSessionResponse(**session.to_dict())


@app.post("/api/glossary/import/file", response_model=ImportSessionResponse)
@limiter.limit(settings.IMPORT_RATE_LIMIT)
async def import_glossary_file(
    request: Request,
    file: UploadFile = File(...),
    store: SqlTermStore = Depends(get_store),
    imports: ImportSessionManager = Depends(get_imports),
):
    """Import glossary entries from an uploaded xlsx, csv or json file"""
    content = await file.read()
    candidates = importer.parse_file(file.filename, content)
    if not candidates:
        raise HTTPException(status_code=400, detail="No valid terms found in file")

    session = await imports.start(store, candidates)
    return ImportSessionResponse(**session.to_dict())


@app.post("/api/glossary/import/{session_id}/resolve", response_model=ImportSessionResponse)
async def resolve_import(
    session_id: str,
    request: ResolveRequest,
    imports: ImportSessionManager = Depends(get_imports),
):
    """Apply override/ignore to the selected duplicates and insert the new terms"""
    session = await imports.resolve(
        session_id,
        ResolutionRequest(
            action=request.action,
            selected_existing_ids=set(request.selected_existing_ids),
        ),
    )
    return ImportSessionResponse(**session.to_dict())


@app.post("/api/glossary/import/{session_id}/cancel", response_model=ImportSessionResponse)
async def cancel_import(
    session_id: str,
    imports: ImportSessionManager = Depends(get_imports),
):
    """Abandon duplicate resolution: duplicates are dropped, new terms still inserted"""
    session = await imports.abandon(session_id)
    return ImportSessionResponse(**session.to_dict())


@app.get("/api/glossary/export")
async def export_glossary(format: str = "json", store: SqlTermStore = Depends(get_store)):
    """Export glossary as JSON, CSV or Excel"""
    terms = await store.list_terms()
    if format == "json":
        return importer.export_json(terms)
    elif format == "csv":
        return PlainTextResponse(
            content=importer.export_csv(terms),
            media_type="text/csv",
            headers={"Content-Disposition": "attachment; filename=glossary_export.csv"}
        )
    elif format == "xlsx":
        return Response(
            content=importer.export_xlsx(terms),
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers={"Content-Disposition": "attachment; filename=glossary_export.xlsx"}
        )
    else:
        raise HTTPException(status_code=400, detail=f"Unsupported format: {format}")


@app.post("/api/glossary", response_model=TermResponse, status_code=201)
async def create_term(request: TermCreateRequest, store: SqlTermStore = Depends(get_store)):
    """Add a glossary term"""
    term = await store.insert_term(CandidateTerm(
        source=request.source,
        target_a=request.target_a,
        target_b=request.target_b,
        category=request.category,
        status=request.status,
        remark=request.remark,
    ))
    return TermResponse(**term.to_dict())


@app.get("/api/glossary/{term_id}", response_model=TermResponse)
async def get_term(term_id: str, store: SqlTermStore = Depends(get_store)):
    """Get a single glossary term"""
    term = await store.get_term(term_id)
    if not term:
        raise HTTPException(status_code=404, detail="Glossary term not found")
    return TermResponse(**term.to_dict())


@app.put("/api/glossary/{term_id}", response_model=TermResponse)
async def update_term(
    term_id: str,
    request: TermUpdateRequest,
    store: SqlTermStore = Depends(get_store),
):
    """Update a glossary term"""
    if not await store.get_term(term_id):
        raise HTTPException(status_code=404, detail="Glossary term not found")

    fields = request.model_dump(exclude_unset=True, exclude_none=True)
    if "status" in fields:
        fields["status"] = fields["status"].value
    term = await store.update_term(term_id, fields)
    return TermResponse(**term.to_dict())


@app.delete("/api/glossary/{term_id}")
async def delete_term(term_id: str, store: SqlTermStore = Depends(get_store)):
    """Delete a glossary term"""
    if not await store.delete_term(term_id):
        raise HTTPException(status_code=404, detail="Glossary term not found")
    return {"success": True, "message": "Glossary term deleted successfully"}


# Run with: uvicorn api.main:app --reload
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
    )
