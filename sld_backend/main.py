"""
SLD Tool Backend - FastAPI Application

This is the main entry point for the SLD tool backend.
It provides:
- REST API for topology processing (validation, evaluation)
- Layout computation with optional saved-coordinate overrides
- Connectivity queries (tracing, connection candidates, summaries)
- CORS configuration for local frontend development

The API is stateless: every request carries the complete network.
"""
import logging
import os
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from sldcore import (
    BranchCategory,
    BusCategory,
    ConnectivityAnalyzer,
    ElementKind,
    Network,
    PassiveCategory,
    SavedCoordinate,
    SpacingConfig,
    evaluate_connections,
    layout_network,
    process_connections,
    saved_coordinates_from_layout,
    summarize_network,
    validate_network,
    validation_summary,
)

logger = logging.getLogger(__name__)

HOST = os.environ.get("SLD_TOOL_HOST", "127.0.0.1")
PORT = int(os.environ.get("SLD_TOOL_PORT", "8765"))


# --- FastAPI App ---

app = FastAPI(
    title="SLD Tool API",
    description="Topology resolution and layout for single-line diagrams",
    version="1.0.0",
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Health Check ---

@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "version": app.version}


# --- Topology ---

@app.post("/api/validate")
async def validate(network: Network):
    """
    Check bidirectional consistency of all connections.

    Returns errors (blocking), warnings, load results and a summary.
    """
    result = validate_network(network)
    return {
        "success": result.ok,
        "summary": validation_summary(result),
        **result.to_dict(),
    }


@app.post("/api/evaluate")
async def evaluate(network: Network):
    """Resolve FromBus/ToBus on every branch without validating first."""
    result = evaluate_connections(network.buses, network.branches(), network.passive_elements())
    return {"success": not result.has_errors, **result.to_dict()}


@app.post("/api/process")
async def process(network: Network):
    """Validate, then evaluate. Evaluation is skipped if validation fails."""
    result = process_connections(network)
    return result.to_dict()


# --- Layout ---

class LayoutRequest(BaseModel):
    network: Network
    spacing: Optional[SpacingConfig] = None
    saved_coordinates: list[SavedCoordinate] = Field(default_factory=list)
    emit_saved: bool = False  # include records in the persisted format


@app.post("/api/layout")
async def layout(request: LayoutRequest):
    """Process the network and compute pixel coordinates."""
    processed = process_connections(request.network)
    if not processed.success:
        raise HTTPException(status_code=400, detail={
            "message": processed.message,
            "processing": processed.to_dict(),
        })

    result = layout_network(
        processed.network,
        spacing=request.spacing or SpacingConfig.from_env(),
        saved_coordinates=request.saved_coordinates,
    )
    response = result.to_dict()
    if request.emit_saved:
        records = saved_coordinates_from_layout(result, sld=processed.network.name)
        response["saved_coordinates"] = [r.model_dump() for r in records]
    return response


# --- Analysis ---

class TraceRequest(BaseModel):
    network: Network
    tag: str
    direction: str = "from"  # from, to
    to_source: bool = False


@app.post("/api/trace")
async def trace(request: TraceRequest):
    """Trace an element's side to its terminating bus, or upstream to the source."""
    analyzer = ConnectivityAnalyzer.from_network(request.network)
    if request.tag not in analyzer.element_map:
        raise HTTPException(status_code=404, detail=f"Element '{request.tag}' not found")

    if request.to_source:
        traces = analyzer.trace_to_source(request.tag)
        return {"success": True, "traces": [t.to_dict() for t in traces]}

    try:
        result = analyzer.trace_chain(request.tag, request.direction)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return result.to_dict()


class CandidatesRequest(BaseModel):
    network: Network
    tag: str
    side: str = "from"  # from, to


@app.post("/api/candidates")
async def candidates(request: CandidatesRequest):
    """List the elements that can legally be connected to a side of an element."""
    analyzer = ConnectivityAnalyzer.from_network(request.network)
    if request.tag not in analyzer.element_map:
        raise HTTPException(status_code=404, detail=f"Element '{request.tag}' not found")

    try:
        found = analyzer.valid_candidates(request.tag, request.side)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "success": True,
        "element": request.tag,
        "side": request.side.lower(),
        "candidates": [c.to_dict() for c in found],
    }


class SummaryRequest(BaseModel):
    network: Network
    top_n: int = Field(default=5, ge=1)


@app.post("/api/summary")
async def summary(request: SummaryRequest):
    """
    Get a structural summary of a network.

    The network is processed first so that bus adjacency (and therefore the
    independent network count) is available; if processing fails the raw
    records are summarized.
    """
    processed = process_connections(request.network)
    target = processed.network if processed.success else request.network
    return {
        "success": True,
        "processed": processed.success,
        "summary": summarize_network(target, top_n=request.top_n).to_dict(),
    }


# --- Enums for Frontend ---

@app.get("/api/enums/categories")
async def get_categories():
    """Get element kinds and categories."""
    return {
        "kinds": [k.value for k in ElementKind],
        "bus": [c.value for c in BusCategory if c.value],
        "branch": [c.value for c in BranchCategory],
        "passive": [c.value for c in PassiveCategory],
    }


# --- Run with uvicorn ---

if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host=HOST, port=PORT)
