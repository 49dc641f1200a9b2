"""
FastAPI Backend -- Nairobi Property Intel
=========================================
Market-intelligence API for Nairobi property listings:
- Price estimates from the log-linear model artifact (``model.json``)
- Location statistics baked into the artifact
- Live summaries, deals and listings from the hosted listing store
- Affordability and buy-to-let calculators
- Prediction monitoring

The model is loaded once in the lifespan; a missing or invalid
artifact aborts startup.  Shared objects live on ``app.state`` and
reach handlers through dependencies, so tests can build an app
around a synthetic model and a fake store.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app import affordability
from app.data import ListingStore, StoreError
from app.format import price_tier, to_slug
from app.model import estimate, location_detail, location_index
from app.preprocessing import preprocess_input
from app.records import HeroStats, Listing, LocationSummary, LocationWithGeo
from app.schemas import (
    AffordabilityResponse,
    HealthResponse,
    InvestmentResponse,
    LocationIndexItem,
    MonitoringMetricsResponse,
    NeighborhoodRow,
    PredictionRequest,
    PredictionResponse,
    SummaryRow,
)
from app.settings import Settings, get_settings
from ml.config import (
    BOTH,
    DEFAULT_PAGE_SIZE,
    DEFAULT_TREND_DAYS,
    LOG_DIR,
    MAX_BEDROOMS,
    MONITOR_MAX_HISTORY,
    RENT,
    SALE,
    SUMMARY_LISTING_TYPES,
)
from ml.monitoring import PredictionMonitor
from ml.price_model import ModelLoadError, ModelMeta, PriceModel, load_price_model

# -- Logging ---------------------------------------------------------------
LOG_DIR.mkdir(parents=True, exist_ok=True)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    handlers=[
        logging.FileHandler(LOG_DIR / "api.log"),
        logging.StreamHandler(),
    ],
)
logger = logging.getLogger("api")

SUMMARY_CACHE_HEADERS = {
    "Cache-Control": "public, s-maxage=3600, stale-while-revalidate=7200",
    "X-Content-Type-Options": "nosniff",
}


# -- Dependencies ------------------------------------------------------------
def get_price_model(request: Request) -> PriceModel:
    return request.app.state.price_model


def get_monitor(request: Request) -> PredictionMonitor:
    return request.app.state.monitor


def get_store(request: Request) -> ListingStore:
    store = request.app.state.store
    if store is None:
        raise HTTPException(503, "Listing store not configured")
    return store


def build_store(settings: Settings) -> Optional[ListingStore]:
    if not settings.store_url or not settings.store_key:
        logger.warning("NPI_STORE_URL / NPI_STORE_KEY unset; live-data routes disabled")
        return None
    return ListingStore(
        settings.store_url,
        settings.store_key,
        timeout=settings.store_timeout,
        max_retries=settings.store_max_retries,
    )


def _normalize_listing_type(raw: Optional[str]) -> str:
    return raw if raw in SUMMARY_LISTING_TYPES else BOTH


# ===========================================================================
#  Core Routes
# ===========================================================================

router = APIRouter()


@router.get("/health", response_model=HealthResponse, tags=["system"])
async def health(request: Request, model: PriceModel = Depends(get_price_model)):
    """Check API and model health."""
    return HealthResponse(
        status="healthy",
        model_loaded=True,
        model_version=model.version,
        store_configured=request.app.state.store is not None,
    )


@router.get("/model", response_model=ModelMeta, tags=["prediction"])
async def model_meta(model: PriceModel = Depends(get_price_model)):
    """Training provenance of the loaded artifact."""
    return model.meta


@router.post("/predict", response_model=PredictionResponse, tags=["prediction"])
async def predict_price(
    body: PredictionRequest,
    model: PriceModel = Depends(get_price_model),
    monitor: PredictionMonitor = Depends(get_monitor),
):
    """
    Estimate the price of a listing.

    Unknown locations are answered from the citywide baseline with
    ``low`` confidence rather than rejected.
    """
    start = time.perf_counter()
    try:
        query = preprocess_input(body.model_dump())
        result, payload = estimate(model, query)
    except ValueError as e:
        monitor.record_error()
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        monitor.record_error()
        logger.exception("Prediction failed")
        raise HTTPException(status_code=500, detail=f"Prediction error: {e}")

    monitor.record_prediction(result, (time.perf_counter() - start) * 1000)
    return PredictionResponse(**payload)


@router.get("/locations", response_model=list[LocationIndexItem], tags=["locations"])
async def locations(model: PriceModel = Depends(get_price_model)):
    """All locations in the artifact, alphabetical."""
    return location_index(model)


@router.get("/locations/{slug}", tags=["locations"])
async def location(slug: str, model: PriceModel = Depends(get_price_model)):
    detail = location_detail(model, to_slug(slug))
    if detail is None:
        raise HTTPException(404, f"Unknown location: {slug}")
    return detail


# ===========================================================================
#  Live Data Routes
# ===========================================================================

@router.get("/api/summaries", response_model=list[SummaryRow], tags=["market"])
def summaries(
    type: Optional[str] = Query(None, description="Sale, Rent or Both"),
    store: ListingStore = Depends(get_store),
):
    """Latest per-location summaries.  Unknown types fall back to Both."""
    listing_type = _normalize_listing_type(type)
    try:
        rows = store.latest_summaries(listing_type)
    except StoreError:
        logger.exception("[/api/summaries] Error fetching summaries")
        return JSONResponse({"error": "Failed to fetch summaries"}, status_code=500)

    payload = [SummaryRow(**r.model_dump()).model_dump() for r in rows]
    return JSONResponse(payload, headers=SUMMARY_CACHE_HEADERS)


@router.get("/neighborhoods", response_model=list[NeighborhoodRow], tags=["market"])
def neighborhoods(
    type: Optional[str] = Query(None, description="Sale, Rent or Both"),
    store: ListingStore = Depends(get_store),
):
    """Latest summaries with slug and affordability tier."""
    rows = store.latest_summaries(_normalize_listing_type(type))
    total = len(rows)
    return [
        NeighborhoodRow(
            **r.model_dump(),
            slug=to_slug(r.location),
            tier=price_tier(r.affordability_rank or total, total),
        )
        for r in rows
    ]


@router.get("/neighborhoods/{location}/trend", response_model=list[LocationSummary], tags=["market"])
def neighborhood_trend(
    location: str,
    type: Optional[str] = Query(None),
    days: int = Query(DEFAULT_TREND_DAYS, ge=1, le=365),
    store: ListingStore = Depends(get_store),
):
    return store.location_trend(location, _normalize_listing_type(type), days)


@router.get("/map", response_model=list[LocationWithGeo], tags=["market"])
def map_points(
    type: Optional[str] = Query(None),
    store: ListingStore = Depends(get_store),
):
    """Latest summaries with cached coordinates."""
    return store.summaries_with_geo(_normalize_listing_type(type))


@router.get("/deals", response_model=list[Listing], tags=["market"])
def deals(
    page: int = Query(0, ge=0),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    store: ListingStore = Depends(get_store),
):
    return store.deals(page, page_size)


@router.get("/listings", tags=["market"])
def listings(
    location: Optional[str] = None,
    listing_type: Optional[str] = Query(None, pattern="^(Sale|Rent)$"),
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    bedrooms: Optional[int] = Query(None, ge=0),
    page: int = Query(0, ge=0),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    store: ListingStore = Depends(get_store),
):
    rows, count = store.listings(
        location=location,
        listing_type=listing_type,
        min_price=min_price,
        max_price=max_price,
        bedrooms=bedrooms,
        page=page,
        page_size=page_size,
    )
    return {"listings": [r.model_dump() for r in rows], "count": count}


@router.get("/hero", response_model=HeroStats, tags=["market"])
def hero(store: ListingStore = Depends(get_store)):
    return store.hero_stats()


# ===========================================================================
#  Calculator Routes
# ===========================================================================

def _summary_rows(rows: list[LocationSummary]) -> list[SummaryRow]:
    return [SummaryRow(**r.model_dump()) for r in rows]


@router.get("/affordability", response_model=AffordabilityResponse, tags=["calculator"])
def affordability_check(
    income: float = Query(..., gt=0, description="Gross monthly income (KES)"),
    mode: str = Query(affordability.BUY, pattern="^(buy|rent)$"),
    down_payment: float = Query(20.0, ge=0, lt=100, description="Deposit, percent"),
    tenure: int = Query(20, ge=1, le=40, description="Mortgage tenure, years"),
    bedrooms: int = Query(2, ge=0, le=MAX_BEDROOMS),
    store: ListingStore = Depends(get_store),
):
    """
    Locations within a household budget.

    Rent budgets use 30% of income; purchase budgets are the mortgage
    that 30% of income services, plus the deposit.
    """
    payment = affordability.max_rent(income)
    if mode == affordability.RENT:
        budget = payment
    else:
        budget = affordability.max_purchase(income, down_payment, tenure)

    rows = store.latest_summaries(RENT if mode == affordability.RENT else SALE)
    fits, stretch = affordability.classify_summaries(rows, mode, budget, bedrooms)
    return AffordabilityResponse(
        mode=mode,
        monthly_income=income,
        budget=budget,
        monthly_payment=payment,
        bedrooms=bedrooms,
        affordable=_summary_rows(fits),
        stretch=_summary_rows(stretch),
        budget_ratio=affordability.budget_ratio(len(fits), len(rows)),
        total=len(rows),
    )


@router.get("/investment", response_model=InvestmentResponse, tags=["calculator"])
def investment(
    purchase_price: float = Query(..., gt=0),
    monthly_rent: float = Query(..., gt=0),
    vacancy_rate: float = Query(5.0, ge=0, le=100),
    operating_expenses: float = Query(15.0, ge=0, le=100),
):
    """Gross yield, NOI and cap rate of a buy-to-let."""
    metrics = affordability.investment_metrics(
        purchase_price, monthly_rent, vacancy_rate, operating_expenses
    )
    return InvestmentResponse(
        purchase_price=purchase_price, monthly_rent=monthly_rent, **metrics.to_dict()
    )


# ===========================================================================
#  Monitoring Routes
# ===========================================================================

@router.get(
    "/monitoring/metrics",
    response_model=MonitoringMetricsResponse,
    tags=["monitoring"],
)
async def monitoring_metrics(monitor: PredictionMonitor = Depends(get_monitor)):
    """Latency percentiles, confidence mix, error rate and uptime."""
    return MonitoringMetricsResponse(**monitor.get_metrics())


# ===========================================================================
#  Application
# ===========================================================================

def create_app(
    settings: Optional[Settings] = None,
    model: Optional[PriceModel] = None,
    store: Optional[ListingStore] = None,
) -> FastAPI:
    """
    Build the API.  ``model`` and ``store`` override what would
    otherwise be loaded from ``settings`` at startup.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Loading price model...")
        try:
            app.state.price_model = (
                model if model is not None else load_price_model(settings.model_path)
            )
        except ModelLoadError as e:
            logger.error(str(e))
            raise
        logger.info("Price model %s ready -- server ready", app.state.price_model.version)

        app.state.store = store if store is not None else build_store(settings)
        app.state.monitor = PredictionMonitor(max_history=MONITOR_MAX_HISTORY, log_dir=LOG_DIR)

        yield
        app.state.monitor.flush_to_log()
        logger.info("Shutting down")

    app = FastAPI(
        title=settings.app_name,
        description=(
            "Price estimates, neighbourhood statistics and live listing "
            "data for the Nairobi property market."
        ),
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_request(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s -> %d (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response

    @app.exception_handler(StoreError)
    async def store_error(request: Request, exc: StoreError):
        logger.error("Listing store error on %s: %s", request.url.path, exc)
        return JSONResponse({"detail": "Listing store unavailable"}, status_code=502)

    app.include_router(router)
    return app


app = create_app()
