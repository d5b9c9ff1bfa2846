import logging
import os

import requests
from fastapi import FastAPI, UploadFile, File, Form, HTTPException, Depends
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app as make_prom_app
from starlette.exceptions import HTTPException as StarletteHTTPException
from dotenv import load_dotenv

from pipeline.io_types import CompositingError
from providers.bailian_api import BailianAPIError
from .config import settings
from .db import (
    init_db,
    check_connection,
    add_clothing,
    get_clothing,
    list_clothing,
    list_clothing_by_season,
    update_clothing,
    record_wear,
    delete_clothing,
)
from .logging_config import setup_logging
from .models import ApiResponse, ClothingOut, RecommendationOut, TryOnResponse
from .ratelimit import rate_limit
from .recommendations import Recommendation, RecommendationEngine, current_season
from .storage import Storage, StorageError
from .tryon_runner import run_tryon, render_local, poll_tryon, test_connection
from .validators import enforce_max_upload_size, parse_json_list

load_dotenv()

logger = logging.getLogger(__name__)

app = FastAPI(title="Wardrobe Try-On API", version="0.1.0")

origins = os.environ.get("ALLOWED_ORIGINS", "*")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.mount("/metrics", make_prom_app())


def _error(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status_code, headers=headers)


@app.exception_handler(StarletteHTTPException)
async def _http_error(_request, exc: StarletteHTTPException):
    return _error(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def _validation_error(_request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{field}: {first.get('msg', 'invalid request')}" if field else "Invalid request"
    return _error(422, message)


@app.exception_handler(CompositingError)
async def _compositing_error(_request, exc: CompositingError):
    return _error(400, str(exc))


@app.exception_handler(Exception)
async def _unhandled(_request, exc: Exception):
    logger.exception("unhandled error: %s", exc)
    return _error(500, "Internal server error")


@app.on_event("startup")
def _startup():
    setup_logging()
    Storage.ensure_dirs()
    init_db()


async def _read(upload: UploadFile | None) -> bytes | None:
    if upload is None:
        return None
    data = await upload.read()
    return data or None


def _clothing_out(row) -> ClothingOut:
    return ClothingOut(**row.to_dict())


def _recommendations_out(recs: list[Recommendation]) -> list[dict]:
    return [RecommendationOut(items=r.items, reason=r.reason, score=r.score).model_dump() for r in recs]


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "database": check_connection()}


@app.get("/api/config")
def get_config() -> ApiResponse:
    return ApiResponse(data=settings.public())


@app.get("/api/test-connection")
def api_test_connection() -> ApiResponse:
    res = test_connection()
    return ApiResponse(success=res["success"], message=res["message"])


# --- Try-on ---


@app.post("/api/tryon", response_model=TryOnResponse)
async def create_tryon(
    personImage: UploadFile = File(...),
    clothingImage: UploadFile | None = File(None),
    topClothingImage: UploadFile | None = File(None),
    bottomClothingImage: UploadFile | None = File(None),
    category: str | None = Form(None),
    mode: str = Form("separate"),
    _rl=Depends(rate_limit),
    _lim=Depends(enforce_max_upload_size),
):
    person = await _read(personImage)
    garment = await _read(clothingImage)
    top = await _read(topClothingImage)
    bottom = await _read(bottomClothingImage)
    if person is None:
        raise HTTPException(status_code=400, detail="Missing person image")
    if garment is None and not (mode == "separate" and (top or bottom)):
        raise HTTPException(status_code=400, detail="Missing clothing image")

    category = category or str(settings.get("tryon.default_category", "top"))
    try:
        outcome = await run_in_threadpool(run_tryon, person, garment, category, mode, top, bottom)
    except (BailianAPIError, StorageError, requests.RequestException) as e:
        logger.error("try-on failed: %s", e)
        return _error(502, str(e))

    result_url = outcome.result_url
    if outcome.result_path:
        result_url = f"/api/tryon/results/{os.path.basename(outcome.result_path)}"
    message = "Generated with the local compositor" if outcome.provider == "local" else None
    return TryOnResponse(
        success=True,
        status=outcome.status,
        provider=outcome.provider,
        task_id=outcome.task_id,
        result_url=result_url,
        fallback=outcome.fallback,
        message=message,
    )


@app.post("/api/tryon/local")
async def create_local_tryon(
    personImage: UploadFile = File(...),
    clothingImage: UploadFile = File(...),
    category: str | None = Form(None),
    _rl=Depends(rate_limit),
    _lim=Depends(enforce_max_upload_size),
):
    person = await _read(personImage)
    garment = await _read(clothingImage)
    if person is None or garment is None:
        raise HTTPException(status_code=400, detail="Missing person or clothing image")
    image = await run_in_threadpool(render_local, person, garment, category)
    return Response(content=image.encode("PNG"), media_type="image/png")


@app.get("/api/tryon/results/{name}")
def get_tryon_result(name: str):
    path = Storage.result_path(name)
    if path is None:
        raise HTTPException(status_code=404, detail="Result not found")
    return FileResponse(path, media_type="image/png")


@app.get("/api/tryon/{task_id}", response_model=TryOnResponse)
def get_tryon_status(task_id: str, _rl=Depends(rate_limit)):
    try:
        res = poll_tryon(task_id)
    except BailianAPIError as e:
        status = 404 if e.status_code == 404 else 502
        return _error(status, e.message)
    except requests.RequestException as e:
        logger.error("polling task failed: %s", e)
        return _error(502, "Try-on service unreachable")
    status = res["status"]
    return TryOnResponse(
        success=status != "failed",
        status=status,
        provider="bailian",
        task_id=task_id,
        result_url=res.get("result_url"),
        error=res.get("error"),
    )


# --- Clothing catalog ---


@app.get("/api/clothing")
def api_list_clothing() -> ApiResponse:
    return ApiResponse(data=[_clothing_out(r) for r in list_clothing()])


@app.post("/api/clothing", status_code=201)
async def api_add_clothing(
    name: str | None = Form(None),
    category: str | None = Form(None),
    color: str | None = Form(None),
    brand: str | None = Form(None),
    price: float | None = Form(None),
    seasons: str | None = Form(None),
    tags: str | None = Form(None),
    occasions: str | None = Form(None),
    favorite: bool = Form(False),
    image: UploadFile | None = File(None),
    _lim=Depends(enforce_max_upload_size),
) -> ApiResponse:
    if not name or not category or not color:
        raise HTTPException(status_code=400, detail="name, category and color are required")
    item_id = add_clothing(
        name=name,
        category=category,
        color=color,
        brand=brand,
        price=price,
        seasons=parse_json_list(seasons, "seasons"),
        tags=parse_json_list(tags, "tags"),
        occasions=parse_json_list(occasions, "occasions"),
        image_data=await _read(image),
        favorite=favorite,
    )
    return ApiResponse(data=_clothing_out(get_clothing(item_id)), message="Clothing added")


@app.get("/api/clothing/category/{category}")
def api_clothing_by_category(category: str) -> ApiResponse:
    return ApiResponse(data=[_clothing_out(r) for r in list_clothing(category=category)])


@app.get("/api/clothing/season/{season}")
def api_clothing_by_season(season: str) -> ApiResponse:
    return ApiResponse(data=[_clothing_out(r) for r in list_clothing_by_season(season)])


@app.get("/api/clothing/{item_id}")
def api_get_clothing(item_id: str) -> ApiResponse:
    row = get_clothing(item_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Clothing not found")
    return ApiResponse(data=_clothing_out(row))


@app.get("/api/clothing/{item_id}/image")
def api_get_clothing_image(item_id: str):
    row = get_clothing(item_id)
    if row is None or row.image_data is None:
        raise HTTPException(status_code=404, detail="Image not found")
    return Response(content=row.image_data, media_type="image/jpeg")


@app.put("/api/clothing/{item_id}")
async def api_update_clothing(
    item_id: str,
    name: str | None = Form(None),
    category: str | None = Form(None),
    color: str | None = Form(None),
    brand: str | None = Form(None),
    price: float | None = Form(None),
    seasons: str | None = Form(None),
    tags: str | None = Form(None),
    occasions: str | None = Form(None),
    favorite: bool | None = Form(None),
    image: UploadFile | None = File(None),
    _lim=Depends(enforce_max_upload_size),
) -> ApiResponse:
    ok = update_clothing(
        item_id,
        name=name,
        category=category,
        color=color,
        brand=brand,
        price=price,
        seasons=parse_json_list(seasons, "seasons"),
        tags=parse_json_list(tags, "tags"),
        occasions=parse_json_list(occasions, "occasions"),
        image_data=await _read(image),
        favorite=favorite,
    )
    if not ok:
        raise HTTPException(status_code=404, detail="Clothing not found")
    return ApiResponse(data=_clothing_out(get_clothing(item_id)), message="Clothing updated")


@app.post("/api/clothing/{item_id}/wear")
def api_record_wear(item_id: str) -> ApiResponse:
    count = record_wear(item_id)
    if count is None:
        raise HTTPException(status_code=404, detail="Clothing not found")
    return ApiResponse(data={"wear_count": count})


@app.delete("/api/clothing/{item_id}")
def api_delete_clothing(item_id: str) -> ApiResponse:
    if not delete_clothing(item_id):
        raise HTTPException(status_code=404, detail="Clothing not found")
    return ApiResponse(message="Clothing deleted")


# --- Recommendations ---


def _catalog() -> list[ClothingOut]:
    return [_clothing_out(r) for r in list_clothing()]


@app.get("/api/recommendations/season")
def api_recommend_season(season: str | None = None) -> ApiResponse:
    season = season or current_season()
    return ApiResponse(data=_recommendations_out(RecommendationEngine().by_season(_catalog(), season)))


@app.get("/api/recommendations/outfit/{item_id}")
def api_recommend_outfit(item_id: str) -> ApiResponse:
    row = get_clothing(item_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Clothing not found")
    recs = RecommendationEngine().outfit(_clothing_out(row), _catalog())
    return ApiResponse(data=_recommendations_out(recs))


@app.get("/api/recommendations/occasion/{occasion}")
def api_recommend_occasion(occasion: str) -> ApiResponse:
    try:
        recs = RecommendationEngine().by_occasion(_catalog(), occasion)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ApiResponse(data=_recommendations_out(recs))


@app.get("/api/recommendations/underutilized")
def api_recommend_underutilized() -> ApiResponse:
    rec = RecommendationEngine().underutilized(_catalog())
    return ApiResponse(data=_recommendations_out([rec]))
