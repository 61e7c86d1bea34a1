import os
import traceback
from dotenv import load_dotenv
import logging
from typing import Optional
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app import services
from app.schema import ClassifierStatus, RefreshResponse, VisibilityResponse
from db.display_store import DisplayStore

from contextlib import asynccontextmanager


logger = logging.getLogger(__name__)

load_dotenv()

# Read environment mode (defaults to prod for safety)
ENV = os.getenv("ENV", "prod").lower()
logger.info(f"Running in {ENV} mode")

# Process-wide classifier, set by the lifespan handler.
CLASSIFIER = None


def get_display_store() -> DisplayStore:
    return DisplayStore()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Loads the category model once at startup. A model that fails to load does
    not stop the app: predictions answer with the sentinel category instead.
    """
    global CLASSIFIER
    CLASSIFIER = services.load_classifier(services.get_model_url(), os.getenv("CATEGORY_CONFIG"))
    yield
    logger.info("Releasing the category classifier...")
    CLASSIFIER = None


app = FastAPI(
    title="Transaction Category API",
    description="Predicts spending categories from transaction descriptions",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost",
        "http://localhost:8501",  # Streamlit interface
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


"""
Routes
"""
@app.get("/", response_model=ClassifierStatus)
async def root():
    return CLASSIFIER.describe()


@app.post("/predict")
async def predict(text: str, k: Optional[int] = Query(default=None, ge=1)):
    """
    Ranked categories for a transaction description.
    The controller only delegates to services.py.
    """
    try:
        results = services.predict_category(text=text, k=k, classifier=CLASSIFIER)
        return JSONResponse(content=results)
    except Exception as e:
        logger.error(f"Error while predicting: {str(e)}")
        logger.error(traceback.format_exc())
        raise HTTPException(status_code=500, detail=f"Internal error while predicting: {str(e)}")


@app.get("/display/visibility", response_model=VisibilityResponse)
def get_visibility():
    return {"hidden": get_display_store().get_visibility_flag()}


@app.put("/display/visibility", response_model=VisibilityResponse)
def set_visibility(hidden: bool):
    store = get_display_store()
    store.set_visibility_flag(hidden)
    return {"hidden": store.get_visibility_flag()}


@app.get("/display/refresh", response_model=RefreshResponse)
def get_refresh():
    store = get_display_store()
    return {"requested_at": store.last_refresh(), "next_refresh": store.next_refresh()}


@app.post("/display/refresh", response_model=RefreshResponse)
def request_refresh():
    store = get_display_store()
    requested_at = store.request_refresh()
    return {"requested_at": requested_at, "next_refresh": store.next_refresh()}


@app.post("/display/refresh/ack", response_model=RefreshResponse)
def acknowledge_refresh():
    """Called by a surface after it has rendered."""
    store = get_display_store()
    store.acknowledge_refresh()
    return {"requested_at": store.last_refresh(), "next_refresh": store.next_refresh()}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
