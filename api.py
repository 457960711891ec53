import os
from typing import List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
import uvicorn

from guideline_search.application.search_engine import (
    DEFAULT_DB_PATH,
    DEFAULT_TOP_K,
    SemanticSearchEngine,
)
from guideline_search.domain.errors import (
    DimensionMismatchError,
    EmbeddingError,
    EngineInitializationError,
    IndexNotFoundError,
    SearchEngineError,
)
from guideline_search.domain.models import SearchResult
from guideline_search.infrastructure.embedding_engine import DEFAULT_MODEL_NAME
from guideline_search.infrastructure.index_storage import BundledIndexStorage

# ── Configuration ────────────────────────────────────────────────────────────
ASSET_DIRECTORY = os.getenv("GUIDELINE_SEARCH_DB_PATH", DEFAULT_DB_PATH)
MODEL_NAME = os.getenv("GUIDELINE_SEARCH_MODEL", DEFAULT_MODEL_NAME)

# ── API Models ───────────────────────────────────────────────────────────────
class SearchRequest(BaseModel):
    query: str
    top_k: int = Field(default=DEFAULT_TOP_K, ge=1)

class ResultMetadataSchema(BaseModel):
    source: str
    node_index: int
    xpath: Optional[str] = None
    tag_name: Optional[str] = None
    bookmark: Optional[str] = None
    title: Optional[str] = None
    page_number: Optional[int] = None

class SearchResultSchema(BaseModel):
    id: str
    text: str
    section: str
    metadata: ResultMetadataSchema
    distance: float
    score: float

class SearchResponse(BaseModel):
    query: str
    results: List[SearchResultSchema]

class StatusResponse(BaseModel):
    state: str
    document_count: int
    dimension: int
    model_name: str
    db_path: str

class BookmarkSchema(BaseModel):
    bookmark_id: str
    title: str
    page_number: int


def _to_schema(result: SearchResult) -> SearchResultSchema:
    meta = result.metadata
    return SearchResultSchema(
        id=result.id,
        text=result.text,
        section=result.section,
        metadata=ResultMetadataSchema(
            source=meta.source,
            node_index=meta.node_index,
            xpath=meta.xpath,
            tag_name=meta.tag_name,
            bookmark=meta.bookmark,
            title=meta.title,
            page_number=meta.page_number,
        ),
        distance=round(result.distance, 6),
        score=round(result.score, 4),
    )


def create_app(engine: SemanticSearchEngine) -> FastAPI:
    """Read-only HTTP surface over a search engine loaded from bundled assets."""
    app = FastAPI(
        title="Guideline Search API",
        description="Offline semantic search over the guidelines manual.",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:8081", "http://localhost:19006"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.get("/status", response_model=StatusResponse)
    def get_status():
        """Readiness of the engine and statistics of the loaded or persisted index."""
        stats = engine.get_stats()
        return StatusResponse(
            state=engine.state.value,
            document_count=stats.document_count,
            dimension=stats.dimension,
            model_name=stats.model_name,
            db_path=stats.db_path,
        )

    @app.get("/bookmarks", response_model=List[BookmarkSchema])
    def get_bookmarks():
        try:
            entries = engine.list_bookmarks()
        except EngineInitializationError as error:
            raise HTTPException(status_code=503, detail=str(error))
        return [BookmarkSchema(**entry.to_dict()) for entry in entries]

    @app.post("/search", response_model=SearchResponse)
    def search(request: SearchRequest):
        try:
            results = engine.search(request.query, request.top_k)
        except DimensionMismatchError as error:
            raise HTTPException(
                status_code=503,
                detail=f"{error} Reindex with the configured model.",
            )
        except ValueError as error:
            raise HTTPException(status_code=400, detail=str(error))
        except (IndexNotFoundError, EngineInitializationError) as error:
            raise HTTPException(status_code=503, detail=str(error))
        except (EmbeddingError, SearchEngineError) as error:
            raise HTTPException(status_code=500, detail=str(error))

        return SearchResponse(
            query=request.query,
            results=[_to_schema(r) for r in results],
        )

    return app


# The model loads lazily on the first request, not at import time
app = create_app(SemanticSearchEngine(
    model_name=MODEL_NAME,
    storage=BundledIndexStorage(ASSET_DIRECTORY),
))

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
