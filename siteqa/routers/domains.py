import logging
from typing import List

from fastapi import APIRouter, HTTPException, Request

from siteqa.config import get_settings
from siteqa.models.records import CrawlSettings, CrawlSettingsUpdate, DomainRecord, StoreStats

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/domains", response_model=List[DomainRecord], summary="List indexed domains")
async def list_domains(request: Request) -> List[DomainRecord]:
    return request.app.state.store.get_domains()


@router.delete("/domains/{domain}", summary="Remove a domain and all of its pages")
async def remove_domain(request: Request, domain: str) -> dict:
    if not request.app.state.store.remove_domain(domain):
        raise HTTPException(status_code=404, detail=f"Domain {domain} is not indexed.")
    return {"success": True}


@router.delete("/pages", summary="Clear all indexed data")
async def clear_all(request: Request) -> dict:
    request.app.state.store.clear_all()
    logger.info("Store: cleared all pages and domains")
    return {"success": True}


@router.get("/stats", response_model=StoreStats, summary="Index statistics")
async def stats(request: Request) -> StoreStats:
    has_api_key = bool(get_settings().anthropic_api_key)
    return request.app.state.store.stats(has_api_key=has_api_key)


@router.get("/settings", response_model=CrawlSettings, summary="Crawl settings")
async def read_settings(request: Request) -> CrawlSettings:
    return request.app.state.store.get_settings()


@router.put("/settings", response_model=CrawlSettings, summary="Update crawl settings")
async def update_settings(request: Request, body: CrawlSettingsUpdate) -> CrawlSettings:
    return request.app.state.store.update_settings(body)
