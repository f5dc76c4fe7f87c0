"""
Knowledge Retriever — passages pertinents pour les générateurs.

Ordre garanti : résultats locaux d'abord, puis résultats externes, chacun
dans son propre classement. La recherche vectorielle externe est
optionnelle et ne doit JAMAIS faire échouer la requête.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import requests

from shambasmart.tools.knowledge_base import LocalDataSource

logger = logging.getLogger("ShambaSmart.Retriever")


@dataclass
class RetrievalContext:
    crop: Optional[str] = None
    region: Optional[str] = None
    soil_type: Optional[str] = None
    farm_stage: Optional[str] = None
    livestock: Optional[str] = None


def enhance_query(query: str, context: RetrievalContext) -> str:
    """Ajoute les tags de contexte (crop:, region:, soil:, stage:) à la requête."""
    parts = [query]
    if context.crop:
        parts.append(f"crop: {context.crop}")
    if context.region:
        parts.append(f"region: {context.region}")
    if context.soil_type:
        parts.append(f"soil: {context.soil_type}")
    if context.farm_stage:
        parts.append(f"stage: {context.farm_stage}")
    return " ".join(parts)


class VectorSearchClient:
    """
    Client HTTP d'un service de recherche par similarité.

    POST {url} {"query": ..., "top_k": ...} → {"results": [{"text": ..., "score": ...}]}
    """

    def __init__(self, url: str, timeout: float = 5.0, top_k: int = 5, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.top_k = top_k
        self.session = session or requests.Session()

    def search(self, query: str) -> List[str]:
        response = self.session.post(
            self.url,
            json={"query": query, "top_k": self.top_k},
            timeout=self.timeout,
        )
        response.raise_for_status()
        results = response.json().get("results", [])
        return [r.get("text", "") for r in results if isinstance(r, dict) and r.get("text")]


class KnowledgeRetriever:
    def __init__(self, local: LocalDataSource, external: Optional[VectorSearchClient] = None):
        self.local = local
        self.external = external

    def _external_results(self, query: str, context: RetrievalContext) -> List[str]:
        if self.external is None:
            return []
        try:
            results = self.external.search(enhance_query(query, context))
            if results:
                logger.info("Retrieved %d passages from external vector search", len(results))
            return results
        except Exception as e:
            logger.debug("External vector search failed, continuing with local data only: %s", e)
            return []

    def retrieve(self, query: str, context: Optional[RetrievalContext] = None) -> List[str]:
        context = context or RetrievalContext()
        try:
            local = self.local.search_all(
                query,
                crop=context.crop,
                region=context.region,
                livestock=context.livestock,
            )
        except Exception as e:
            logger.error("Local knowledge search failed: %s", e, exc_info=True)
            local = []

        passages = local + self._external_results(query, context)
        if passages:
            logger.debug("Returning %d passages (%d local)", len(passages), len(local))
            return passages

        logger.info("No specific matches found, returning general local data")
        try:
            return self.local.all_as_text()[:3]
        except Exception as e:
            logger.error("General local data unavailable: %s", e)
            return []


__all__ = ["RetrievalContext", "KnowledgeRetriever", "VectorSearchClient", "enhance_query"]
