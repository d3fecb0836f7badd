"""
Lab Test API - External Reference Data
ICD-10-CM search (NLM Clinical Tables) and drug search (NLM RxNav)
"""

import logging
from typing import Any, List, Optional

import httpx

from labtest_api.config import Settings
from labtest_api.schemas import (
    DiagnosisData,
    DiagnosisSearchResponse,
    MedicationData,
    MedicationSearchResponse,
)

logger = logging.getLogger(__name__)


class ExternalApiService:
    """
    Pass-through clients for public reference-data APIs

    Failures never propagate: every error degrades to an empty result
    tagged with the search term.
    """

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self.client = client or httpx.AsyncClient(timeout=settings.external_api_timeout)

    async def aclose(self) -> None:
        await self.client.aclose()

    # =========================================================================
    # Diagnosis Search
    # =========================================================================

    async def search_diagnosis(self, query: str) -> DiagnosisSearchResponse:
        """
        Search ICD-10-CM codes

        The API answers with a positional array: [total, codes, extra, names].
        Codes and names are paired by index.
        """
        logger.info(f"Searching diagnosis for query: '{query}'")
        try:
            response = await self.client.get(
                self.settings.icd10_search_url,
                params={"sf": "code,name", "terms": query},
            )
            response.raise_for_status()
            payload = response.json()
        except Exception as e:
            logger.error(f"Error searching diagnosis: {e}")
            return DiagnosisSearchResponse(query=query)

        results = parse_diagnosis_payload(payload)
        logger.info(f"✓ Found {len(results)} diagnosis results")
        return DiagnosisSearchResponse(results=results, total_count=len(results), query=query)

    # =========================================================================
    # Medication Search
    # =========================================================================

    async def search_medication(self, search: str) -> MedicationSearchResponse:
        """Search RxNorm drugs by name"""
        logger.info(f"Searching medication for query: '{search}'")
        try:
            response = await self.client.get(self.settings.rxnav_drugs_url, params={"name": search})
            response.raise_for_status()
            payload = response.json()
        except Exception as e:
            logger.error(f"Error searching medication: {e}")
            return MedicationSearchResponse(query=search)

        results = parse_medication_payload(payload)
        logger.info(f"✓ Found {len(results)} medication results")
        return MedicationSearchResponse(results=results, total_count=len(results), query=search)


# =============================================================================
# Response Parsing
# =============================================================================

def parse_diagnosis_payload(payload: Any) -> List[DiagnosisData]:
    """Zip codes (index 1) with names (index 3)"""
    if not isinstance(payload, list) or len(payload) < 4:
        logger.warning("Invalid response format from ICD-10 search API")
        return []

    codes, names = payload[1], payload[3]
    if not isinstance(codes, list) or not isinstance(names, list):
        logger.warning("ICD-10 search response has no code/name arrays")
        return []

    results = []
    for code, name in zip(codes, names):
        # Each name entry may itself be a [code, name] pair when sf/df differ
        if isinstance(name, list):
            name = name[-1] if name else ""
        code = "" if code is None else str(code)
        name = "" if name is None else str(name)
        results.append(DiagnosisData(code=code, name=name, description=f"{code} - {name}"))
    return results


def parse_medication_payload(payload: Any) -> List[MedicationData]:
    """Walk drugGroup.conceptGroup[] and collect each group's concepts"""
    if not isinstance(payload, dict):
        return []
    drug_group = payload.get("drugGroup")
    if not isinstance(drug_group, dict):
        logger.warning("No drugGroup found in RxNav response")
        return []

    results = []
    for group in drug_group.get("conceptGroup") or []:
        if not isinstance(group, dict):
            continue
        category = group.get("name") or group.get("tty") or ""
        # "concept" is the documented shape; current RxNav returns "conceptProperties"
        concepts = group.get("concept") or group.get("conceptProperties") or []
        for concept in concepts:
            if not isinstance(concept, dict):
                continue
            results.append(MedicationData(
                name=str(concept.get("name") or ""),
                concept_id=str(concept.get("conceptId") or concept.get("rxcui") or ""),
                vocabulary=str(concept.get("vocabulary") or concept.get("tty") or ""),
                category=str(category),
            ))
    return results
