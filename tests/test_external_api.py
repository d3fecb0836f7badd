"""
Unit tests for the external reference-data clients
"""

import asyncio

import httpx

from labtest_api.services.external_api import (
    ExternalApiService,
    parse_diagnosis_payload,
    parse_medication_payload,
)

RXNAV_PAYLOAD = {
    "drugGroup": {
        "name": None,
        "conceptGroup": [
            {"tty": "BPCK"},
            {
                "tty": "SBD",
                "conceptProperties": [
                    {"rxcui": "1049630", "name": "diphenhydramine 25 MG Oral Tablet [Benadryl]", "tty": "SBD"},
                ],
            },
            {
                "name": "Legacy",
                "concept": [
                    {"conceptId": "42", "name": "aspirin 81 MG", "vocabulary": "RXNORM"},
                ],
            },
        ],
    }
}


def service_with(handler, settings):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ExternalApiService(settings, client=client)


class TestDiagnosisSearch:
    """Test ICD-10-CM search"""

    def test_codes_and_names_are_zipped(self):
        """Test positional payload pairing"""
        results = parse_diagnosis_payload(["total", ["A1", "B2"], "name", ["Alpha", "Beta"]])

        assert [(r.code, r.name) for r in results] == [("A1", "Alpha"), ("B2", "Beta")]
        assert results[0].description == "A1 - Alpha"

    def test_name_pairs_use_last_element(self):
        """Test display rows given as [code, name] pairs"""
        results = parse_diagnosis_payload([1, ["E11.9"], None, [["E11.9", "Type 2 diabetes mellitus"]]])

        assert results[0].name == "Type 2 diabetes mellitus"

    def test_short_payload_is_empty(self):
        """Test malformed payloads yield no results"""
        assert parse_diagnosis_payload([0, []]) == []
        assert parse_diagnosis_payload({"error": "bad"}) == []

    def test_search_sends_terms(self, settings):
        """Test the upstream request and response envelope"""
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=[2, ["I10", "I11"], None, [["I10", "Hypertension"], ["I11", "HHD"]]])

        response = asyncio.run(service_with(handler, settings).search_diagnosis("hyper"))

        assert seen["params"] == {"sf": "code,name", "terms": "hyper"}
        assert response.query == "hyper"
        assert response.total_count == 2
        assert response.results[1].code == "I11"

    def test_upstream_failure_returns_empty_result(self, settings):
        """Test upstream errors degrade to an empty result with the query"""
        response = asyncio.run(
            service_with(lambda request: httpx.Response(503), settings).search_diagnosis("asthma")
        )

        assert response.results == []
        assert response.total_count == 0
        assert response.query == "asthma"

    def test_transport_error_returns_empty_result(self, settings):
        """Test network errors degrade to an empty result"""
        def handler(request):
            raise httpx.ConnectError("no route to host")

        response = asyncio.run(service_with(handler, settings).search_diagnosis("asthma"))

        assert response.results == []


class TestMedicationSearch:
    """Test RxNav drug search"""

    def test_concept_groups_are_flattened(self):
        """Test both concept shapes and group categories"""
        results = parse_medication_payload(RXNAV_PAYLOAD)

        assert len(results) == 2
        assert results[0].concept_id == "1049630"
        assert results[0].vocabulary == "SBD"
        assert results[0].category == "SBD"
        assert results[1].concept_id == "42"
        assert results[1].category == "Legacy"

    def test_missing_drug_group(self):
        """Test payloads without a drug group"""
        assert parse_medication_payload({}) == []

    def test_search_sends_name(self, settings):
        """Test the upstream request and response envelope"""
        def handler(request):
            assert request.url.params["name"] == "benadryl"
            return httpx.Response(200, json=RXNAV_PAYLOAD)

        response = asyncio.run(service_with(handler, settings).search_medication("benadryl"))

        assert response.total_count == 2
        assert response.query == "benadryl"

    def test_invalid_json_returns_empty_result(self, settings):
        """Test unparseable responses degrade to an empty result"""
        response = asyncio.run(
            service_with(lambda request: httpx.Response(200, text="<html>"), settings).search_medication("x")
        )

        assert response.results == []
        assert response.query == "x"
