"""
Tests for the NPI Registry and Tavily lookups.
"""

import httpx

from chatbot import tools
from chatbot.tools import extract_zip, find_providers, search_medicare_info, taxonomy_for
from conftest import FakeTavily

NPI_RESULTS = {
    "result_count": 2,
    "results": [
        {
            "number": "1234567890",
            "basic": {"first_name": "SARAH", "last_name": "KIM", "credential": "MD"},
            "addresses": [
                {"address_purpose": "MAILING", "address_1": "PO BOX 1", "city": "OAKLAND",
                 "state": "CA", "postal_code": "946010000", "telephone_number": "510-555-0000"},
                {"address_purpose": "LOCATION", "address_1": "2100 WEBSTER ST", "city": "SAN FRANCISCO",
                 "state": "CA", "postal_code": "941151234", "telephone_number": "415-555-0100"},
            ],
            "taxonomies": [
                {"desc": "Internal Medicine", "primary": False},
                {"desc": "Rheumatology", "primary": True},
            ],
        },
        {
            "number": "1999999999",
            "basic": {"organization_name": "CALIFORNIA PACIFIC MEDICAL CENTER"},
            "addresses": [{"address_1": "1101 VAN NESS AVE", "city": "SAN FRANCISCO",
                           "state": "CA", "postal_code": "94109"}],
            "taxonomies": [{"desc": "General Acute Care Hospital", "primary": True}],
        },
        {"number": "0", "basic": {}, "addresses": []},
    ],
}


def npi_client(payload=NPI_RESULTS, status=200, exc=None):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if exc:
            raise exc
        return httpx.Response(status, json=payload)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    client.seen = seen
    return client


class TestHelpers:
    """Tests for the search helpers."""

    def test_taxonomy_for(self):
        """Test casual names mapped to NPI taxonomies."""
        assert taxonomy_for("heart doctor") == "Cardiovascular Disease"
        assert taxonomy_for("Cardiologist") == "Cardiovascular Disease"
        assert taxonomy_for("rheumatologist") == "Rheumatology"
        assert taxonomy_for("doctor") is None
        assert taxonomy_for(None) is None

    def test_extract_zip(self):
        """Test ZIP and ZIP+4 extraction."""
        assert extract_zip("near 94115 please") == "94115"
        assert extract_zip("94115-1234") == "94115"
        assert extract_zip("San Francisco") is None


class TestFindProviders:
    """Tests for find_providers."""

    def test_formats_results(self):
        """Test person and organization records."""
        client = npi_client()
        providers = find_providers(zip_code="94115", specialty="Rheumatology", client=client)

        assert providers == [
            {
                "name":      "Sarah Kim, MD",
                "specialty": "Rheumatology",
                "address":   "2100 Webster St",
                "city":      "San Francisco",
                "state":     "CA",
                "zip":       "94115",
                "phone":     "415-555-0100",
                "npi":       "1234567890",
            },
            {
                "name":      "CALIFORNIA PACIFIC MEDICAL CENTER",
                "specialty": "General Acute Care Hospital",
                "address":   "1101 Van Ness Ave",
                "city":      "San Francisco",
                "state":     "CA",
                "zip":       "94109",
                "phone":     "N/A",
                "npi":       "1999999999",
            },
        ]
        params = client.seen[0].url.params
        assert params["postal_code"] == "94115"
        assert params["taxonomy_description"] == "Rheumatology"
        assert params["version"] == "2.1"

    def test_city_search(self):
        """Test searching by city and state."""
        client = npi_client()
        find_providers(city="Chicago", state="IL", client=client)

        params = client.seen[0].url.params
        assert params["city"] == "Chicago"
        assert params["state"] == "IL"
        assert "postal_code" not in params

    def test_needs_zip_or_city(self):
        """Test that no request is made without a place."""
        client = npi_client()
        assert find_providers(specialty="Dentist", client=client) == []
        assert client.seen == []

    def test_errors_return_empty(self):
        """Test HTTP errors and timeouts."""
        assert find_providers(zip_code="94115", client=npi_client(status=500)) == []
        assert find_providers(zip_code="94115", client=npi_client(exc=httpx.ReadTimeout("slow"))) == []

    def test_no_results(self):
        """Test an empty result set."""
        assert find_providers(zip_code="00000", client=npi_client(payload={"result_count": 0})) == []


class TestSearchMedicareInfo:
    """Tests for search_medicare_info."""

    def test_disabled_without_key(self):
        """Test that search is skipped when Tavily is not configured."""
        assert search_medicare_info("Medicare Advantage dental") == ""

    def test_formats_sources(self, monkeypatch):
        """Test source-tagged output."""
        fake = FakeTavily({"results": [
            {"url": "https://www.medicare.gov/a", "content": "Dental is often covered."},
            {"url": "https://www.medicare.gov/b", "content": "Check your plan."},
        ]})
        monkeypatch.setattr(tools, "tavily", fake)

        text = search_medicare_info("Medicare Advantage dental", max_results=2)

        assert text == (
            "Source: https://www.medicare.gov/a\nContent: Dental is often covered.\n---\n"
            "Source: https://www.medicare.gov/b\nContent: Check your plan."
        )
        assert fake.queries[0]["max_results"] == 2

    def test_failure_returns_empty(self, monkeypatch):
        """Test that a search error degrades to no context."""
        monkeypatch.setattr(tools, "tavily", FakeTavily(error=RuntimeError("quota")))
        assert search_medicare_info("anything") == ""
