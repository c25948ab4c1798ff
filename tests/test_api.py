import pytest
from fastapi.testclient import TestClient

from voterlookup.api import create_app
from voterlookup.config import Config, DBConfig, WardConfig, WardSet
from voterlookup.exceptions import DatastoreConnectionError
from voterlookup.search import VoterSearchService

from conftest import FakeDatastore, FakeSession, voter_row


@pytest.fixture
def app_config(search_config):
    return Config(
        db=DBConfig(url=""),
        search=search_config,
        wards=WardConfig(
            sets=[
                WardSet("165", ("165", "ward165"), ["165"]),
                WardSet("multiple", ("multiple", "all"), ["140", "146"]),
            ],
            configured_ward="140",
        ),
    )


def make_client(session, app_config):
    service = VoterSearchService(FakeDatastore(session), app_config.search)
    return TestClient(create_app(service=service, config=app_config))


@pytest.fixture
def client(app_config):
    rows = [
        voter_row("Ram Kumra", "NCT0000002", score=0.6, words=1),
        voter_row("Kumar Ram Patil", "NCT0000001", score=1.0, words=2),
    ]
    return make_client(FakeSession(rows=rows), app_config)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_search_voters(client):
    response = client.get("/api/search-voters", params={"ward": "146", "method": "1", "query": "Ram Kumar"})
    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 2
    assert [m["name"] for m in body["matches"]] == ["Kumar Ram Patil", "Ram Kumra"]
    assert "match_score" not in body["matches"][0]


@pytest.mark.parametrize("params", [
    {"method": "1", "query": "Ram"},
    {"ward": "146", "query": "Ram"},
    {"ward": "146", "method": "1"},
])
def test_search_voters_missing_params(client, params):
    response = client.get("/api/search-voters", params=params)
    assert response.status_code == 400
    assert response.json()["error"].startswith("Missing required parameters")


def test_search_voters_unknown_ward(client):
    response = client.get("/api/search-voters", params={"ward": "999", "method": "1", "query": "Ram"})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid ward number"}


def test_search_voters_unknown_method(client):
    response = client.get("/api/search-voters", params={"ward": "146", "method": "9", "query": "Ram"})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid search method"}


def test_search_voters_datastore_down(app_config):
    session = FakeSession(failures={"epic_number": DatastoreConnectionError("Database connection failed")})
    client = make_client(session, app_config)
    response = client.get("/api/search-voters", params={"ward": "146", "method": "2", "query": "NCT1"})
    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error", "message": "Database connection failed"}


def test_voter_details(app_config):
    row = voter_row("Ram Kumar", "NCT6342834", booth_name="Municipal School")
    client = make_client(FakeSession(rows=[row]), app_config)
    response = client.get("/api/voter-details", params={"epic": "NCT6342834", "ward": "146"})
    assert response.status_code == 200
    assert response.json()["voter"]["pollingStation"] == "Municipal School"


def test_voter_details_not_found(app_config):
    client = make_client(FakeSession(rows=[]), app_config)
    response = client.get("/api/voter-details", params={"epic": "NCT6342834", "ward": "146"})
    assert response.status_code == 404
    assert response.json() == {"error": "Voter not found"}


def test_voter_details_missing_params(client):
    assert client.get("/api/voter-details", params={"epic": "NCT6342834"}).status_code == 400


def test_configured_ward_default(client):
    body = client.get("/api/configured-ward").json()
    assert body["ward"] == "140"
    assert body["isMultiple"] is False
    assert body["wardSet"] is None


@pytest.mark.parametrize("name", ["wardSet", "set", "ward"])
def test_configured_ward_from_query(client, name):
    body = client.get("/api/configured-ward", params={name: "all"}).json()
    assert body["allWards"] == ["140", "146"]
    assert body["isMultiple"] is True
    assert body["configuredWard"] == "140,146"


def test_configured_ward_from_host(client):
    body = client.get("/api/configured-ward", headers={"host": "ward165.example.org"}).json()
    assert body["allWards"] == ["165"]


def test_configured_ward_missing(app_config, session):
    app_config.wards = WardConfig(sets=[], configured_ward="")
    client = make_client(session, app_config)
    response = client.get("/api/configured-ward")
    assert response.status_code == 500
    assert response.json()["error"].startswith("No ward configured")
