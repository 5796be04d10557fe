from conftest import ALICE, BOB


def test_create_and_list_environments(client):
    r = client.post("/env", headers=ALICE, json={"name": "staging", "variables": {"baseUrl": "https://staging.example.com", "retries": 3}})
    assert r.status_code == 200
    env = r.json()
    assert env["name"] == "staging"
    assert env["variables"] == {"baseUrl": "https://staging.example.com", "retries": 3}
    assert env["user_id"] == "alice"

    client.post("/env", headers=ALICE, json={"name": "prod", "variables": {}})

    listed = client.get("/env", headers=ALICE).json()
    assert [e["name"] for e in listed] == ["staging", "prod"]


def test_variables_default_to_empty(client):
    r = client.post("/env", headers=ALICE, json={"name": "blank"})
    assert r.status_code == 200
    assert r.json()["variables"] == {}


def test_environments_are_scoped_to_caller(client):
    client.post("/env", headers=ALICE, json={"name": "secret", "variables": {"token": "abc"}})
    assert client.get("/env", headers=BOB).json() == []
