import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import main


@pytest.fixture
def session():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    SQLModel.metadata.create_all(engine)
    with Session(engine) as s:
        yield s


@pytest.fixture
def client(session):
    main.app.dependency_overrides[main.get_session] = lambda: session
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


@pytest.fixture
def group(client):
    """A EUR group with Alice, Bob and Charlie as members, in that order."""
    ids = [client.post("/members", json={"name": n}).json()["id"] for n in ("Alice", "Bob", "Charlie")]
    g = client.post("/groups", json={"name": "Trip", "currency": "eur"}).json()
    for mid in ids:
        client.post(f"/groups/{g['id']}/members", json={"member_id": mid})
    return {"id": g["id"], "members": ids}
