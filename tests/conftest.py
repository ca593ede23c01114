from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator

import pytest
from fastapi.testclient import TestClient

from backend.main import create_app
from diagram_core import EditorSession, EditorSettings, Shape


def _clear_editor_env() -> None:
    for key in list(os.environ):
        if key.startswith("DIAGRAM_EDITOR_"):
            os.environ.pop(key, None)


_clear_editor_env()


@pytest.fixture(autouse=True)
def clear_editor_env() -> Generator[None, None, None]:
    _clear_editor_env()
    yield
    _clear_editor_env()


@pytest.fixture
def session() -> EditorSession:
    return EditorSession(EditorSettings())


@pytest.fixture
def add_shape(session: EditorSession) -> Callable[..., Shape]:
    def _factory(x: float = 0, y: float = 0, w: float = 80, h: float = 80, **props: object) -> Shape:
        return session.model.create_shape(x=x, y=y, w=w, h=h, **props)

    return _factory


@pytest.fixture
def client(session: EditorSession) -> Iterator[TestClient]:
    with TestClient(create_app(session)) as test_client:
        yield test_client


@pytest.fixture
def state(session: EditorSession) -> Callable[[], dict]:
    """Shapes and connectors keyed by id, without the version counter."""
    def _state() -> dict:
        data = session.model.serialize()
        return {
            "shapes": {s["id"]: s for s in data["shapes"]},
            "connectors": {c["id"]: c for c in data["connectors"]},
        }

    return _state
