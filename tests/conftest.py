import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from forgecraft.core.database import init_db
from forgecraft.models import DocEntry, Platform, Project, User
from forgecraft.services.model_gateway import GeneratedOutput


class FakeGateway:
    """Stands in for ModelGatewayService; records every call."""

    def __init__(self, output=None, error=None):
        self.output = output or GeneratedOutput(
            files={"src/Main.java": "class Main {}", "README.md": "# Demo"},
            summary="Generated demo plugin",
            tokens_used=1000,
        )
        self.error = error
        self.calls = []

    def generate(self, model, system_prompt, user_prompt, max_output_tokens=None):
        self.calls.append({
            "model": model,
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
        })
        if self.error is not None:
            raise self.error
        return self.output


@pytest.fixture
def engine(tmp_path):
    db_path = tmp_path / "forgecraft_test.db"
    engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    def _make(user_id="user_1", balance=100):
        user = User(id=user_id, email=f"{user_id}@example.com", token_balance=balance)
        db.add(user)
        db.commit()
        return user
    return _make


@pytest.fixture
def make_project(db):
    def _make(user_id="user_1", platform=Platform.MINECRAFT_PAPER, **fields):
        project = Project(user_id=user_id, name="Demo", platform=platform, **fields)
        db.add(project)
        db.commit()
        return project
    return _make


@pytest.fixture
def make_doc(db):
    def _make(title, content, platform=Platform.MINECRAFT_PAPER, version="1.20"):
        doc = DocEntry(title=title, content=content, platform=platform, version=version)
        db.add(doc)
        db.commit()
        return doc
    return _make
