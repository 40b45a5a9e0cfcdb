import pytest

from dropbox_storage.config import Config
from dropbox_storage.database import connection
from dropbox_storage.database.models import Base, Blob


@pytest.fixture
def config(tmp_path):
    connection.dispose_engine()
    yield Config(dropbox_access_token="token", database_url=f"sqlite:///{tmp_path}/blobs.db")
    connection.dispose_engine()


def _blob(key: str) -> Blob:
    return Blob(key=key, filename="report.pdf", byte_size=3, service_name="Dropbox", custom_metadata={})


def test_normalize_database_url():
    assert (
        connection._normalize_database_url("postgresql://user@db/blobs")
        == "postgresql+psycopg://user@db/blobs"
    )
    assert connection._normalize_database_url("sqlite:///blobs.db") == "sqlite:///blobs.db"


def test_get_engine_requires_database_url():
    connection.dispose_engine()
    with pytest.raises(ValueError):
        connection.get_engine(Config(dropbox_access_token="token"))


def test_get_session_commits(config):
    assert connection.test_connection(config) is True
    Base.metadata.create_all(connection.get_engine(config))

    with connection.get_session(config) as session:
        session.add(_blob("committed"))

    with connection.get_session(config) as session:
        assert session.query(Blob).filter(Blob.key == "committed").count() == 1


def test_get_session_rolls_back(config):
    Base.metadata.create_all(connection.get_engine(config))

    with pytest.raises(RuntimeError):
        with connection.get_session(config) as session:
            session.add(_blob("rolled-back"))
            session.flush()
            raise RuntimeError("boom")

    with connection.get_session(config) as session:
        assert session.query(Blob).count() == 0
