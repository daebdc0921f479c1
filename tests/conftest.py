"""
Shared pytest fixtures for tournament bracket tests.

Running tests:
    pytest tests/
"""
import pytest
import sys
import os

# Keep the app from writing a secret key into the repository data directory
os.environ.setdefault('SECRET_KEY', 'test-secret-key')

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from tourney.models import Participant


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    """Point every data file of the app at a temporary directory."""
    import app as app_module

    monkeypatch.setattr(app_module, 'DATA_DIR', str(tmp_path))
    monkeypatch.setattr(app_module, 'USERS_FILE', str(tmp_path / 'users.yaml'))
    monkeypatch.setattr(app_module, 'TOURNAMENTS_FILE', str(tmp_path / 'tournaments.yaml'))
    monkeypatch.setattr(app_module, 'TOURNAMENTS_DIR', str(tmp_path / 'tournaments'))
    monkeypatch.setattr(app_module, 'SERIES_FILE', str(tmp_path / 'series.yaml'))
    monkeypatch.setattr(app_module, 'SERIES_DIR', str(tmp_path / 'series'))
    return tmp_path


@pytest.fixture
def client(data_dir):
    """Create an unauthenticated test client backed by a temp data directory."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client


def login_as(client, username):
    """Put ``username`` in the client's session."""
    with client.session_transaction() as sess:
        sess['user'] = username


def make_participants(count):
    """Unseeded participants p1..pN with entry numbers 1..N."""
    return [Participant(user_id=f'p{i}', entry_number=i) for i in range(1, count + 1)]


@pytest.fixture
def four_participants():
    return make_participants(4)


@pytest.fixture
def five_participants():
    return make_participants(5)
