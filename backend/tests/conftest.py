import os, sys, pytest
# Ensure backend directory is on path so 'app' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from app import create_app, get_db
from app.models.user import Base
# Import all model modules to ensure tables are registered before create_all
import app.models.building  # noqa: F401
import app.models.maintenance_request  # noqa: F401
import app.models.audit  # noqa: F401

@pytest.fixture(scope='session', autouse=True)
def app_instance():
    os.environ['DATABASE_URL'] = 'sqlite+pysqlite:///:memory:'
    app = create_app({'DATABASE_URL': 'sqlite+pysqlite:///:memory:'})
    # After app and blueprints are registered, ensure all tables exist
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app

@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()

@pytest.fixture()
def app_context(app_instance):
    with app_instance.app_context():
        yield app_instance

@pytest.fixture()
def session(app_context):
    s = get_db()
    yield s
    s.rollback()

@pytest.fixture()
def sink(app_instance):
    """Record (event, request_id, recipients) tuples handed to the notification sink."""
    events = []
    previous = app_instance.config.get('NOTIFICATION_SINK')
    app_instance.config['NOTIFICATION_SINK'] = lambda event, request_id, recipients: events.append((event, request_id, recipients))
    yield events
    app_instance.config['NOTIFICATION_SINK'] = previous
