"""Shared test fixtures."""
import uuid
from datetime import datetime, timezone

import pytest
from unittest.mock import patch, MagicMock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from leadflow.database import Base
from leadflow.workflow.settings import EngineSettings


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with schema created."""
    engine = create_engine('sqlite:///:memory:')
    from leadflow import import_models
    import_models()
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """SQLAlchemy session bound to in-memory SQLite. Rolls back after each test."""
    Session = sessionmaker(bind=db_engine)
    session = Session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(autouse=True)
def patch_get_session(db_session):
    """Route all get_session() calls to the test session.

    We disable close() so that route handlers calling session.close()
    in their finally blocks don't invalidate the shared test session.
    """
    _real_close = db_session.close
    db_session.close = lambda: None
    with patch('leadflow.database.get_session', return_value=db_session):
        yield db_session
    db_session.close = _real_close


@pytest.fixture
def mock_redis():
    """Mock Redis client. Locks are always acquired."""
    mock = MagicMock()
    mock.get.return_value = None
    mock.hgetall.return_value = {}
    mock.lock.return_value.acquire.return_value = True
    with patch('leadflow.extensions.redis_client', mock):
        yield mock


@pytest.fixture
def app(mock_redis):
    """Flask test app."""
    from leadflow import create_app
    app = create_app()
    app.config['TESTING'] = True
    app.config['ENGINE_SETTINGS'] = EngineSettings()
    yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c


# ── Fake providers ───────────────────────────────────────────────────────────

class FakeEmailSender:
    """Records send_email calls; returns a Resend-shaped response."""

    def __init__(self):
        self.sent = []

    def send_email(self, from_name, from_email, to, subject, html, reply_to=None):
        self.sent.append({
            'from_name': from_name, 'from_email': from_email, 'to': to,
            'subject': subject, 'html': html, 'reply_to': reply_to,
        })
        return {'id': f'email-{len(self.sent)}'}


class FakeSmsSender:
    """Records send_sms calls; returns a Twilio-shaped response."""

    def __init__(self):
        self.sent = []

    def send_sms(self, to, body):
        self.sent.append({'to': to, 'body': body})
        return {'sid': f'SM{len(self.sent):04d}', 'status': 'queued'}


@pytest.fixture
def email_sender():
    return FakeEmailSender()


@pytest.fixture
def sms_sender():
    return FakeSmsSender()


@pytest.fixture
def engine_settings(email_sender, sms_sender):
    """EngineSettings wired to the fake providers."""
    return EngineSettings(email_sender=email_sender, sms_sender=sms_sender)


@pytest.fixture
def now():
    return datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


# ── Factories ────────────────────────────────────────────────────────────────

@pytest.fixture
def make_lead(db_session):
    """Factory fixture — inserts a Lead owned by user-1 unless overridden."""
    from leadflow.models.lead import Lead

    def _make(**overrides):
        defaults = dict(
            id=str(uuid.uuid4()),
            user_id='user-1',
            first_name='Ada',
            last_name='Lovelace',
            email='ada@example.com',
            phone='+15550001111',
            status='new',
            source='website',
            tags=[],
            lead_score=10,
            program_interest='MSc Computing',
            city='London',
            country='UK',
        )
        defaults.update(overrides)
        lead = Lead(**defaults)
        db_session.add(lead)
        db_session.flush()
        return lead
    return _make


@pytest.fixture
def make_workflow(db_session):
    """Factory fixture — inserts a Workflow from a list of elements."""
    from leadflow.models.workflow import Workflow

    def _make(elements=None, re_enrollment=False, audience=None, **overrides):
        defaults = dict(
            id=str(uuid.uuid4()),
            user_id='user-1',
            name='Test workflow',
            is_active=True,
            trigger_config={
                'elements': elements if elements is not None else [],
                'settings': {'reEnrollmentAllowed': re_enrollment},
            },
            enrollment_settings={'audienceFilters': audience or {}},
            execution_stats={},
        )
        defaults.update(overrides)
        workflow = Workflow(**defaults)
        db_session.add(workflow)
        db_session.flush()
        return workflow
    return _make


@pytest.fixture
def make_advisor(db_session):
    from leadflow.models.advisor import AdvisorPerformance

    def _make(advisor_id, load=0, routing_enabled=True):
        advisor = AdvisorPerformance(
            advisor_id=advisor_id,
            routing_enabled=routing_enabled,
            current_weekly_assignments=load,
        )
        db_session.add(advisor)
        db_session.flush()
        return advisor
    return _make


@pytest.fixture
def step_context(db_session, make_lead, engine_settings, now):
    """Factory for StepContext around a fresh lead and an unsaved enrollment."""
    from leadflow.models.enrollment import WorkflowEnrollment
    from leadflow.workflow.base import StepContext

    def _make(lead=None, test_mode=False, **lead_overrides):
        lead = lead or make_lead(**lead_overrides)
        enrollment = WorkflowEnrollment(
            id='enr-1', workflow_id='wf-1', lead_id=lead.id, user_id='user-1',
            current_step_index=0, status='active', step_history=[],
        )
        return StepContext(
            session=db_session,
            enrollment=enrollment,
            lead=lead,
            user_id='user-1',
            now=now,
            test_mode=test_mode,
            settings=engine_settings,
        )
    return _make
