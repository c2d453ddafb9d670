#!/usr/bin/env python3
"""
Seed demo data for trying the workflow engine locally.

Creates one CRM user's leads, two advisors, and three workflows covering the
main step types:
  1. Welcome series: trigger → email → wait 2 days → sms → create-task
  2. Hot lead routing: trigger → condition (score > 50, exit otherwise) →
     assign-advisor → internal-notification → end-workflow
  3. Nurture tagging: update-lead (add tags) → wait 1 week → update-lead score

Usage:
    python scripts/seed_test_data.py          # seed everything
    python scripts/seed_test_data.py --clear  # wipe seeded data first

Then try:
    curl -X POST localhost:8080/api/workflows/execute \\
         -H 'content-type: application/json' \\
         -d '{"workflowId": "seed-wf-welcome", "userId": "seed-user", "testMode": true}'

Requires: DATABASE_URL set (or defaults to sqlite:///local.db).
"""
import sys
import os
import argparse

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from leadflow import create_app
from leadflow.database import get_session, engine, Base
from leadflow.models.advisor import AdvisorPerformance
from leadflow.models.communication import LeadCommunication
from leadflow.models.enrollment import WorkflowEnrollment
from leadflow.models.lead import Lead
from leadflow.models.notification import Notification
from leadflow.models.step_execution import StepExecution
from leadflow.models.task import LeadTask
from leadflow.models.workflow import Workflow


# Prefix for seeded IDs so we can clear them
SEED_PREFIX = 'seed-'
SEED_USER = 'seed-user'

LEADS = [
    {'first': 'Ada',    'last': 'Okafor',   'status': 'new',       'source': 'website',  'score': 72, 'tags': ['mba'],           'city': 'Lagos',   'country': 'Nigeria', 'program': 'MBA'},
    {'first': 'Bruno',  'last': 'Silva',    'status': 'new',       'source': 'referral', 'score': 35, 'tags': ['engineering'],   'city': 'Porto',   'country': 'Portugal', 'program': 'MSc Engineering'},
    {'first': 'Chen',   'last': 'Wei',      'status': 'contacted', 'source': 'website',  'score': 58, 'tags': ['mba', 'scholarship'], 'city': 'Taipei', 'country': 'Taiwan', 'program': 'MBA'},
    {'first': 'Dana',   'last': 'Levi',     'status': 'new',       'source': 'event',    'score': 90, 'tags': [],                'city': 'Haifa',   'country': 'Israel',  'program': 'Data Science'},
    {'first': 'Emeka',  'last': 'Nwosu',    'status': 'new',       'source': 'website',  'score': 12, 'tags': ['data-science'],  'city': 'Abuja',   'country': 'Nigeria', 'program': 'Data Science', 'no_phone': True},
]

ADVISORS = [
    {'id': 'seed-advisor-1', 'load': 4},
    {'id': 'seed-advisor-2', 'load': 1},
]

WORKFLOWS = [
    {
        'id': 'seed-wf-welcome',
        'name': 'Welcome series',
        'elements': [
            {'type': 'trigger', 'config': {'triggerEvent': 'manual'}},
            {'type': 'email', 'config': {
                'subject': 'Welcome, {{firstName}}!',
                'content': '<p>Hi {{firstName}}, thanks for your interest in {{programName}}.</p>',
                'fromName': 'Admissions',
            }},
            {'type': 'wait', 'config': {'waitTime': {'value': 2, 'unit': 'days'}}},
            {'type': 'sms', 'config': {
                'content': 'Hi {{firstName}}, any questions about {{programName}}?',
                'includeOptOut': True,
            }},
            {'type': 'create-task', 'config': {
                'taskTitle': 'Call {{leadName}}',
                'taskDescription': 'Follow up on the welcome series ({{city}}, {{country}})',
                'assignTo': 'lead_advisor',
                'dueInDays': 2,
            }},
        ],
        'audience': {'status': 'new'},
    },
    {
        'id': 'seed-wf-routing',
        'name': 'Hot lead routing',
        'elements': [
            {'type': 'trigger', 'config': {'triggerEvent': 'score_threshold'}},
            {'type': 'condition', 'config': {
                'conditions': [{'field': 'lead_score', 'operator': 'greater_than', 'value': 50}],
                'onFalse': 'exit',
            }},
            {'type': 'assign-advisor', 'config': {'assignmentMethod': 'load_balanced', 'notifyAdvisor': True}},
            {'type': 'internal-notification', 'config': {
                'recipientType': 'lead_advisor',
                'subject': 'Hot lead',
                'message': '{{leadName}} scored high, reach out today.',
                'priority': 'high',
            }},
            {'type': 'end-workflow', 'config': {'reason': 'completed'}},
        ],
        'audience': {},
    },
    {
        'id': 'seed-wf-nurture',
        'name': 'Nurture tagging',
        'elements': [
            {'type': 'update-lead', 'config': {'updateType': 'tags', 'tags': 'nurture, newsletter', 'tagsAction': 'add'}},
            {'type': 'wait', 'config': {'waitTime': {'value': 1, 'unit': 'weeks'}}},
            {'type': 'update-lead', 'config': {'updateType': 'score', 'scoreChange': 5}},
        ],
        'audience': {'source': 'website', 'tags': ['mba', 'data-science']},
        're_enroll': True,
    },
]


def seed_leads(session):
    for i, row in enumerate(LEADS, 1):
        session.add(Lead(
            id=f'{SEED_PREFIX}lead-{i}',
            user_id=SEED_USER,
            first_name=row['first'],
            last_name=row['last'],
            email=f"{row['first'].lower()}@example.com",
            phone=None if row.get('no_phone') else f'+1555000{i:04d}',
            status=row['status'],
            source=row['source'],
            tags=row['tags'],
            lead_score=row['score'],
            program_interest=row['program'],
            city=row['city'],
            country=row['country'],
        ))
    print(f'  {len(LEADS)} leads')


def seed_advisors(session):
    for row in ADVISORS:
        session.add(AdvisorPerformance(
            advisor_id=row['id'],
            routing_enabled=True,
            current_weekly_assignments=row['load'],
        ))
    print(f'  {len(ADVISORS)} advisors')


def seed_workflows(session):
    for row in WORKFLOWS:
        session.add(Workflow(
            id=row['id'],
            user_id=SEED_USER,
            name=row['name'],
            is_active=True,
            trigger_config={
                'elements': row['elements'],
                'settings': {'reEnrollmentAllowed': row.get('re_enroll', False)},
            },
            enrollment_settings={'audienceFilters': row['audience']},
            execution_stats={},
        ))
        print(f'  workflow {row["id"]}: {row["name"]}')


# ── Clear / Main ─────────────────────────────────────────────────────────────

def clear_seeded_data(session):
    """Remove all seeded rows, children first."""
    seeded = f'{SEED_PREFIX}%'
    enrollment_ids = [
        row.id for row in
        session.query(WorkflowEnrollment.id).filter(WorkflowEnrollment.workflow_id.like(seeded))
    ]
    if enrollment_ids:
        session.query(StepExecution).filter(
            StepExecution.enrollment_id.in_(enrollment_ids)
        ).delete(synchronize_session=False)
    session.query(WorkflowEnrollment).filter(
        WorkflowEnrollment.workflow_id.like(seeded)
    ).delete(synchronize_session=False)
    for model in (LeadTask, LeadCommunication):
        session.query(model).filter(model.lead_id.like(seeded)).delete(synchronize_session=False)
    session.query(Notification).filter(Notification.user_id.like(seeded)).delete(synchronize_session=False)
    deleted_leads = session.query(Lead).filter(Lead.id.like(seeded)).delete(synchronize_session=False)
    deleted_workflows = session.query(Workflow).filter(Workflow.id.like(seeded)).delete(synchronize_session=False)
    session.query(AdvisorPerformance).filter(
        AdvisorPerformance.advisor_id.like(seeded)
    ).delete(synchronize_session=False)
    session.commit()
    print(f'Cleared {deleted_workflows} workflows, {deleted_leads} leads and their enrollments.')


def main():
    parser = argparse.ArgumentParser(description='Seed demo workflows and leads')
    parser.add_argument('--clear', action='store_true', help='Clear seeded data before (or instead of) seeding')
    parser.add_argument('--clear-only', action='store_true', help='Only clear, do not re-seed')
    args = parser.parse_args()

    app = create_app()
    with app.app_context():
        # Ensure tables exist (for SQLite local dev)
        Base.metadata.create_all(engine)

        session = get_session()
        try:
            if args.clear or args.clear_only:
                clear_seeded_data(session)
                if args.clear_only:
                    return

            print('Seeding demo data...')
            seed_leads(session)
            seed_advisors(session)
            seed_workflows(session)
            session.commit()
            print('\nDone! POST /api/workflows/execute with workflowId=seed-wf-welcome to try it.')

        except Exception as e:
            session.rollback()
            print(f'Error: {e}')
            raise
        finally:
            session.close()


if __name__ == '__main__':
    main()
