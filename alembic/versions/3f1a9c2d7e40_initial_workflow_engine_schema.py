"""Initial workflow engine schema: workflows, leads, enrollments, step executions, CRM stores

Revision ID: 3f1a9c2d7e40
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1a9c2d7e40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

NOW = sa.text('(CURRENT_TIMESTAMP)')


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('workflows',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('trigger_config', sa.JSON(), nullable=True),
        sa.Column('enrollment_settings', sa.JSON(), nullable=True),
        sa.Column('execution_stats', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_workflows_user_id', 'workflows', ['user_id'])

    op.create_table('leads',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('first_name', sa.Text(), nullable=True),
        sa.Column('last_name', sa.Text(), nullable=True),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('phone', sa.Text(), nullable=True),
        sa.Column('status', sa.Text(), nullable=True),
        sa.Column('source', sa.Text(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=True),
        sa.Column('lead_score', sa.Integer(), nullable=True),
        sa.Column('priority', sa.Text(), nullable=True),
        sa.Column('program_interest', sa.Text(), nullable=True),
        sa.Column('city', sa.Text(), nullable=True),
        sa.Column('country', sa.Text(), nullable=True),
        sa.Column('assigned_to', sa.Text(), nullable=True),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_leads_user_id', 'leads', ['user_id'])

    op.create_table('workflow_enrollments',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('workflow_id', sa.Text(), nullable=False),
        sa.Column('lead_id', sa.Text(), nullable=True),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('current_step_index', sa.Integer(), nullable=False),
        sa.Column('status', sa.Text(), nullable=False),
        sa.Column('step_history', sa.JSON(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('next_step_scheduled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('exit_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.ForeignKeyConstraint(['workflow_id'], ['workflows.id']),
        sa.ForeignKeyConstraint(['lead_id'], ['leads.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_enrollment_workflow_lead', 'workflow_enrollments', ['workflow_id', 'lead_id'])
    op.create_index('ix_enrollment_status_scheduled', 'workflow_enrollments', ['status', 'next_step_scheduled_at'])

    op.create_table('workflow_step_executions',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('enrollment_id', sa.Text(), nullable=False),
        sa.Column('step_index', sa.Integer(), nullable=False),
        sa.Column('step_type', sa.Text(), nullable=False),
        sa.Column('step_config', sa.JSON(), nullable=True),
        sa.Column('status', sa.Text(), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('result', sa.JSON(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['enrollment_id'], ['workflow_enrollments.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_workflow_step_executions_enrollment_id', 'workflow_step_executions', ['enrollment_id'])

    op.create_table('lead_tasks',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('lead_id', sa.Text(), nullable=False),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('task_type', sa.Text(), nullable=True),
        sa.Column('priority', sa.Text(), nullable=True),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('assigned_to', sa.Text(), nullable=True),
        sa.Column('status', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.ForeignKeyConstraint(['lead_id'], ['leads.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_lead_tasks_lead_id', 'lead_tasks', ['lead_id'])

    op.create_table('notifications',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('type', sa.Text(), nullable=False),
        sa.Column('title', sa.Text(), nullable=True),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])

    op.create_table('lead_communications',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('lead_id', sa.Text(), nullable=False),
        sa.Column('user_id', sa.Text(), nullable=True),
        sa.Column('type', sa.Text(), nullable=False),
        sa.Column('direction', sa.Text(), nullable=False),
        sa.Column('subject', sa.Text(), nullable=True),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('status', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.ForeignKeyConstraint(['lead_id'], ['leads.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_lead_communications_lead_id', 'lead_communications', ['lead_id'])

    op.create_table('advisor_performance',
        sa.Column('advisor_id', sa.Text(), nullable=False),
        sa.Column('routing_enabled', sa.Boolean(), nullable=True),
        sa.Column('current_weekly_assignments', sa.Integer(), nullable=True),
        sa.Column('capacity_per_week', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW, nullable=True),
        sa.PrimaryKeyConstraint('advisor_id'),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('advisor_performance')
    op.drop_index('ix_lead_communications_lead_id', table_name='lead_communications')
    op.drop_table('lead_communications')
    op.drop_index('ix_notifications_user_id', table_name='notifications')
    op.drop_table('notifications')
    op.drop_index('ix_lead_tasks_lead_id', table_name='lead_tasks')
    op.drop_table('lead_tasks')
    op.drop_index('ix_workflow_step_executions_enrollment_id', table_name='workflow_step_executions')
    op.drop_table('workflow_step_executions')
    op.drop_index('ix_enrollment_status_scheduled', table_name='workflow_enrollments')
    op.drop_index('ix_enrollment_workflow_lead', table_name='workflow_enrollments')
    op.drop_table('workflow_enrollments')
    op.drop_index('ix_leads_user_id', table_name='leads')
    op.drop_table('leads')
    op.drop_index('ix_workflows_user_id', table_name='workflows')
    op.drop_table('workflows')
