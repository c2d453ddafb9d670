"""Tests for leadflow.workflow.flow — wait, condition, end-workflow, unknown steps."""
from datetime import timedelta

import pytest

from leadflow.workflow.definition import (
    WaitConfig, ConditionConfig, ConditionGroup, Condition, EndWorkflowConfig, UnsupportedConfig,
)
from leadflow.workflow.flow import (
    WaitStep, ConditionStep, EndWorkflowStep, UnsupportedStep, evaluate_condition,
)


class TestWaitStep:
    """wait: resume time per unit."""

    @pytest.mark.parametrize('value, unit, delta', [
        (3, 'days', timedelta(days=3)),
        (2, 'hours', timedelta(hours=2)),
        (30, 'minutes', timedelta(minutes=30)),
        (1, 'weeks', timedelta(weeks=1)),
    ])
    def test_resume_at(self, step_context, now, value, unit, delta):
        result = WaitStep().run(WaitConfig(value=value, unit=unit), step_context())
        assert result.success
        assert result.resume_at == now + delta
        assert result.result == {'scheduled_for': (now + delta).isoformat()}

    def test_schedules_in_test_mode_too(self, step_context, now):
        result = WaitStep().run(WaitConfig(), step_context(test_mode=True))
        assert result.resume_at == now + timedelta(days=1)


class TestEvaluateCondition:
    """Operators against lead fields."""

    LEAD = {'status': 'new', 'lead_score': 42, 'tags': ['vip', 'mba'], 'city': 'London', 'phone': None}

    @pytest.mark.parametrize('field, operator, value, expected', [
        ('status', 'equals', 'new', True),
        ('status', 'equals', 'NEW', True),
        ('status', 'not_equals', 'lost', True),
        ('lead_score', 'equals', '42', True),
        ('city', 'contains', 'lond', True),
        ('tags', 'contains', 'vip', True),
        ('tags', 'contains', 'phd', False),
        ('lead_score', 'greater_than', 40, True),
        ('lead_score', 'greater_than', 42, False),
        ('lead_score', 'less_than', '50', True),
        ('lead_score', 'less_than', 'abc', False),
        ('status', 'in', 'new, contacted', True),
        ('status', 'not_in', ['lost', 'won'], True),
        ('tags', 'in', ['mba'], True),
        ('phone', 'is_empty', None, True),
        ('city', 'is_not_empty', None, True),
        ('missing_field', 'is_empty', None, True),
    ])
    def test_operator(self, field, operator, value, expected):
        assert evaluate_condition(Condition(field, operator, value), self.LEAD) is expected


class TestConditionStep:
    """condition: groups, AND/OR and the exit branch."""

    def test_and_requires_all(self, step_context):
        config = ConditionConfig(groups=[ConditionGroup([
            Condition('status', 'equals', 'new'),
            Condition('lead_score', 'greater_than', 100),
        ])])
        result = ConditionStep().run(config, step_context())
        assert result.result == {'matched': False, 'branch': 'false'}
        assert result.exit_reason is None

    def test_or_group_requires_any(self, step_context):
        config = ConditionConfig(groups=[ConditionGroup([
            Condition('status', 'equals', 'new'),
            Condition('lead_score', 'greater_than', 100),
        ], operator='OR')])
        assert ConditionStep().run(config, step_context()).result['matched'] is True

    def test_groups_joined_by_evaluation_mode(self, step_context):
        matching = ConditionGroup([Condition('city', 'equals', 'London')])
        failing = ConditionGroup([Condition('status', 'equals', 'won')])

        both = ConditionConfig(groups=[matching, failing])
        either = ConditionConfig(groups=[matching, failing], evaluation_mode='OR')

        assert ConditionStep().run(both, step_context()).result['matched'] is False
        assert ConditionStep().run(either, step_context()).result['matched'] is True

    def test_builder_or_group_matches_london_lead(self, step_context):
        config = ConditionConfig.parse({
            'conditionGroups': [{'operator': 'OR', 'conditions': [
                {'field': 'city', 'operator': 'equals', 'value': 'London'},
                {'field': 'city', 'operator': 'equals', 'value': 'Paris'},
            ]}],
            'evaluationMode': 'AND',
        }, 0)
        assert ConditionStep().run(config, step_context()).result['matched'] is True
        assert ConditionStep().run(config, step_context(city='Berlin')).result['matched'] is False

    def test_no_conditions_matches(self, step_context):
        assert ConditionStep().run(ConditionConfig(), step_context()).result['matched'] is True

    def test_exit_when_not_matched(self, step_context):
        config = ConditionConfig(groups=[ConditionGroup([Condition('status', 'equals', 'won')])], on_false='exit')
        result = ConditionStep().run(config, step_context())
        assert result.success
        assert result.exit_reason == 'condition_not_met'

    def test_no_exit_when_matched(self, step_context):
        config = ConditionConfig(groups=[ConditionGroup([Condition('status', 'equals', 'new')])], on_false='exit')
        assert ConditionStep().run(config, step_context()).exit_reason is None


class TestEndWorkflowStep:

    def test_default_reason(self, step_context):
        result = EndWorkflowStep().run(EndWorkflowConfig(), step_context())
        assert result.result == {'status': 'completed'}
        assert result.exit_reason == 'completed'

    def test_custom_reason(self, step_context):
        result = EndWorkflowStep().run(EndWorkflowConfig(reason='unsubscribed'), step_context())
        assert result.exit_reason == 'unsubscribed'


class TestUnsupportedStep:

    def test_skips_with_reason(self, step_context):
        result = UnsupportedStep('send-postcard').run(UnsupportedConfig(), step_context())
        assert result.success
        assert result.result == {'skipped': True, 'reason': 'Step type send-postcard not implemented'}
