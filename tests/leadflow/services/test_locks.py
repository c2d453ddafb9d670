"""Tests for leadflow.services.locks — workflow and scheduler run locks."""
from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError, LockError

from leadflow.exceptions import WorkflowBusyError, SchedulerBusyError
from leadflow.services.locks import workflow_lock, scheduler_lock, SCHEDULER_LOCK_KEY


@pytest.fixture
def redis():
    client = MagicMock()
    client.lock.return_value.acquire.return_value = True
    return client


class TestWorkflowLock:

    def test_acquires_and_releases(self, redis):
        with workflow_lock('wf-1', redis_client=redis, timeout=30, wait=2):
            redis.lock.return_value.release.assert_not_called()
        redis.lock.assert_called_once_with('workflow-run:wf-1', timeout=30, blocking_timeout=2)
        redis.lock.return_value.release.assert_called_once()

    def test_busy(self, redis):
        redis.lock.return_value.acquire.return_value = False
        body = MagicMock()
        with pytest.raises(WorkflowBusyError, match='wf-1'):
            with workflow_lock('wf-1', redis_client=redis):
                body()
        body.assert_not_called()

    def test_released_on_error(self, redis):
        with pytest.raises(ValueError):
            with workflow_lock('wf-1', redis_client=redis):
                raise ValueError('run failed')
        redis.lock.return_value.release.assert_called_once()

    def test_redis_down_runs_unlocked(self, redis):
        redis.lock.return_value.acquire.side_effect = RedisConnectionError('down')
        ran = []
        with workflow_lock('wf-1', redis_client=redis):
            ran.append(True)
        assert ran == [True]
        redis.lock.return_value.release.assert_not_called()

    def test_expired_lock_release_is_ignored(self, redis):
        redis.lock.return_value.release.side_effect = LockError('not owned')
        with workflow_lock('wf-1', redis_client=redis):
            pass

    def test_defaults_to_shared_client(self, mock_redis):
        with workflow_lock('wf-2'):
            pass
        assert mock_redis.lock.call_args.args[0] == 'workflow-run:wf-2'


class TestSchedulerLock:

    def test_uses_tick_key(self, redis):
        with scheduler_lock(redis_client=redis, timeout=60, wait=0):
            pass
        redis.lock.assert_called_once_with(SCHEDULER_LOCK_KEY, timeout=60, blocking_timeout=0)
        redis.lock.return_value.release.assert_called_once()

    def test_overlapping_tick_is_refused(self, redis):
        redis.lock.return_value.acquire.return_value = False
        body = MagicMock()
        with pytest.raises(SchedulerBusyError):
            with scheduler_lock(redis_client=redis):
                body()
        body.assert_not_called()

    def test_redis_down_runs_unlocked(self, redis):
        redis.lock.return_value.acquire.side_effect = RedisConnectionError('down')
        ran = []
        with scheduler_lock(redis_client=redis):
            ran.append(True)
        assert ran == [True]
