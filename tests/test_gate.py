"""Tests for the skip-ci label gate and the GitHub label source."""

import httpx
import pytest

from conftest import make_fetch_labels
from matrixci.exceptions import GateFetchError
from matrixci.gate import GitHubLabelSource, evaluate
from matrixci.schemas import SkipDecision


class TestEvaluate:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        'has_credentials, repo_id, pull_id',
        [
            (False, 'org/repo', '12'),
            (True, None, '12'),
            (True, 'org/repo', None),
            (True, '', '12'),
            (False, None, None),
        ],
    )
    async def test_missing_inputs_skip_the_check(self, has_credentials, repo_id, pull_id):
        fetch_labels = make_fetch_labels(['skip-ci'])

        decision = await evaluate(has_credentials, repo_id, pull_id, fetch_labels)

        assert decision == SkipDecision(checked=False, skip=False)
        assert fetch_labels.calls == []

    @pytest.mark.asyncio
    async def test_missing_inputs_log_a_warning(self, caplog):
        await evaluate(False, 'org/repo', None, make_fetch_labels([]))

        assert 'missing credentials, pull request id' in caplog.text

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        'labels', [['skip-ci'], ['skip-ci', 'bug'], ['docs', 'skip-ci', 'wip']]
    )
    async def test_skip_label_present(self, labels):
        fetch_labels = make_fetch_labels(labels)

        decision = await evaluate(True, 'org/repo', '12', fetch_labels)

        assert decision == SkipDecision(checked=True, skip=True)
        assert fetch_labels.calls == [('org/repo', '12')]

    @pytest.mark.asyncio
    @pytest.mark.parametrize('labels', [[], ['bug'], ['skip-ci-later', 'Skip-CI']])
    async def test_skip_label_absent(self, labels):
        decision = await evaluate(True, 'org/repo', '12', make_fetch_labels(labels))

        assert decision == SkipDecision(checked=True, skip=False)

    @pytest.mark.asyncio
    async def test_custom_skip_label(self):
        fetch_labels = make_fetch_labels(['no-tests'])

        decision = await evaluate(
            True, 'org/repo', '12', fetch_labels, skip_label='no-tests'
        )

        assert decision.skip

    @pytest.mark.asyncio
    async def test_fetch_error_propagates(self):
        async def fetch_labels(repo_id, pull_id):
            raise ConnectionError('connection reset')

        with pytest.raises(GateFetchError, match='connection reset'):
            await evaluate(True, 'org/repo', '12', fetch_labels)

    @pytest.mark.asyncio
    async def test_gate_fetch_error_is_not_rewrapped(self):
        original = GateFetchError('rate limited')

        async def fetch_labels(repo_id, pull_id):
            raise original

        with pytest.raises(GateFetchError) as excinfo:
            await evaluate(True, 'org/repo', '12', fetch_labels)
        assert excinfo.value is original


def _source(handler) -> GitHubLabelSource:
    return GitHubLabelSource(
        'token', 'https://api.github.test', transport=httpx.MockTransport(handler)
    )


class TestGitHubLabelSource:
    @pytest.mark.asyncio
    async def test_fetches_label_names(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=[{'name': 'bug', 'id': 1}, {'name': 'skip-ci'}])

        async with _source(handler) as source:
            labels = await source('org/repo', '42')

        assert labels == {'bug', 'skip-ci'}
        assert requests[0].url.path == '/repos/org/repo/issues/42/labels'
        assert requests[0].headers['authorization'] == 'Bearer token'

    @pytest.mark.asyncio
    async def test_follows_pagination(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params.get('page') == '2':
                return httpx.Response(200, json=[{'name': 'skip-ci'}])
            return httpx.Response(
                200,
                json=[{'name': 'bug'}],
                headers={
                    'link': '<https://api.github.test/repos/org/repo/issues/42/labels'
                    '?page=2>; rel="next"'
                },
            )

        async with _source(handler) as source:
            labels = await source.fetch_labels('org/repo', '42')

        assert labels == {'bug', 'skip-ci'}

    @pytest.mark.asyncio
    async def test_http_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={'message': 'Bad credentials'})

        async with _source(handler) as source:
            with pytest.raises(GateFetchError, match='org/repo#42'):
                await source('org/repo', '42')

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError('unreachable', request=request)

        async with _source(handler) as source:
            with pytest.raises(GateFetchError, match='unreachable'):
                await source('org/repo', '42')

    @pytest.mark.asyncio
    @pytest.mark.parametrize('payload', [{'labels': []}, [{'id': 1}], ['skip-ci']])
    async def test_malformed_payload(self, payload):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=payload)

        async with _source(handler) as source:
            with pytest.raises(GateFetchError):
                await source('org/repo', '42')

    @pytest.mark.asyncio
    async def test_evaluate_with_source(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[{'name': 'skip-ci'}, {'name': 'bug'}])

        async with _source(handler) as source:
            decision = await evaluate(True, 'org/repo', '42', source)

        assert decision == SkipDecision(checked=True, skip=True)
