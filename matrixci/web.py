import hashlib
import hmac
import json
import logging
from pathlib import Path
from tempfile import TemporaryDirectory
from time import time

import httpx
from datetime import datetime
from joserfc import jwt
from starlette.applications import Starlette
from starlette.background import BackgroundTask
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route

from matrixci.config import config
from matrixci.exceptions import MatrixCIError
from matrixci.runner import PipelineRun, Runner
from matrixci.runner.utils import checkout_repo
from matrixci.schemas import PullRequestInfo, RunOutcome

logger = logging.getLogger(__name__)

CHECK_NAME = 'matrixci'
PULL_REQUEST_ACTIONS = ('opened', 'synchronize', 'reopened', 'labeled', 'unlabeled')
# GitHub rejects check run output text longer than this
MAX_OUTPUT_TEXT = 65535
CONCLUSIONS = {
    RunOutcome.success: 'success',
    RunOutcome.failure: 'failure',
    RunOutcome.skipped_early: 'skipped',
}


def get_token():
    now = int(datetime.now().timestamp()) - 60
    data = {
        'iat': now,
        'exp': now + 60 * 10,
        'iss': config.gh_app_id,
    }
    return jwt.encode({'alg': 'RS256'}, data, config.gh_key)


async def get_installation_client(payload: dict) -> tuple[httpx.AsyncClient, str]:
    async with httpx.AsyncClient(
        base_url=config.github_api_base,
        headers={'Authorization': f'Bearer {get_token()}'},
    ) as app_client:
        installation_id = payload['installation']['id']
        installation_token_resp = await app_client.post(
            f'/app/installations/{installation_id}/access_tokens'
        )
        installation_token_resp.raise_for_status()
        installation_token = installation_token_resp.json()['token']
    installation_client = httpx.AsyncClient(
        base_url=config.github_api_base,
        headers={'Authorization': f'Bearer {installation_token}'},
    )
    return installation_client, installation_token


def pull_request_info(payload: dict, installation_token: str) -> PullRequestInfo:
    clone_url = httpx.URL(payload['repository']['clone_url']).copy_with(
        username='x-access-token', password=installation_token
    )
    return PullRequestInfo(
        repo_name=payload['repository']['full_name'],
        clone_url=str(clone_url),
        head_sha=payload['pull_request']['head']['sha'],
        pull_id=str(payload['pull_request']['number']),
    )


def check_run_output(run: PipelineRun) -> dict:
    outcome = run.outcome
    if outcome == RunOutcome.skipped_early:
        title = f'Skipped by {run.skip_label!r} label'
    elif outcome == RunOutcome.failure:
        failed = ', '.join(x.name for x in run.failed)
        title = f'Failed: {failed}'
    else:
        title = 'All stages passed'
    return {
        'title': title,
        'summary': f'Outcome: {outcome.value}',
        'text': run.report()[:MAX_OUTPUT_TEXT],
    }


async def create_check_run(client: httpx.AsyncClient, info: PullRequestInfo) -> int:
    resp = await client.post(
        f'/repos/{info.repo_name}/check-runs',
        json={'name': CHECK_NAME, 'head_sha': info.head_sha, 'status': 'in_progress'},
    )
    resp.raise_for_status()
    return resp.json()['id']


async def fail_check_run(
    client: httpx.AsyncClient, check_run_url: str, title: str, summary: str
):
    resp = await client.patch(
        check_run_url,
        json={
            'status': 'completed',
            'conclusion': 'failure',
            'output': {'title': title, 'summary': summary},
        },
    )
    resp.raise_for_status()


async def run_pull_request(
    info: PullRequestInfo, client: httpx.AsyncClient, installation_token: str
):
    s = time()
    check_run_id = await create_check_run(client, info)
    check_run_url = f'/repos/{info.repo_name}/check-runs/{check_run_id}'
    config.runs_dir.mkdir(parents=True, exist_ok=True)
    try:
        with TemporaryDirectory(dir=config.runs_dir) as path:
            await checkout_repo(info, config.repos_dir, path)
            runner = Runner.from_config(
                Path(path),
                config,
                repo=info.repo_name,
                pull_id=info.pull_id,
                token=installation_token,
            )
            run = await runner.run()
    except MatrixCIError as e:
        logger.error(f'{info.repo_name}#{info.pull_id} could not be run: {e}')
        await fail_check_run(client, check_run_url, 'Pipeline could not be run', str(e))
        return
    except Exception:
        await fail_check_run(
            client, check_run_url, 'Internal matrixci error', 'See the server logs'
        )
        raise

    resp = await client.patch(
        check_run_url,
        json={
            'status': 'completed',
            'conclusion': CONCLUSIONS[run.outcome],
            'output': check_run_output(run),
        },
    )
    resp.raise_for_status()
    logger.info(
        f'{info.repo_name}#{info.pull_id} finished in {time() - s:.1f}s: '
        f'{run.outcome.value}'
    )


async def handle_pull_request(payload: dict):
    client, installation_token = await get_installation_client(payload)
    async with client:
        await run_pull_request(
            pull_request_info(payload, installation_token), client, installation_token
        )


def verify_signature(body: bytes, signature: str | None) -> bool:
    if config.webhook_secret is None:
        return True
    if not signature:
        return False
    expected = hmac.new(
        config.webhook_secret.get_secret_value().encode(), body, hashlib.sha256
    ).hexdigest()
    return hmac.compare_digest(f'sha256={expected}', signature)


async def webhook(request: Request):
    body = await request.body()
    if not verify_signature(body, request.headers.get('x-hub-signature-256')):
        return Response(None, 401)
    payload = json.loads(body)
    event = request.headers.get('x-github-event')
    if event == 'pull_request' and payload.get('action') in PULL_REQUEST_ACTIONS:
        logger.info(
            f'Queueing {payload["repository"]["full_name"]}'
            f'#{payload["pull_request"]["number"]} ({payload["action"]})'
        )
        return Response(None, 202, background=BackgroundTask(handle_pull_request, payload))
    return Response(None, 204)


app = Starlette(
    debug=config.debug, routes=[Route('/webhook', webhook, methods=['POST'])]
)
