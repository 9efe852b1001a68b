import logging

import httpx
from collections.abc import Awaitable, Callable, Iterable

from matrixci.const import GH_API_BASE, SKIP_LABEL
from matrixci.exceptions import GateFetchError
from matrixci.schemas import SkipDecision

logger = logging.getLogger(__name__)

FetchLabels = Callable[[str, str], Awaitable[Iterable[str]]]


async def evaluate(
    has_credentials: bool,
    repo_id: str | None,
    pull_id: str | None,
    fetch_labels: FetchLabels,
    *,
    skip_label: str = SKIP_LABEL,
) -> SkipDecision:
    """Decide whether the pull request asked for the pipeline to be skipped.

    When the gate can't be checked the pipeline proceeds normally. Errors
    from ``fetch_labels`` are propagated as ``GateFetchError``.
    """
    missing = [
        name
        for name, present in (
            ('credentials', has_credentials),
            ('repository', repo_id),
            ('pull request id', pull_id),
        )
        if not present
    ]
    if missing:
        logger.warning(
            f'Cannot check for the {skip_label!r} label, missing {", ".join(missing)}'
        )
        return SkipDecision(checked=False, skip=False)

    try:
        labels = set(await fetch_labels(repo_id, pull_id))
    except GateFetchError:
        raise
    except Exception as e:
        raise GateFetchError(f'Failed to fetch labels of {repo_id}#{pull_id}: {e}') from e

    skip = skip_label in labels
    if skip:
        logger.info(f'{repo_id}#{pull_id} is labeled {skip_label!r}, skipping tests')
    return SkipDecision(checked=True, skip=skip)


class GitHubLabelSource:
    client: httpx.AsyncClient

    def __init__(self, token: str, base_url: str = GH_API_BASE, **client_kwargs):
        self.client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                'Authorization': f'Bearer {token}',
                'Accept': 'application/vnd.github+json',
            },
            **client_kwargs,
        )

    async def __aenter__(self) -> 'GitHubLabelSource':
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def aclose(self):
        await self.client.aclose()

    async def __call__(self, repo_id: str, pull_id: str) -> set[str]:
        return await self.fetch_labels(repo_id, pull_id)

    async def fetch_labels(self, repo_id: str, pull_id: str) -> set[str]:
        labels = set()
        url = f'/repos/{repo_id}/issues/{pull_id}/labels'
        params = {'per_page': 100}
        while url:
            try:
                resp = await self.client.get(url, params=params)
                resp.raise_for_status()
                payload = resp.json()
            except (httpx.HTTPError, ValueError) as e:
                raise GateFetchError(
                    f'Failed to fetch labels of {repo_id}#{pull_id}: {e}'
                ) from e
            if not isinstance(payload, list):
                raise GateFetchError(f'Unexpected labels payload: {payload!r}')
            for label in payload:
                if not isinstance(label, dict) or not isinstance(label.get('name'), str):
                    raise GateFetchError(f'Unexpected label record: {label!r}')
                labels.add(label['name'])
            url = resp.links.get('next', {}).get('url')
            # the next link already carries the query string
            params = None
        logger.debug(f'Labels of {repo_id}#{pull_id}: {sorted(labels)}')
        return labels
