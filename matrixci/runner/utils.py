from pathlib import Path

from matrixci.schemas import PullRequestInfo
from matrixci.utils import async_check_output, get_bin


async def checkout_repo(info: PullRequestInfo, repos_dir: Path, at: str | Path):
    git = get_bin('git')
    repo_path = repos_dir / info.repo_name
    if repo_path.is_dir():
        await async_check_output(
            git, 'remote', 'set-url', 'origin', info.clone_url, cwd=repo_path
        )
        await async_check_output(git, 'fetch', cwd=repo_path)
    else:
        repo_path.mkdir(parents=True)
        await async_check_output(
            git,
            'clone',
            '--mirror',
            info.clone_url,
            '.',
            cwd=repo_path,
        )
    await async_check_output(
        git,
        'clone',
        repo_path,
        '.',
        cwd=at,
    )
    # pull request heads aren't branches, so a plain clone of the mirror lacks them
    await async_check_output(
        git,
        'fetch',
        'origin',
        f'refs/pull/{info.pull_id}/head',
        cwd=at,
    )
    await async_check_output(
        git,
        'switch',
        '-d',
        info.head_sha,
        cwd=at,
    )
