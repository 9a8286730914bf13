"""Git operations for collecting the user's commits in a time range."""

import json
import os
import socket
import subprocess
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal, Optional

from .config import (
    BUCKET_GIT_COMMIT,
    GIT_COMMAND_TIMEOUT,
    GIT_COMMIT_EVENT_DURATION,
    GIT_MAX_COMMITS_PER_REPO,
    get_git_diff_context,
    get_git_max_diff_chars,
    get_git_max_file_chars,
    get_git_max_snapshot_files,
    get_git_scan_root,
)
from .events.models import RawEvent
from .logging_config import get_logger
from .types import AuthorFilter

logger = get_logger(__name__, namespace='git')

# Field separator for --pretty output (ASCII unit separator)
FIELD_SEP = '\x1f'

TRUNCATED_MARKER = '\n[truncated]'

# Synthetic bucket key for commit-derived events
GIT_BUCKET_KEY = -1000


@dataclass(frozen=True)
class GitChange:
    """One changed path of a commit (renames carry both paths)."""
    status: Literal['M', 'A', 'D', 'R']
    path: Optional[str] = None
    old_path: Optional[str] = None
    new_path: Optional[str] = None

    @property
    def key(self) -> str:
        """Path identifying the file after this change."""
        return self.new_path if self.status == 'R' else self.path


@dataclass
class GitCommitRecord:
    """Git commit with its diff and changed files."""
    hash: str
    subject: str
    timestamp: int  # seconds since epoch
    repo_path: str
    repo_name: str
    diff: str = ''
    changes: list[GitChange] = field(default_factory=list)

    @property
    def authored_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc)


@dataclass
class FileSnapshot:
    """Earliest pre-image and latest post-image of a file touched in a range."""
    repo_name: str
    repo_path: str
    path: str
    before: str
    after: str


def run_git(cwd: str, *args, timeout: float = GIT_COMMAND_TIMEOUT, strip: bool = True) -> tuple[str, bool]:
    """Run a git command and return (output, success).

    Args:
        cwd: Working directory for the git command
        *args: Git command arguments
        timeout: Seconds before the command is abandoned
        strip: Strip surrounding whitespace from stdout (off for file contents)

    Returns:
        Tuple of (stdout output, success boolean)
    """
    try:
        result = subprocess.run(
            ['git', *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            errors='replace',
            timeout=timeout
        )
        output = result.stdout.strip() if strip else result.stdout
        return output, result.returncode == 0
    except (subprocess.TimeoutExpired, FileNotFoundError, Exception) as e:
        return str(e), False


def truncate_text(text: str, max_chars: int) -> str:
    """Cut text at max_chars and mark it (0 disables the cap)."""
    if max_chars > 0 and len(text) > max_chars:
        return text[:max_chars] + TRUNCATED_MARKER
    return text


def is_git_repo(path: Path) -> bool:
    return (path / '.git').is_dir()


def list_repos_at_depth2(root: Path) -> list[Path]:
    """List git repositories laid out as <root>/<org>/<repo>.

    Raises:
        OSError: If the root itself cannot be listed
    """
    repos = []
    for org in sorted(Path(root).iterdir()):
        if not org.is_dir():
            continue
        try:
            children = sorted(org.iterdir())
        except OSError:
            continue
        for repo in children:
            if repo.is_dir() and is_git_repo(repo):
                repos.append(repo)
    return repos


def resolve_author_filter(env: Optional[dict] = None) -> AuthorFilter:
    """Resolve which commits count as the user's.

    Explicit configuration wins (GIT_AUTHOR_REGEX, then GIT_AUTHOR_EMAIL,
    then GIT_AUTHOR_NAME); otherwise the global git identity is used.
    """
    env = env if env is not None else os.environ

    for key, env_name in (('regex', 'GIT_AUTHOR_REGEX'),
                          ('email', 'GIT_AUTHOR_EMAIL'),
                          ('name', 'GIT_AUTHOR_NAME')):
        value = (env.get(env_name) or '').strip()
        if value:
            return {key: value}

    email, ok = run_git('.', 'config', '--global', 'user.email')
    if ok and email:
        return {'email': email}
    name, ok = run_git('.', 'config', '--global', 'user.name')
    if ok and name:
        return {'name': name}
    return {}


def build_author_arg(author: AuthorFilter) -> Optional[str]:
    """Build the --author argument for git log (slashes escaped for literals)."""
    if author.get('regex'):
        return f"--author={author['regex']}"
    if author.get('email'):
        return f"--author={author['email'].replace('/', chr(92) + '/')}"
    if author.get('name'):
        return f"--author={author['name'].replace('/', chr(92) + '/')}"
    return None


def parse_name_status(output: str) -> list[GitChange]:
    """Parse `git show --name-status -M` output into changes.

    Only modify/add/delete/rename entries are kept.
    """
    changes = []
    for line in output.split('\n'):
        if not line:
            continue
        parts = line.split('\t')
        status = parts[0]
        if status.startswith('R'):
            if len(parts) >= 3:
                changes.append(GitChange(status='R', old_path=parts[1], new_path=parts[2]))
            continue
        if status in ('M', 'A', 'D') and len(parts) >= 2 and parts[1]:
            changes.append(GitChange(status=status, path=parts[1]))
    return changes


def get_commit_diff(repo_path: str, sha: str) -> str:
    """Get a commit's patch, truncated to GIT_MAX_DIFF_CHARS (empty on failure)."""
    context = get_git_diff_context()
    output, success = run_git(
        repo_path, 'show', '--no-color', '--format=', f'-U{context}', sha,
        strip=False
    )
    if not success:
        logger.warning(f"Failed to get diff for {Path(repo_path).name}@{sha}: {output.strip()}")
        return ''
    return truncate_text(output, get_git_max_diff_chars())


def get_commit_changes(repo_path: str, sha: str) -> list[GitChange]:
    """Get a commit's changed files with rename detection (empty on failure)."""
    output, success = run_git(
        repo_path, 'show', '--name-status', '--pretty=', '-M',
        '--diff-filter=ACMDRTUXB', sha
    )
    if not success:
        logger.warning(f"Failed to get changed files for {Path(repo_path).name}@{sha}: {output}")
        return []
    return parse_name_status(output)


def get_commits_from_repo(
    repo_path: str,
    since: datetime,
    until: datetime,
    author: AuthorFilter,
    limit: int = GIT_MAX_COMMITS_PER_REPO,
) -> list[GitCommitRecord]:
    """Get commits in one repository within [since, until].

    Args:
        repo_path: Repository working directory
        since: Lower bound passed to git log --since
        until: Upper bound passed to git log --until
        author: Author filter
        limit: Maximum number of commits to read

    Returns:
        List of GitCommitRecord objects (empty when git log fails)
    """
    args = ['log', '--all', f'--since={since.isoformat()}', f'--until={until.isoformat()}']
    author_arg = build_author_arg(author)
    if author_arg:
        args.append(author_arg)
    args += ['--no-show-signature', f'--pretty=%H{FIELD_SEP}%at{FIELD_SEP}%s', '-n', str(limit)]

    output, success = run_git(repo_path, *args)
    if not success:
        logger.warning(f"Failed to read log for {repo_path}: {output}")
        return []

    repo_name = Path(repo_path).name or repo_path
    commits = []
    for line in output.split('\n'):
        if not line or FIELD_SEP not in line:
            continue
        parts = line.split(FIELD_SEP)
        sha = parts[0]
        try:
            timestamp = int(parts[1])
        except (IndexError, ValueError):
            continue
        subject = parts[2] if len(parts) > 2 else ''

        commits.append(GitCommitRecord(
            hash=sha,
            subject=subject,
            timestamp=timestamp,
            repo_path=repo_path,
            repo_name=repo_name,
            diff=get_commit_diff(repo_path, sha),
            changes=get_commit_changes(repo_path, sha),
        ))

    return commits


def collect_commits_in_range(start: datetime, end: datetime) -> list[GitCommitRecord]:
    """Collect the user's commits across all repositories under GIT_SCAN_ROOT.

    Commits are kept when start <= author time < end and returned oldest
    first.
    """
    root = get_git_scan_root()
    author = resolve_author_filter()
    if not author:
        logger.warning(
            "No author filter found. Set GIT_AUTHOR_EMAIL, GIT_AUTHOR_NAME or "
            "GIT_AUTHOR_REGEX to restrict commits."
        )

    try:
        repos = list_repos_at_depth2(root)
    except OSError as e:
        logger.warning(f"Failed to scan repos under {root}: {e}")
        return []

    start_ts = start.timestamp()
    end_ts = end.timestamp()

    commits = []
    for repo in repos:
        for commit in get_commits_from_repo(str(repo), start, end, author):
            if start_ts <= commit.timestamp < end_ts:
                commits.append(commit)

    commits.sort(key=lambda c: c.timestamp)
    return commits


def build_git_commit_events(commits: list[GitCommitRecord]) -> list[RawEvent]:
    """Turn commits into synthetic events for the merged event list.

    Each event carries a one-second placeholder duration and a payload with
    repo, path, subject and diff.
    """
    host = socket.gethostname()
    events = []
    for i, commit in enumerate(sorted(commits, key=lambda c: c.timestamp)):
        events.append(RawEvent(
            id=-(i + 1),
            bucket_id=GIT_BUCKET_KEY,
            timestamp=commit.authored_at,
            duration=GIT_COMMIT_EVENT_DURATION,
            datastr=json.dumps({
                'repo': commit.repo_name,
                'path': commit.repo_path,
                'subject': commit.subject,
                'diff': commit.diff,
            }, ensure_ascii=False),
            bucket_type=BUCKET_GIT_COMMIT,
            bucket_name='Git Commits',
            hostname=host,
        ))
    return events


def build_file_snapshots_from_commits(commits: list[GitCommitRecord]) -> list[FileSnapshot]:
    """Build before/after contents for files touched by the commits.

    For every file, 'before' is the content at the parent of the earliest
    commit touching it (old path for renames) and 'after' is the content at
    the latest commit. At most GIT_MAX_SNAPSHOT_FILES files are returned and
    each side is capped at GIT_MAX_FILE_CHARS.
    """
    max_files = get_git_max_snapshot_files()
    max_chars = get_git_max_file_chars()

    by_repo: dict[str, list[GitCommitRecord]] = {}
    repo_names: dict[str, str] = {}
    for commit in commits:
        by_repo.setdefault(commit.repo_path, []).append(commit)
        repo_names.setdefault(commit.repo_path, commit.repo_name)

    snapshots: list[FileSnapshot] = []
    for repo_path, repo_commits in by_repo.items():
        # path -> [(earliest sha, change), (latest sha, change)]
        bounds: dict[str, list[tuple[str, GitChange]]] = {}
        for commit in sorted(repo_commits, key=lambda c: c.timestamp):
            for change in commit.changes:
                entry = bounds.setdefault(change.key, [(commit.hash, change), None])
                entry[1] = (commit.hash, change)

        for key, (earliest, latest) in bounds.items():
            if len(snapshots) >= max_files:
                break
            earliest_sha, earliest_change = earliest
            latest_sha, latest_change = latest
            before_path = earliest_change.old_path if earliest_change.status == 'R' else key
            after_path = latest_change.new_path if latest_change.status == 'R' else key

            before, ok = run_git(repo_path, 'show', f'{earliest_sha}^:{before_path}', strip=False)
            if not ok:
                before = ''
            after, ok = run_git(repo_path, 'show', f'{latest_sha}:{after_path}', strip=False)
            if not ok:
                after = ''

            snapshots.append(FileSnapshot(
                repo_name=repo_names[repo_path],
                repo_path=repo_path,
                path=key,
                before=truncate_text(before, max_chars),
                after=truncate_text(after, max_chars),
            ))

    return snapshots
