"""Per-component change lists between two environment releases.

A component that cannot be compared is reported inline as an Unavailable
change with numberOfChanges == -1; one bad component never fails the diff.
"""
import re
from typing import Dict, List, Optional

from .component_git import COMMIT_RANGE_LIMIT, ComponentsGitInfo, short
from .components import repository_host_kind
from .errors import RepositoryError
from .logging_utils import logger
from .models import (
    CHANGE_GITHUB_PR_MERGE,
    CHANGE_GITLAB_MR_MERGE,
    Component,
    ComponentChange,
    ComponentDiff,
    EnvironmentRelease,
    EnvironmentReleaseDiff,
    PRMerge,
)
from .source_repository import CommitInfo


GITHUB_PR_RE = re.compile(r"Merge pull request #(\d+)")
GITLAB_MR_RE = re.compile(r"See merge request .*!(\d+)")
ISSUE_KEY_RE = re.compile(r"\b([A-Z][A-Z0-9]+-\d+)\b")

NO_REPOSITORY_LINK = "No known repository link"
TARGET_MISSING_SHA = "target environment release has no SHA"
SOURCE_MISSING_SHA = "source environment release has no SHA"
UNSUPPORTED_HOST = "unsupported repository host"


def unavailable_diff(name: str, reason: str) -> ComponentDiff:
    return ComponentDiff(name=name, numberOfChanges=-1, changes=[ComponentChange.make_unavailable(reason)])


def change_summary(commit: CommitInfo) -> str:
    # merge messages are "Merge pull request #N from ...", blank line, then the PR title
    lines = commit.message.split("\n")
    if len(lines) < 3:
        return f"Hash: {commit.sha}, Message: {lines[0]}"
    return lines[2]


def issue_references(message: str) -> Optional[List[str]]:
    found = []
    for key in ISSUE_KEY_RE.findall(message or ""):
        if key not in found:
            found.append(key)
    return found or None


def _pr_merge(commit: CommitInfo, pattern: "re.Pattern") -> PRMerge:
    number = None
    m = pattern.search(commit.message)
    if m:
        number = int(m.group(1))
    return PRMerge(
        sha=commit.sha,
        number=number,
        changeSummary=change_summary(commit),
        issueReferences=issue_references(commit.message),
    )


def change_for_commit(commit: CommitInfo, host_kind: str) -> ComponentChange:
    if host_kind == "github":
        return ComponentChange(changeType=CHANGE_GITHUB_PR_MERGE, githubPRMerge=_pr_merge(commit, GITHUB_PR_RE))
    if host_kind == "gitlab":
        return ComponentChange(changeType=CHANGE_GITLAB_MR_MERGE, gitlabMRMerge=_pr_merge(commit, GITLAB_MR_RE))
    return ComponentChange.make_unavailable(UNSUPPORTED_HOST)


def unavailable_reason(target: Component, source: Component) -> Optional[str]:
    if not target.repoURL:
        return NO_REPOSITORY_LINK
    if not target.sourceSHA:
        return TARGET_MISSING_SHA
    if not source.sourceSHA:
        return SOURCE_MISSING_SHA
    if not repository_host_kind(target.repoURL):
        return UNSUPPORTED_HOST
    return None


class DiffEngine:
    def __init__(self, components_git: ComponentsGitInfo, commit_limit: int = COMMIT_RANGE_LIMIT):
        self.components_git = components_git
        self.commit_limit = commit_limit

    def diff_component(self, target: Component, source: Component) -> Optional[ComponentDiff]:
        """Changes from `source` to `target`; None when the component did not change."""
        reason = unavailable_reason(target, source)
        if reason is not None:
            return unavailable_diff(target.name, reason)
        if target.sourceSHA == source.sourceSHA:
            return None

        log = logger.bind(component=target.name, newer=short(target.sourceSHA), older=short(source.sourceSHA))
        try:
            accessor = self.components_git.accessor_for(target.name)
            commits = accessor.commits_between(target.sourceSHA, source.sourceSHA, limit=self.commit_limit)
        except RepositoryError as e:
            log.warn("component_diff_failed", error=str(e))
            return unavailable_diff(target.name, f"failed to get diff for component {target.name}: {e}")

        if not commits:
            return None

        host_kind = repository_host_kind(target.repoURL)
        changes = [change_for_commit(c, host_kind) for c in commits if c.parent_count >= 2]
        log.debug("component_diff", commits=len(commits), merges=len(changes))
        return ComponentDiff(name=target.name, numberOfChanges=len(changes), changes=changes)

    def diff_components(self, target: EnvironmentRelease, source: EnvironmentRelease) -> Dict[str, ComponentDiff]:
        diffs: Dict[str, ComponentDiff] = {}
        for name in sorted(target.components):
            other = source.components.get(name)
            if other is None:
                continue
            component_diff = self.diff_component(target.components[name], other)
            if component_diff is not None:
                diffs[name] = component_diff
        return diffs

    def diff(self, target: EnvironmentRelease, source: EnvironmentRelease) -> EnvironmentReleaseDiff:
        return EnvironmentReleaseDiff(
            name=target.name,
            otherEnvironmentReleaseName=source.name,
            differentComponents=self.diff_components(target, source),
        )
