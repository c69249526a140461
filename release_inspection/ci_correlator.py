"""Attach CI job runs to the environment release that was live when they started."""
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .logging_utils import logger
from .models import EnvironmentRelease, JobOverallResult, JobRunResult
from .naming import release_time


class JobCategory(str, Enum):
    BLOCKING = "Blocking"
    INFORMING = "Informing"


CATCH_ALL_PATTERN = ".*"


@dataclass(frozen=True)
class CIJobRule:
    variant: str
    patterns: Tuple[str, ...]
    category: JobCategory

    def matches(self, job_name: str) -> bool:
        return any(re.search(p, job_name) for p in self.patterns)

    @property
    def is_catch_all(self) -> bool:
        return CATCH_ALL_PATTERN in self.patterns


DEFAULT_CI_RULES: Tuple[CIJobRule, ...] = (
    CIJobRule("bare-minimum", ("periodic-ci-Azure-ARO-HCP-main-periodic-create-aro-hcp-in-.*",), JobCategory.BLOCKING),
    CIJobRule("e2e-parallel", ("periodic-ci-Azure-ARO-HCP-main-periodic-.*-e2e-parallel",), JobCategory.INFORMING),
    CIJobRule("unknown", (CATCH_ALL_PATTERN,), JobCategory.INFORMING),
)


@dataclass(frozen=True)
class JobRun:
    job: str
    timestamp_ms: int
    overall_result: JobOverallResult
    url: str = ""

    @property
    def started_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp_ms / 1000.0, tz=timezone.utc)

    def to_result(self) -> JobRunResult:
        return JobRunResult(jobName=self.job, overallResult=self.overall_result, url=self.url)


class CICorrelator:
    def __init__(self, rules: Sequence[CIJobRule] = DEFAULT_CI_RULES):
        if not rules or not rules[-1].is_catch_all:
            raise ValueError(f"the last CI job rule must be the {CATCH_ALL_PATTERN!r} catch-all")
        self.rules = tuple(rules)

    def classify(self, job_name: str) -> Optional[CIJobRule]:
        for rule in self.rules:
            if rule.matches(job_name):
                return rule
        return None

    def correlate(
        self,
        releases: Sequence[EnvironmentRelease],
        job_runs: Iterable[JobRun],
    ) -> List[EnvironmentRelease]:
        """Return copies of `releases` (newest first) with job runs bucketed in.

        A release owns the runs started between its own commit time and the
        commit time of the next newer release; the newest release is open-ended.
        """
        annotated = [r.model_copy(deep=True) for r in releases]
        intervals = []
        upper: Optional[datetime] = None
        for release in annotated:
            lower = release_time(release.releaseName)
            intervals.append((release, lower, upper))
            upper = lower

        runs = list(job_runs)
        for run in runs:
            rule = self.classify(run.job)
            if rule is None:
                logger.warn("ci_job_unmatched", job=run.job)
                continue

            started = run.started_at
            for release, lower, upper in intervals:
                if started < lower or (upper is not None and started >= upper):
                    continue
                buckets: Dict[str, List[JobRunResult]] = (
                    release.blockingJobRunResults
                    if rule.category == JobCategory.BLOCKING
                    else release.informingJobRunResults
                )
                buckets.setdefault(rule.variant, []).append(run.to_result())
                break
        return annotated
