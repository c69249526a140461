import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

import requests

from .ci_correlator import JobRun
from .errors import CIServiceError
from .logging_utils import logger
from .models import JobOverallResult
from .settings import DEFAULT_CI_BASE_URL, DEFAULT_CI_TIMEOUT_SECONDS


@dataclass
class CIClientConfig:
    base_url: str = DEFAULT_CI_BASE_URL
    timeout: float = DEFAULT_CI_TIMEOUT_SECONDS
    verify_tls: bool = True
    max_retries: int = 3
    initial_backoff: float = 1.0
    max_backoff: float = 30.0


def _get_with_retry(
    url: str,
    cfg: CIClientConfig,
    *,
    sleep: Callable[[float], None] = time.sleep,
    **kwargs,
) -> requests.Response:
    """GET with exponential backoff on 429, 5xx and network errors."""
    for attempt in range(cfg.max_retries):
        last_attempt = attempt == cfg.max_retries - 1
        wait_time = min(cfg.initial_backoff * (2 ** attempt), cfg.max_backoff)
        try:
            response = requests.get(url, timeout=cfg.timeout, verify=cfg.verify_tls, **kwargs)
        except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
            if last_attempt:
                raise
            logger.warn("network_error_retry", error=str(e), wait_seconds=wait_time, attempt=attempt + 1, url=url[:100])
            sleep(wait_time)
            continue

        if response.status_code == 429 or 500 <= response.status_code < 600:
            if last_attempt:
                response.raise_for_status()
            retry_after = response.headers.get("Retry-After")
            if response.status_code == 429 and retry_after:
                try:
                    wait_time = float(retry_after)
                except ValueError:
                    pass
            logger.warn("server_error_retry", status=response.status_code, wait_seconds=wait_time, attempt=attempt + 1, url=url[:100])
            sleep(wait_time)
            continue
        return response

    raise RuntimeError("CI request failed after retries")


def parse_job_runs(body: Dict[str, Any], ci_release: str = "") -> List[JobRun]:
    rows = body.get("rows")
    if rows is None:
        rows = []
    if not isinstance(rows, list):
        raise CIServiceError("CI response 'rows' is not a list")

    page_size = body.get("page_size")
    total_rows = body.get("total_rows")
    if page_size is not None and total_rows is not None and page_size != total_rows:
        # TODO: follow pagination once the service returns more than one page for a release.
        logger.info("more_than_one_page", release=ci_release, page_size=page_size, total_rows=total_rows)

    runs: List[JobRun] = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        try:
            timestamp_ms = int(row.get("timestamp") or 0)
        except (TypeError, ValueError):
            logger.warn("ci_row_invalid_timestamp", release=ci_release, job=row.get("job"))
            continue
        runs.append(
            JobRun(
                job=str(row.get("job") or ""),
                timestamp_ms=timestamp_ms,
                overall_result=JobOverallResult.parse(row.get("overall_result")),
                url=str(row.get("url") or ""),
            )
        )
    return runs


class CIClient:
    def __init__(self, cfg: CIClientConfig = None, sleep: Callable[[float], None] = time.sleep):
        self.cfg = cfg or CIClientConfig()
        self._sleep = sleep

    def list_job_runs(self, ci_release: str) -> List[JobRun]:
        url = f"{self.cfg.base_url.rstrip('/')}/api/jobs/runs"
        params = {"release": ci_release, "period": "default"}
        try:
            r = _get_with_retry(url, self.cfg, sleep=self._sleep, params=params)
        except requests.RequestException as e:
            raise CIServiceError(f"CI request for {ci_release} failed: {e.__class__.__name__}: {e}") from e

        if r.status_code != 200:
            raise CIServiceError(f"CI request for {ci_release} failed: HTTP {r.status_code}")
        try:
            body = r.json()
        except ValueError as e:
            raise CIServiceError(f"CI response for {ci_release} is not JSON: {e}") from e
        if not isinstance(body, dict):
            raise CIServiceError(f"CI response for {ci_release} is not an object")

        runs = parse_job_runs(body, ci_release)
        logger.info("ci_job_runs_loaded", release=ci_release, count=len(runs))
        return runs
