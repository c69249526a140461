"""Serialisable data model shared by the engine and the JSON API.

Field names are the wire names. Optional fields are left as None when unset
and dropped on output (`to_api()`), so a document parsed back from its own
JSON compares equal to the original.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


API_VERSION = "service-status.hcm.openshift.io/v1"


class APIModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_api(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)

    def to_api_json(self) -> str:
        return self.model_dump_json(exclude_none=True)


class ContainerImage(APIModel):
    """Pull coordinates of one image; hashable so it can key the provenance cache."""

    model_config = ConfigDict(frozen=True)

    registry: str = ""
    repository: str = ""
    digest: str = ""


class ImageProvenance(APIModel):
    model_config = ConfigDict(frozen=True)

    imageCreationTime: Optional[datetime] = None
    sourceSHA: Optional[str] = None


class Component(APIModel):
    """A component as resolved for one environment release."""

    name: str
    imageInfo: Optional[ContainerImage] = None
    imageCreationTime: Optional[datetime] = None
    repoURL: Optional[str] = None
    sourceSHA: Optional[str] = None
    permLinkForSourceSHA: Optional[str] = None
    provenanceError: Optional[str] = None
    latencyThresholdSeconds: Optional[float] = None
    stale: Optional[bool] = None


class JobOverallResult(str, Enum):
    SUCCEEDED = "S"
    RUNNING = "R"
    INFRASTRUCTURE_FAILURE = "N"
    INSTALL_FAILURE = "I"
    UPGRADE_FAILURE = "U"
    TEST_FAILURE = "F"
    FAILURE_BEFORE_SETUP = "n"
    ABORTED = "A"
    UNKNOWN = "f"

    @classmethod
    def parse(cls, code: Optional[str]) -> "JobOverallResult":
        try:
            return cls(code)
        except ValueError:
            return cls.UNKNOWN


class JobRunResult(APIModel):
    jobName: str
    overallResult: JobOverallResult
    url: str = ""


class Environment(APIModel):
    kind: str = "Environment"
    apiVersion: str = API_VERSION
    name: str


class EnvironmentList(APIModel):
    kind: str = "EnvironmentList"
    apiVersion: str = API_VERSION
    items: List[Environment] = Field(default_factory=list)


class Release(APIModel):
    kind: str = "Release"
    apiVersion: str = API_VERSION
    name: str
    sha: str


class ReleaseList(APIModel):
    kind: str = "ReleaseList"
    apiVersion: str = API_VERSION
    items: List[Release] = Field(default_factory=list)


class EnvironmentRelease(APIModel):
    kind: str = "EnvironmentRelease"
    apiVersion: str = API_VERSION
    name: str
    releaseName: str
    sha: str
    environment: str
    components: Dict[str, Component] = Field(default_factory=dict)
    blockingJobRunResults: Dict[str, List[JobRunResult]] = Field(default_factory=dict)
    informingJobRunResults: Dict[str, List[JobRunResult]] = Field(default_factory=dict)

    def image_signature(self) -> Dict[str, Optional[ContainerImage]]:
        """Component name -> image reference; two releases with equal signatures are the same release."""
        return {name: component.imageInfo for name, component in self.components.items()}


class EnvironmentReleaseList(APIModel):
    kind: str = "EnvironmentReleaseList"
    apiVersion: str = API_VERSION
    items: List[EnvironmentRelease] = Field(default_factory=list)


class PRMerge(APIModel):
    sha: str
    number: Optional[int] = None
    changeSummary: str = ""
    issueReferences: Optional[List[str]] = None


CHANGE_GITHUB_PR_MERGE = "GithubPRMerge"
CHANGE_GITLAB_MR_MERGE = "GitlabMRMerge"
CHANGE_UNAVAILABLE = "Unavailable"


class ComponentChange(APIModel):
    changeType: str
    githubPRMerge: Optional[PRMerge] = None
    gitlabMRMerge: Optional[PRMerge] = None
    unavailable: Optional[str] = None

    @classmethod
    def make_unavailable(cls, reason: str) -> "ComponentChange":
        return cls(changeType=CHANGE_UNAVAILABLE, unavailable=reason)

    @property
    def merge(self) -> Optional[PRMerge]:
        return self.githubPRMerge or self.gitlabMRMerge


class ComponentDiff(APIModel):
    name: str
    # -1 means "not computed"; the reason is in the Unavailable change.
    numberOfChanges: int = 0
    changes: List[ComponentChange] = Field(default_factory=list)

    @property
    def available(self) -> bool:
        return self.numberOfChanges >= 0


class EnvironmentReleaseDiff(APIModel):
    kind: str = "EnvironmentReleaseDiff"
    apiVersion: str = API_VERSION
    name: str
    otherEnvironmentReleaseName: str
    differentComponents: Dict[str, ComponentDiff] = Field(default_factory=dict)
