"""
Read-only JSON API over environments, environment releases, releases and diffs.
The accessor is taken from `app.state.accessor`, set by `create_app()`.
"""

from fastapi import APIRouter, Request

from .models import (
    Environment,
    EnvironmentList,
    EnvironmentRelease,
    EnvironmentReleaseDiff,
    EnvironmentReleaseList,
    Release,
    ReleaseList,
)

router = APIRouter(prefix="/api/aro-hcp", tags=["aro-hcp"])


def _accessor(request: Request):
    return request.app.state.accessor


@router.get("/environments", response_model=EnvironmentList, response_model_exclude_none=True)
def list_environments(request: Request) -> EnvironmentList:
    return _accessor(request).list_environments()


@router.get("/environments/{name}", response_model=Environment, response_model_exclude_none=True)
def get_environment(name: str, request: Request) -> Environment:
    return _accessor(request).get_environment(name)


@router.get(
    "/environments/{name}/environmentreleases",
    response_model=EnvironmentReleaseList,
    response_model_exclude_none=True,
)
def list_environment_releases_for_environment(name: str, request: Request) -> EnvironmentReleaseList:
    return _accessor(request).list_environment_releases_for_environment(name)


@router.get("/environmentreleases", response_model=EnvironmentReleaseList, response_model_exclude_none=True)
def list_environment_releases(request: Request) -> EnvironmentReleaseList:
    return _accessor(request).list_environment_releases()


@router.get("/environmentreleases/{name}", response_model=EnvironmentRelease, response_model_exclude_none=True)
def get_environment_release(name: str, request: Request) -> EnvironmentRelease:
    return _accessor(request).get_environment_release(name)


@router.get(
    "/environmentreleases/{name}/diff/{other_name}",
    response_model=EnvironmentReleaseDiff,
    response_model_exclude_none=True,
)
def get_environment_release_diff(name: str, other_name: str, request: Request) -> EnvironmentReleaseDiff:
    return _accessor(request).get_environment_release_diff(name, other_name)


@router.get("/releases", response_model=ReleaseList, response_model_exclude_none=True)
def list_releases(request: Request) -> ReleaseList:
    return _accessor(request).list_releases()


@router.get("/releases/{name}", response_model=Release, response_model_exclude_none=True)
def get_release(name: str, request: Request) -> Release:
    return _accessor(request).get_release(name)
