import argparse
import sys
from typing import List, Optional

from dotenv import load_dotenv

from .errors import ReleaseInspectionError
from .export import export_api
from .logging_utils import logger
from .release_accessor import build_release_accessor
from .settings import Settings, load_settings_from_env


def _settings_from_args(args: argparse.Namespace) -> Settings:
    settings = load_settings_from_env()
    if args.repo_dir:
        settings.repo_dir = args.repo_dir
    if args.lookback_days is not None:
        settings.lookback_days = args.lookback_days
    if not settings.repo_dir:
        raise SystemExit("a source repository is required: pass --repo-dir or set RELEASE_REPO_DIR")
    return settings


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    from .app import create_app

    app = create_app(build_release_accessor(_settings_from_args(args)))
    logger.info("server_starting", host=args.host, port=args.port)
    uvicorn.run(app, host=args.host, port=args.port)
    return 0


def _export(args: argparse.Namespace) -> int:
    accessor = build_release_accessor(_settings_from_args(args))
    try:
        export_api(accessor, args.out_dir)
    except ReleaseInspectionError as e:
        logger.error("export_failed", error=str(e), error_type=type(e).__name__)
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="release-inspection", description="Release history and component diff service")
    parser.add_argument("--log-level", type=str, default=None,
                        help="DEBUG, INFO, WARN or ERROR (default: $LOG_LEVEL or INFO)")
    sub = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--repo-dir", type=str, default=None,
                        help="Working copy of the configuration repository (default: $RELEASE_REPO_DIR)")
    common.add_argument("--lookback-days", type=int, default=None,
                        help="Discovery window in days (default: $RELEASE_LOOKBACK_DAYS or 14)")

    serve = sub.add_parser("serve", parents=[common], help="Serve the JSON API")
    serve.add_argument("--host", type=str, default="127.0.0.1",
                       help="Host to bind to (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8001,
                       help="Port to listen on (default: 8001)")
    serve.set_defaults(handler=_serve)

    export = sub.add_parser("export", parents=[common], help="Write the JSON API tree to a directory")
    export.add_argument("--out-dir", type=str, required=True,
                        help="Output directory")
    export.set_defaults(handler=_export)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    if args.log_level:
        logger.set_level(args.log_level)
    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())
