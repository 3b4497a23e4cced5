"""
API command implementation.

Machine-readable JSON output for editor integrations and scripts.
"""

import json
import logging
from typing import Any, Dict, Optional

from fvmkit.cli.utils import build_context
from fvmkit.sdk.releases import ReleaseRecord

logger = logging.getLogger(__name__)


def _emit(data: Dict[str, Any], compress: bool) -> int:
    if compress:
        print(json.dumps(data, separators=(",", ":")))
    else:
        print(json.dumps(data, indent=2))
    return 0


def _release_to_dict(record: ReleaseRecord) -> Dict[str, Any]:
    return {
        "hash": record.hash,
        "channel": record.channel,
        "version": record.version,
        "release_date": record.release_date.isoformat(),
        "dart_sdk_version": record.dart_sdk_version,
    }


def _version_of(record: Optional[ReleaseRecord]) -> Optional[str]:
    return record.version if record is not None else None


def run_list(args) -> int:
    """Installed versions with their paths and engines."""
    context = build_context(args.home)
    current = context.resolver.current_global()

    versions = []
    for token in sorted(context.resolver.list_installed()):
        versions.append(
            {
                "name": token,
                "path": str(context.layout.version_dir(token)),
                "engine": context.engine_cache.engine_hash_for_version(token),
                "global": token == current,
            }
        )

    return _emit({"versions": versions, "total": len(versions)}, args.compress)


def run_releases(args) -> int:
    """Releases of the release manifest, newest first."""
    context = build_context(args.home)
    current = context.catalog.fetch_all().current_releases

    releases = context.catalog.releases_for_channel(args.channel)
    if args.limit is not None:
        releases = releases[: args.limit]
    logger.debug(f"Reporting {len(releases)} release(s)")

    return _emit(
        {
            "current": {
                "stable": _version_of(current.stable),
                "beta": _version_of(current.beta),
                "dev": _version_of(current.dev),
            },
            "releases": [_release_to_dict(r) for r in releases],
            "total": len(releases),
        },
        args.compress,
    )
