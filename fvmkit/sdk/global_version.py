"""Global version pointer (``<home>/default``)."""

import logging
from pathlib import Path
from typing import Optional

from fvmkit.core.directory import SdkLayout
from fvmkit.core.exceptions import VersionNotInstalledError
from fvmkit.sdk.linking import SdkLinkManager
from fvmkit.sdk.versions import VersionResolver, parse_token

logger = logging.getLogger(__name__)


class GlobalVersionManager:
    """Points the global link at an installed version."""

    def __init__(
        self,
        layout: SdkLayout,
        link_manager: Optional[SdkLinkManager] = None,
        resolver: Optional[VersionResolver] = None,
    ):
        self.layout = layout
        self.link_manager = link_manager or SdkLinkManager()
        self.resolver = resolver or VersionResolver(layout)

    def set_global(self, token: str) -> Path:
        """
        Make an installed version the global one.

        The existing link is removed and a new one created; the legacy
        pointer is never written.

        Returns:
            Path of the global link

        Raises:
            VersionNotInstalledError: If the version is not installed
            LinkError: If the link cannot be replaced
        """
        parsed = parse_token(token)
        if not self.resolver.is_installed(parsed.token):
            raise VersionNotInstalledError(parsed.token)

        link = self.layout.global_link
        self.link_manager.remove_link(link)
        self.link_manager.create_link(link, self.layout.version_dir(parsed.token))
        logger.info(f"Global Flutter version set to {parsed.token}")
        return link

    def unset_global(self) -> bool:
        """Remove the global link. Returns False if none was set."""
        removed = self.link_manager.remove_link(self.layout.global_link)
        if removed:
            logger.info("Global Flutter version unlinked")
        return removed

    def current_global(self) -> Optional[str]:
        return self.resolver.current_global()


__all__ = ["GlobalVersionManager"]
