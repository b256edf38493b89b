"""nginx site management for n8nstack."""

import logging
import os
from typing import Optional

from ..config import defaults
from ..render.proxy import NginxRenderer, ProxySite
from ..utils.commands import CommandRunner
from ..utils.errors import CommandError, SSLError
from ..utils.files import FileManager

logger = logging.getLogger(__name__)


class NginxManager:
    """Installs, tests and reloads the reverse proxy site."""

    def __init__(
        self,
        runner: Optional[CommandRunner] = None,
        sites_available: str = defaults.NGINX_SITES_AVAILABLE,
        sites_enabled: str = defaults.NGINX_SITES_ENABLED,
        site_name: str = defaults.NGINX_SITE_NAME,
        verbose: bool = False,
    ):
        """
        Initialize nginx manager.

        Args:
            runner: Command runner (created when omitted)
            sites_available: Directory holding site definitions
            sites_enabled: Directory holding enabled-site links
            site_name: File name of the managed site
            verbose: Enable verbose output
        """
        self.verbose = verbose
        self.runner = runner or CommandRunner(verbose=verbose)
        self.sites_available = sites_available
        self.sites_enabled = sites_enabled
        self.site_name = site_name
        self.renderer = NginxRenderer()
        self.file_manager = FileManager(verbose=verbose)

    @property
    def site_path(self) -> str:
        return os.path.join(self.sites_available, self.site_name)

    @property
    def link_path(self) -> str:
        return os.path.join(self.sites_enabled, self.site_name)

    def current_config(self) -> Optional[str]:
        if not os.path.exists(self.site_path):
            return None
        with open(self.site_path, "r", encoding="utf-8") as f:
            return f.read()

    def test_config(self) -> bool:
        """Run nginx -t."""
        return self.runner.succeeds(["nginx", "-t"])

    def reload(self) -> None:
        try:
            self.runner.run(["systemctl", "reload", "nginx"], capture_output=True)
        except CommandError as e:
            raise SSLError("Failed to reload nginx", details=e.details) from e

    def disable_default_site(self) -> None:
        default_link = os.path.join(self.sites_enabled, "default")
        if os.path.lexists(default_link):
            os.remove(default_link)
            if self.verbose:
                print("Disabled the default nginx site")

    def install_site(self, site: ProxySite) -> str:
        """
        Write a site, test the full configuration and reload nginx.

        The previous site is restored when ``nginx -t`` rejects the new one,
        so nginx keeps serving the last working configuration.

        Args:
            site: Site to install

        Returns:
            str: Path of the written site
        """
        previous = self.current_config()
        self.file_manager.write_file(self.site_path, self.renderer.render(site), mode=0o644)

        os.makedirs(self.sites_enabled, exist_ok=True)
        if not os.path.lexists(self.link_path):
            os.symlink(self.site_path, self.link_path)
        self.disable_default_site()

        if not self.test_config():
            if previous is not None:
                self.file_manager.write_file(self.site_path, previous, mode=0o644)
            else:
                os.remove(self.link_path)
                os.remove(self.site_path)
            logger.error("nginx rejected the generated site, previous configuration restored")
            raise SSLError(
                "nginx configuration test failed",
                suggestions=["Run 'nginx -t' to see the offending directive"],
            )

        self.reload()
        logger.info("nginx site %s installed", self.site_name)
        return self.site_path
