# migrate.py
# SPDX-License-Identifier: MIT
"""Stdlib-only HTTP trigger for the internal metadata index migration."""

from __future__ import annotations

import json
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Mapping, Sequence

from .errors import MigrationError
from .log import get_logger

log = get_logger(__name__)

__all__ = ["DEFAULT_MIGRATION_PATH", "DEFAULT_MIGRATION_HEADERS", "HttpMigrationTrigger"]

DEFAULT_MIGRATION_PATH = "/api/saved_objects/_migrate"
DEFAULT_MIGRATION_HEADERS: Mapping[str, str] = {
    "Content-Type": "application/json",
    "kbn-xsrf": "esarchiver",
}


class HttpMigrationTrigger:
    """POST ``{"indices": [...]}`` to the platform's migration endpoint.

    The platform server owns the migration logic; this class only asks it to
    run once the archive is loaded.
    """

    def __init__(
        self,
        base_url: str,
        *,
        path: str = DEFAULT_MIGRATION_PATH,
        timeout: float = 60.0,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required for the migration trigger")
        self.base_url = base_url.rstrip("/")
        self.path = path if path.startswith("/") else f"/{path}"
        self.timeout = timeout
        self.headers = dict(DEFAULT_MIGRATION_HEADERS if headers is None else headers)

    @property
    def url(self) -> str:
        return urllib.parse.urljoin(f"{self.base_url}/", self.path.lstrip("/"))

    def migrate(self, indices: Sequence[str]) -> None:
        """Trigger the migration and wait for the server to answer.

        Raises:
            MigrationError: If the server cannot be reached or answers with
                a non-2xx status.
        """
        payload = json.dumps({"indices": list(indices)}).encode("utf-8")
        req = urllib.request.Request(self.url, data=payload, headers=self.headers, method="POST")
        log.debug("POST %s indices=%r", self.url, list(indices))
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                status = getattr(resp, "status", 200)
                body = resp.read()
        except urllib.error.HTTPError as exc:
            raise MigrationError(f"Migration endpoint {self.url} returned HTTP {exc.code}") from exc
        except (urllib.error.URLError, TimeoutError, OSError) as exc:
            raise MigrationError(f"Migration endpoint {self.url} unreachable: {exc}") from exc
        if not 200 <= int(status) < 300:
            raise MigrationError(f"Migration endpoint {self.url} returned HTTP {status}")
        log.debug("Migration finished: %s", body[:200])
