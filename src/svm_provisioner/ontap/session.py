from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

from ..credentials import Credential
from ..util.errors import SessionError

if TYPE_CHECKING:  # pragma: no cover
    from .client import ControlPlaneClient

LOG = logging.getLogger(__name__)


@dataclass
class ClusterSession:
    """
    Opaque handle for one connection to a cluster.
    `http` is the transport owned by the client that created it; callers never touch it.
    """

    endpoint: str
    http: Any = field(default=None, repr=False)
    timeout: float = 60.0
    cluster_name: Optional[str] = None
    version: Optional[str] = None


class SessionScope:
    """
    Scoped acquisition of a ClusterSession: connect on enter, disconnect exactly once on exit.

    - A failed connect raises SessionError from __enter__ and no disconnect is attempted.
    - A failed disconnect is logged and kept on `disconnect_error`; it never replaces the
      outcome of the body and never masks an exception escaping it.
    """

    def __init__(self, client: "ControlPlaneClient", endpoint: str, credential: Credential) -> None:
        self._client = client
        self._endpoint = endpoint
        self._credential = credential
        self.session: Optional[ClusterSession] = None
        self.disconnect_error: Optional[SessionError] = None

    def __enter__(self) -> ClusterSession:
        try:
            self.session = self._client.connect(self._endpoint, self._credential)
        except SessionError:
            raise
        except Exception as e:
            raise SessionError(f"Failed to connect to cluster {self._endpoint}: {e}") from e
        LOG.info(
            "Connected to cluster",
            extra={"cluster": self._endpoint, "cluster_name": self.session.cluster_name, "version": self.session.version},
        )
        return self.session

    def __exit__(self, exc_type: Any, exc: Any, exc_tb: Any) -> None:
        session, self.session = self.session, None
        if session is None:
            return
        try:
            self._client.disconnect(session)
        except Exception as e:
            self.disconnect_error = e if isinstance(e, SessionError) else SessionError(
                f"Failed to disconnect from cluster {self._endpoint}: {e}"
            )
            LOG.warning("Disconnect failed", extra={"cluster": self._endpoint, "error": str(e)})
            return
        LOG.info("Disconnected from cluster", extra={"cluster": self._endpoint})
