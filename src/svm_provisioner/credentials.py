from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

from .util.errors import ConfigurationError


@dataclass(frozen=True)
class Credential:
    """
    A username/password pair. The password is kept out of repr so it never lands in logs
    or tracebacks.
    """

    username: str
    password: str = field(repr=False)


def _env_str(name: str) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip()
    return raw or None


def _resolve(
    *,
    purpose: str,
    username: Optional[str],
    user_env: str,
    password_env: str,
    interactive: bool,
) -> Credential:
    user = username or _env_str(user_env)
    password = os.getenv(password_env) or None

    if user and password:
        return Credential(username=user, password=password)

    if not interactive:
        missing = []
        if not user:
            missing.append(user_env)
        if not password:
            missing.append(password_env)
        raise ConfigurationError(
            f"{purpose} credentials are required in batch mode",
            missing_fields=missing,
        )

    from .resolver import prompts

    if not user:
        user = prompts.ask_str(f"{purpose} username")
    if not password:
        password = prompts.ask_secret(f"{purpose} password for {user}")
    return Credential(username=user, password=password)


def resolve_cluster_credential(username: Optional[str], *, interactive: bool) -> Credential:
    """
    Cluster admin credential:
    - username: --username, then SVM_PROV_USERNAME
    - password: SVM_PROV_PASSWORD
    Missing parts are prompted for unless running in batch mode.
    """
    return _resolve(
        purpose="Cluster",
        username=username,
        user_env="SVM_PROV_USERNAME",
        password_env="SVM_PROV_PASSWORD",
        interactive=interactive,
    )


def resolve_domain_credential(*, interactive: bool) -> Credential:
    """
    Credential of an account allowed to join computers to the AD domain.
    Read from SVM_PROV_DOMAIN_USER / SVM_PROV_DOMAIN_PASSWORD, otherwise prompted.
    """
    return _resolve(
        purpose="Domain join",
        username=None,
        user_env="SVM_PROV_DOMAIN_USER",
        password_env="SVM_PROV_DOMAIN_PASSWORD",
        interactive=interactive,
    )
