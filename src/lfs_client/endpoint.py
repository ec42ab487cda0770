"""LFS endpoint derivation from Git remote URLs."""

import re
import urllib.parse

from .errors import InvalidUrlError

# user@host:path (no scheme); the host part must not contain a slash
_SCP_LIKE = re.compile(r"^(?:(?P<user>[^@/]+)@)?(?P<host>[^:/]+):(?P<path>.+)$")


def _lfs_path(path: str) -> str:
    path = path.strip("/")
    if not path:
        raise InvalidUrlError("remote URL has no repository path")
    if not path.endswith(".git"):
        path += ".git"
    return f"/{path}/info/lfs/"


def derive_lfs_url(remote_url: str) -> str:
    """Derive the LFS endpoint for a Git remote.

    The repository path gets a ``.git`` suffix if it lacks one, then
    ``/info/lfs/`` is appended. SSH remotes are mapped to HTTPS on the same
    host. The trailing slash keeps relative joins (``objects/batch``) inside
    the endpoint.

    Examples:
        >>> derive_lfs_url("https://github.com/o/r")
        'https://github.com/o/r.git/info/lfs/'
        >>> derive_lfs_url("git@github.com:o/r.git")
        'https://github.com/o/r.git/info/lfs/'

    Raises:
        InvalidUrlError: If the URL is blank, has an unsupported scheme or no
            repository path
    """
    url = (remote_url or "").strip()
    if not url:
        raise InvalidUrlError("empty remote URL")

    if "://" not in url:
        match = _SCP_LIKE.match(url)
        if not match:
            raise InvalidUrlError(f"unrecognized remote URL: {url!r}")
        return f"https://{match.group('host')}{_lfs_path(match.group('path'))}"

    parsed = urllib.parse.urlsplit(url)
    if not parsed.hostname:
        raise InvalidUrlError(f"remote URL has no host: {url!r}")

    if parsed.scheme in ("http", "https"):
        # Keep credentials and port exactly as given
        return urllib.parse.urlunsplit(
            (parsed.scheme, parsed.netloc, _lfs_path(parsed.path), "", "")
        )
    if parsed.scheme in ("ssh", "git+ssh"):
        return f"https://{parsed.hostname}{_lfs_path(parsed.path)}"

    raise InvalidUrlError(f"unsupported URL scheme {parsed.scheme!r}: {url!r}")


def join_endpoint(endpoint: str, path: str) -> str:
    """Join a relative API path onto an endpoint ending in ``/``."""
    if not endpoint.endswith("/"):
        endpoint += "/"
    return urllib.parse.urljoin(endpoint, path)


__all__ = ["derive_lfs_url", "join_endpoint"]
