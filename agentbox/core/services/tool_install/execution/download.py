"""
L4 Execution — Binary download.

Plain ``urllib`` GET with redirects handled here rather than by the
opener, so the hop count is bounded and every hop is logged.  The body
is streamed into a temp file beside the destination and renamed over
it on success; whatever goes wrong, a partial file is never left
behind and an existing destination is never removed.
"""

from __future__ import annotations

import http.client
import logging
import shutil
import tempfile
import urllib.error
import urllib.request
from pathlib import Path
from urllib.parse import urljoin

from agentbox import __version__
from agentbox.core.errors import FetchError

logger = logging.getLogger(__name__)

REDIRECT_CODES = frozenset({301, 302, 303, 307, 308})
MAX_REDIRECTS = 10
_CHUNK = 64 * 1024


class _NoRedirect(urllib.request.HTTPRedirectHandler):
    """Surface 3xx responses as ``HTTPError`` instead of following them."""

    def redirect_request(self, req, fp, code, msg, headers, newurl):  # noqa: D401
        return None


def download(
    url: str,
    dest: Path,
    *,
    timeout: float = 60,
    max_redirects: int = MAX_REDIRECTS,
) -> Path:
    """Fetch ``url`` into ``dest``, following up to ``max_redirects`` hops.

    The body goes to a temp file next to ``dest`` and replaces it only
    once the transfer is complete, so an existing ``dest`` survives any
    failure.

    Args:
        url: Initial HTTP(S) URL.
        dest: Destination file.  Parent directories are created.
        timeout: Socket timeout per request, in seconds.
        max_redirects: Redirect hops allowed before giving up.

    Returns:
        ``dest``.

    Raises:
        FetchError: Too many redirects, a non-2xx final status, or a
            network/filesystem error.  The temp file is removed; ``dest``
            is left as it was.
    """
    logger.info("Downloading %s", url)
    dest.parent.mkdir(parents=True, exist_ok=True)

    opener = urllib.request.build_opener(_NoRedirect)
    current = url
    for hop in range(max_redirects + 1):
        try:
            response = opener.open(_request(current), timeout=timeout)
        except urllib.error.HTTPError as e:
            location = e.headers.get("Location") if e.headers else None
            e.close()
            if e.code in REDIRECT_CODES and location:
                current = urljoin(current, location)
                logger.debug("Redirect %d (%d) → %s", hop + 1, e.code, current)
                continue
            raise FetchError(f"Download failed: HTTP {e.code} for {current}") from e
        except (urllib.error.URLError, http.client.HTTPException, OSError, ValueError) as e:
            raise FetchError(f"Download failed for {current}: {e}") from e

        with response:
            status = response.status
            if not 200 <= status < 300:
                raise FetchError(f"Download failed: HTTP {status} for {current}")
            _stream_to_file(response, dest, current)
        logger.info("Downloaded %s (%d bytes)", dest.name, dest.stat().st_size)
        return dest

    raise FetchError(f"Too many redirects (> {max_redirects}) for {url}")


def _request(url: str) -> urllib.request.Request:
    return urllib.request.Request(url, headers={"User-Agent": f"agentbox/{__version__}"})


def _stream_to_file(response, dest: Path, url: str) -> None:
    try:
        _fd, tmp_path = tempfile.mkstemp(dir=dest.parent, prefix=".dl_", suffix=".part")
    except OSError as e:
        raise FetchError(f"Cannot write into {dest.parent}: {e}") from e

    tmp = Path(tmp_path)
    try:
        with open(_fd, "wb") as f:
            shutil.copyfileobj(response, f, _CHUNK)
        tmp.replace(dest)
    except (OSError, http.client.HTTPException) as e:
        tmp.unlink(missing_ok=True)
        raise FetchError(f"Download of {url} interrupted: {e}") from e
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
