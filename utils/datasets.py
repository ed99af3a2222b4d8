"""Dataset source and load-error taxonomy.

The two input documents live at ``<base path>/data/<name>.json``.  A
``DatasetSource`` resolves that path either against a local directory or
against a remote origin (fetched with ``requests``), and turns every failure
into one of two exception kinds:

    DatasetLoadError       the resource could not be fetched (non-2xx status,
                           connection error, missing file)
    MalformedDatasetError  the resource was fetched but is not the expected
                           JSON shape

Neither is retried; the caller records the failure and stops.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter

logger = logging.getLogger(__name__)


class DatasetError(Exception):
    """Base class for dataset failures."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(message)
        self.url = url


class DatasetLoadError(DatasetError):
    """Fetching a dataset did not succeed."""

    def __init__(self, url: str, status: Optional[int] = None,
                 reason: str = "") -> None:
        message = f'fetching "{url}" failed. status: {status}'
        if reason:
            message += f" ({reason})"
        super().__init__(url, message)
        self.status = status
        self.reason = reason


class MalformedDatasetError(DatasetError):
    """A dataset was fetched but does not match the expected schema."""

    def __init__(self, url: str, detail: str) -> None:
        super().__init__(url, f'malformed dataset "{url}": {detail}')
        self.detail = detail


class DatasetSource:
    """Resolve and fetch ``/data/<name>.json`` documents.

    With ``base_url`` set, documents are fetched over HTTP from
    ``<base_url><base_path>/data/<name>.json``; otherwise they are read from
    ``<data_dir>/<name>.json``.

    Usage::

        source = DatasetSource(data_dir=Path("data"))
        raw = source.fetch_json("reg_list")
    """

    def __init__(self, data_dir: Optional[Path] = None, base_url: str = "",
                 base_path: str = "", timeout: float = 30.0,
                 session: Optional[requests.Session] = None) -> None:
        """Initialise the source.

        Args:
            data_dir: Local directory holding the documents.
            base_url: Remote origin; takes precedence over ``data_dir``.
            base_path: Deployment base path prefixed to ``/data/``.
            timeout: HTTP timeout in seconds.
            session: Optional pre-built session (tests pass a mock).
        """
        if data_dir is None and not base_url:
            raise ValueError("DatasetSource needs a data_dir or a base_url")
        self.data_dir = Path(data_dir) if data_dir is not None else None
        self.base_url = base_url.rstrip("/")
        self.base_path = base_path
        self.timeout = timeout
        self._session = session

    @property
    def is_remote(self) -> bool:
        return bool(self.base_url)

    @property
    def session(self) -> requests.Session:
        """Get or create the HTTP session (no automatic retries)."""
        if self._session is None:
            self._session = requests.Session()
            adapter = HTTPAdapter(max_retries=0, pool_connections=2, pool_maxsize=2)
            self._session.mount("http://", adapter)
            self._session.mount("https://", adapter)
        return self._session

    def close(self) -> None:
        """Close the HTTP session if one was opened."""
        if self._session is not None:
            self._session.close()
            self._session = None

    def url_for(self, name: str) -> str:
        """Return the URL (or file path) a dataset is fetched from."""
        if self.is_remote:
            return f"{self.base_url}{self.base_path}/data/{name}.json"
        return str(self.data_dir / f"{name}.json")

    def fetch_json(self, name: str) -> Any:
        """Fetch and decode one dataset.

        Raises:
            DatasetLoadError: The resource could not be fetched.
            MalformedDatasetError: The body is not valid JSON.
        """
        url = self.url_for(name)
        if self.is_remote:
            return self._fetch_remote(url)
        return self._fetch_local(url)

    def _fetch_remote(self, url: str) -> Any:
        try:
            resp = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise DatasetLoadError(url, reason=str(exc)) from exc
        if not resp.ok:
            raise DatasetLoadError(url, status=resp.status_code, reason=resp.reason or "")
        try:
            return resp.json()
        except ValueError as exc:
            raise MalformedDatasetError(url, f"invalid JSON: {exc}") from exc

    def _fetch_local(self, url: str) -> Any:
        path = Path(url)
        if not path.is_file():
            raise DatasetLoadError(url, status=404, reason="file not found")
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except OSError as exc:
            raise DatasetLoadError(url, reason=str(exc)) from exc
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise MalformedDatasetError(url, f"invalid JSON: {exc}") from exc
