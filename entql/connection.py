"""Named database URLs and raw driver connections."""

import logging
import urllib.parse
from typing import Callable

from .dialects import Dialect, get_dialect_for_scheme

logger = logging.getLogger("entql")

DEFAULT_CONNECTION_NAME = "default"

_urls: dict[str, str | Callable[[], str]] = {}


def connect(database_url: str | Callable[[], str], name: str = DEFAULT_CONNECTION_NAME):
    """Register the database URL used by queries on the connection called ``name``.

    ``database_url`` is either a URL string (``sqlite:///path``, ``postgresql://...``)
    or a method returning one, resolved each time a connection is opened.
    """
    if not isinstance(database_url, str) and not callable(database_url):
        raise ValueError("`database_url` should be either a str or a method returning a str")
    # a new URL must not keep serving connections opened for the previous one
    from .transaction import _forget_connection
    _forget_connection(name)
    _urls[name] = database_url


def _get_url(name: str = DEFAULT_CONNECTION_NAME) -> str:
    try:
        url = _urls[name]
    except KeyError as error:
        raise ValueError(f"No connection configured with name=`{name}`") from error
    if callable(url):
        url = url()
    return url


def get_dialect(name: str = DEFAULT_CONNECTION_NAME) -> Dialect:
    """Return the dialect of the connection called ``name`` (sqlite when none is configured)."""
    if name not in _urls:
        return get_dialect_for_scheme("sqlite")
    return get_dialect_for_scheme(urllib.parse.urlparse(_get_url(name)).scheme)


def _get_connection(name: str = DEFAULT_CONNECTION_NAME):
    """Open a new raw driver connection for the URL registered under ``name``."""
    url = _get_url(name)
    dialect = get_dialect_for_scheme(urllib.parse.urlparse(url).scheme)
    logger.debug("Opening %s connection `%s`", type(dialect).__name__, name)
    return dialect.connect(url)
