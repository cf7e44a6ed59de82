#!/usr/bin/env python
"""
URL helpers.

Hrefs coming back from a CalDAV server may be one out of two:

1) an absolute path, i.e. "/caldav.php/someuser/calendar/"

2) a fully qualified URL, i.e.
"https://cal.example.com/caldav.php/someuser/calendar/"

Everything that is used as a request target goes through
``normalize_url`` so that collection URLs always end with a slash and
always carry a scheme.
"""
from urllib.parse import unquote
from urllib.parse import urljoin
from urllib.parse import urlparse


def _is_absolute(url: str) -> bool:
    return url.startswith("http://") or url.startswith("https://")


def normalize_url(url: str) -> str:
    """
    Strip whitespace, force a trailing slash and default the scheme to
    https.

    >>> normalize_url(" cal.example.com/dav")
    'https://cal.example.com/dav/'
    """
    normalized = url.strip()
    if not normalized.endswith("/"):
        normalized += "/"
    if not _is_absolute(normalized):
        normalized = "https://" + normalized
    return normalized


def resolve_href(base_url: str, href: str) -> str:
    """
    Absolute hrefs are normalized as they are, relative ones (typically
    an absolute path like /caldav.php/user/) are resolved against the
    scheme and host of ``base_url`` first.
    """
    if _is_absolute(href):
        return normalize_url(href)
    return normalize_url(urljoin(base_url, href))


def with_trailing_slash(path: str) -> str:
    return path if path.endswith("/") else path + "/"


def default_calendar_href(principal_href: str) -> str:
    """
    The default calendar collection of a principal.  Free-busy queries
    have to target a calendar collection, not the principal itself.
    """
    return with_trailing_slash(principal_href) + "calendar/"


def is_same_resource(href: str, request_url: str) -> bool:
    """
    True if ``href`` (as found in a multistatus response) refers to the
    collection ``request_url`` that the request was sent to.  Trailing
    slashes and the scheme/host part are insignificant, relative hrefs
    are resolved against ``request_url``.
    """
    if not href.strip():
        return False
    href_path = unquote(urlparse(urljoin(request_url, href.strip())).path).rstrip("/")
    url_path = unquote(urlparse(request_url).path).rstrip("/")
    return href_path == url_path
