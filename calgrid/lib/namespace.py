#!/usr/bin/env python
from typing import Dict
from typing import Optional

nsmap: Dict[str, str] = {
    "D": "DAV:",
    "C": "urn:ietf:params:xml:ns:caldav",
}

## calendar-color and getctag live in vendor namespaces.  Most servers
## support them, but they aren't part of any RFC, so they are only
## declared in the PROPFIND body that asks for them.
nsmap2: Dict[str, str] = nsmap.copy()
nsmap2["I"] = "http://apple.com/ns/ical/"
nsmap2["CS"] = "http://calendarserver.org/ns/"


def ns(prefix: str, tag: Optional[str] = None) -> str:
    name = "{%s}" % nsmap2[prefix]
    if tag is not None:
        name = "%s%s" % (name, tag)
    return name
