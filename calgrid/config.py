"""
Connection settings from parameters, environment variables or a config
file.

The config file is JSON (or YAML, if pyyaml is installed) holding named
sections, like::

    {
        "default": {"caldav_url": "https://cal.example.com/caldav.php/",
                    "caldav_user": "me", "caldav_pass": "secret"},
        "work": {"inherits": "default", "caldav_user": "me.at.work"}
    }
"""
import json
import logging
import os
from typing import Any, Dict, Optional, Union

from calgrid.io.base import DEFAULT_REQUEST_TIMEOUT
from calgrid.protocol.types import ConnectionInfo
from calgrid.protocol_client import AsyncProtocolClient, SyncProtocolClient

log = logging.getLogger("calgrid")

ENV_PREFIX = "CALGRID_"
CONNECTION_FIELDS = ("url", "username", "password")

## config file keys -> ConnectionInfo fields
_CONFIG_KEYS = {
    "caldav_url": "url",
    "caldav_user": "username",
    "caldav_username": "username",
    "caldav_pass": "password",
    "caldav_password": "password",
}


def config_section(config: Dict[str, Any], section: str = "default") -> Dict[str, Any]:
    """
    The settings of ``section``, merged on top of the section it names
    under ``inherits`` (recursively).
    """
    if section in config and "inherits" in config[section]:
        ret = config_section(config, config[section]["inherits"])
    else:
        ret = {}
    if section in config:
        ret.update(config[section])
    return ret


def read_config(fn: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Read the config file ``fn``.  Without a file name the default
    locations are tried in order and the first non-empty one is used.

    A missing or broken file gives an empty dict; the problem is logged.
    """
    if not fn:
        cfgdir = f"{os.environ.get('HOME', '/')}/.config"
        for config_file in (
            f"{cfgdir}/calgrid/calgrid.conf",
            f"{cfgdir}/calgrid/calgrid.yaml",
            f"{cfgdir}/calgrid/calgrid.json",
            "/etc/calgrid/calgrid.conf",
        ):
            cfg = read_config(config_file)
            if cfg:
                return cfg
        return None

    try:
        try:
            with open(fn, "rb") as config_file:
                return json.load(config_file)
        except json.decoder.JSONDecodeError:
            ## yaml is an optional dependency (the "yaml" extra)
            try:
                import yaml
            except ImportError:
                log.error(f"config file {fn} is not valid json, and pyyaml is not installed.")
                return {}
            try:
                with open(fn, "rb") as config_file:
                    return yaml.safe_load(config_file) or {}
            except yaml.YAMLError:
                log.error(f"config file {fn} is neither valid json nor yaml.  Check the syntax.")
    except FileNotFoundError:
        log.debug(f"no config file at {fn}")
    except ValueError:
        log.error("error in config file.  It will be ignored", exc_info=True)
    return {}


def _from_environment() -> Dict[str, str]:
    conf = {}
    for field in CONNECTION_FIELDS:
        value = os.environ.get(ENV_PREFIX + field.upper())
        if value:
            conf[field] = value
    return conf


def _from_config_file(config_file: Optional[str], section: str) -> Dict[str, str]:
    cfg = read_config(config_file)
    if not cfg:
        return {}
    conf = {}
    for key, value in config_section(cfg, section).items():
        if key in _CONFIG_KEYS and value:
            conf.setdefault(_CONFIG_KEYS[key], str(value))
    return conf


def get_connection(
    check_config_file: bool = True,
    config_file: Optional[str] = None,
    section: Optional[str] = None,
    environment: bool = True,
    **params: str,
) -> ConnectionInfo:
    """
    Build a ConnectionInfo.  Each field is taken from the first source
    that has it, in this order:

    * The keyword parameters ``url``, ``username`` and ``password``
    * Environment variables ``CALGRID_URL``, ``CALGRID_USERNAME``,
      ``CALGRID_PASSWORD``
    * The config file (``CALGRID_CONFIG_FILE`` / ``CALGRID_CONFIG_SECTION``
      are honored if ``environment`` is set), keys ``caldav_url``,
      ``caldav_user`` and ``caldav_pass``

    Fields found nowhere are left empty; ``ConnectionInfo.validate``
    reports them.  Nothing is sent to the server here.
    """
    unknown = set(params) - set(CONNECTION_FIELDS)
    if unknown:
        raise TypeError("unexpected connection parameter(s): %s" % ", ".join(sorted(unknown)))

    conf = {k: v for k, v in params.items() if v}

    if environment:
        for key, value in _from_environment().items():
            conf.setdefault(key, value)
        if not config_file:
            config_file = os.environ.get(ENV_PREFIX + "CONFIG_FILE")
        if not section:
            section = os.environ.get(ENV_PREFIX + "CONFIG_SECTION")

    if check_config_file and not all(field in conf for field in CONNECTION_FIELDS):
        for key, value in _from_config_file(config_file, section or "default").items():
            conf.setdefault(key, value)

    return ConnectionInfo(
        url=conf.get("url", ""),
        username=conf.get("username", ""),
        password=conf.get("password", ""),
    )


def get_timeout(environment: bool = True) -> float:
    """Timeout in seconds from ``CALGRID_TIMEOUT``, 30 by default."""
    value = os.environ.get(ENV_PREFIX + "TIMEOUT") if environment else None
    if not value:
        return DEFAULT_REQUEST_TIMEOUT
    try:
        return float(value)
    except ValueError:
        log.warning(f"ignoring invalid {ENV_PREFIX}TIMEOUT value {value!r}")
        return DEFAULT_REQUEST_TIMEOUT


def get_protocol_client(
    asynchronous: bool = False,
    check_config_file: bool = True,
    config_file: Optional[str] = None,
    section: Optional[str] = None,
    environment: bool = True,
    **params: str,
) -> Union[SyncProtocolClient, AsyncProtocolClient]:
    """
    A SyncProtocolClient (or AsyncProtocolClient if ``asynchronous``)
    for the connection found by ``get_connection``, using the timeout
    from ``get_timeout``.  It does not connect.
    """
    connection = get_connection(
        check_config_file=check_config_file,
        config_file=config_file,
        section=section,
        environment=environment,
        **params,
    )
    timeout = get_timeout(environment)
    client_class = AsyncProtocolClient if asynchronous else SyncProtocolClient
    return client_class(connection, connect_timeout=timeout, timeout=timeout)
