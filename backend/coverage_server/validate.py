"""Validation of server options."""

from collections.abc import Mapping
from typing import Any, Optional


def _is_string_list(value: Any) -> bool:
    return (
        isinstance(value, (list, tuple))
        and len(value) > 0
        and all(isinstance(v, str) for v in value)
    )


def _is_nonnegative_int(value: Any) -> bool:
    # bool is a subclass of int but is never a valid port
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def validate(opts: dict, options: Any) -> Optional[TypeError]:
    """
    Copy recognized options into ``opts`` and type-check them.

    Recognized keys: ``address``, ``hostname``, ``logger``, ``port``,
    ``prefix``, ``root``, ``static``, ``trust_proxy`` and
    ``ignore_trailing_slash``. Anything else is ignored.

    A string ``logger`` is normalized to ``{"level": <string>}``; list-valued
    ``prefix`` and ``static`` are stored as fresh lists so the caller's
    sequences are never mutated later on.

    Returns:
        A ``TypeError`` describing the first invalid option, or ``None``.

    Example::

        opts = {}
        err = validate(opts, {"port": 7331, "address": "127.0.0.1"})
        if err:
            raise err
    """
    if not isinstance(options, Mapping):
        return TypeError(
            f"invalid argument. Options argument must be a mapping. Value: `{options!r}`."
        )

    for key in ("address", "hostname"):
        if key in options:
            opts[key] = options[key]
            if not isinstance(opts[key], str):
                return TypeError(
                    f"invalid option. `{key}` option must be a string. Option: `{opts[key]!r}`."
                )

    if "logger" in options:
        opts["logger"] = options["logger"]
        if isinstance(opts["logger"], str):
            opts["logger"] = {"level": opts["logger"]}
        elif not isinstance(opts["logger"], bool):
            return TypeError(
                "invalid option. `logger` option must be either a boolean or a string. "
                f"Option: `{opts['logger']!r}`."
            )

    if "port" in options:
        opts["port"] = options["port"]
        if not _is_nonnegative_int(opts["port"]):
            return TypeError(
                f"invalid option. `port` must be a nonnegative integer. Option: `{opts['port']!r}`."
            )

    if "prefix" in options:
        opts["prefix"] = options["prefix"]
        if _is_string_list(opts["prefix"]):
            opts["prefix"] = list(opts["prefix"])
        elif not isinstance(opts["prefix"], str):
            return TypeError(
                "invalid option. `prefix` option must be either a string or an array of strings. "
                f"Option: `{opts['prefix']!r}`."
            )

    if "root" in options:
        opts["root"] = options["root"]
        if not isinstance(opts["root"], str):
            return TypeError(
                f"invalid option. `root` option must be a string. Option: `{opts['root']!r}`."
            )

    if "static" in options:
        opts["static"] = options["static"]
        if _is_string_list(opts["static"]):
            opts["static"] = list(opts["static"])
        elif not isinstance(opts["static"], str):
            return TypeError(
                "invalid option. `static` option must be either a string or an array of strings. "
                f"Option: `{opts['static']!r}`."
            )

    for key in ("trust_proxy", "ignore_trailing_slash"):
        if key in options:
            opts[key] = options[key]
            if not isinstance(opts[key], bool):
                return TypeError(
                    f"invalid option. `{key}` option must be a boolean. Option: `{opts[key]!r}`."
                )

    return None
