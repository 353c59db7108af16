"""Query parameter construction utilities.

Translates repeated `--param name=value` CLI arguments into the parameter
mapping the engine binds as `@name` placeholders.
"""

from typing import Iterable


def build_parameters(params: Iterable[str]) -> dict[str, str]:
    """
    Build a parameter mapping from `name=value` strings.

    A leading `@` on the name is accepted and dropped. Values are passed as
    strings; the database performs any conversion.

    Args:
        params: Iterable of parameter strings in the form `name=value`.

    Returns:
        Mapping of parameter name to value, in argument order.

    Raises:
        ValueError: If a parameter does not follow the `name=value` format
                    or the name is empty.
    """
    parameters: dict[str, str] = {}

    for param in params:
        if "=" not in param:
            raise ValueError(f"Invalid parameter: '{param}' (expected name=value)")

        name, value = param.split("=", 1)
        name = name.strip().lstrip("@")
        if not name:
            raise ValueError(f"Invalid parameter: '{param}' (empty name)")
        parameters[name] = value

    return parameters
