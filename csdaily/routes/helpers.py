"""
Request parsing helpers shared by the blueprints
"""
from flask import request

from csdaily.core.errors import InvalidFormatError, InvalidValueError


def json_body():
    """Parsed JSON object body or a VAL_002 error"""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidFormatError()
    return data


def optional_int(value, field):
    """None stays None; ints and numeric strings become int"""
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise InvalidValueError(f'{field} must be an integer')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidValueError(f'{field} must be an integer')
