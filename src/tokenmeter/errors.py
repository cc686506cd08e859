class TokenMeterError(Exception):
    """
    base class for errors raised by tokenmeter itself. Errors raised
    by a wrapped client are never converted into this type.
    """


class PricingConfigError(TokenMeterError, ValueError):
    """
    raised synchronously when pricing configuration is invalid:
    a non-HTTPS or non allow-listed source URL, an out of range
    timeout or a malformed model alias.
    """
