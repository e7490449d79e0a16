def channel_layout(name: str) -> dict:
    """
    A decorator to register a function as the PA/US de-multiplexing rule for
    the `IOParams.channel_layout` value `name`.

    Args:
        name (str): Value of `IOParams.channel_layout` handled by the function.

    Returns:
        function: The decorated function wrapped in a registry entry.
    """
    def decorator(func):
        if type(func) is not dict:
            out_dict = {}
            out_dict['func'] = func
            out_dict['layout'] = name
            return out_dict
        func['layout'] = name
        return func
    return decorator
