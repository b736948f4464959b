def decode_nan_inf_ninf(val):
    """Decode the json-safe spellings of special float values in attributes."""
    if isinstance(val, list):
        return [decode_nan_inf_ninf(v) for v in val]
    elif isinstance(val, dict):
        return {k: decode_nan_inf_ninf(v) for k, v in val.items()}
    elif isinstance(val, str):
        if val == 'NaN':
            return float('nan')
        if val == 'Infinity':
            return float('inf')
        if val == '-Infinity':
            return float('-inf')
    return val
