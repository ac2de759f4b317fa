# chatbot/merge.py
# Two ways of combining dicts, used when enriching drug info.
#
# backfill: the base wins, overlays only fill its gaps
# overlay:  later dicts win over earlier ones and the base
#
# Both keep the base's keys only, so an overlay can never
# introduce a field the caller did not ask for.


def is_empty(value) -> bool:
    # 0 counts as empty. A zero dosage or a zero price means
    # "not filled in yet", never a real value.
    return value is None or value == "" or value == 0


def backfill(base: dict, *overlays: dict) -> dict:
    """
    Fill empty values in base from the first overlay that has one.

    Example:
        backfill({"name": "John", "age": 0}, {"age": 25, "role": "user"})
        -> {"name": "John", "age": 25}
    """
    result = dict(base)
    for key in base:
        if not is_empty(result[key]):
            continue
        for layer in overlays:
            if layer and key in layer and not is_empty(layer[key]):
                result[key] = layer[key]
                break
    return result


def overlay(base: dict, *overlays: dict) -> dict:
    """Apply overlays in order. None values are skipped."""
    result = dict(base)
    for layer in overlays:
        if not layer:
            continue
        for key, value in layer.items():
            if key in base and value is not None:
                result[key] = value
    return result
