import math
from decimal import ROUND_CEILING, Decimal
from typing import Sequence


def round_up(value: "float", places: "int") -> "float":
    """
    rounds value up to the given number of decimal places, i.e. returns
    the smallest multiple of 10^-places that is >= value.

    The float is converted through its shortest repr so that a value
    already sitting on the grid (1.1, 2.0) is returned unchanged instead
    of being pushed up by binary representation error.
    """
    if math.isnan(value) or math.isinf(value):
        return value

    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_CEILING))


def average(values: "Sequence[float]") -> "float":
    """
    arithmetic mean of values, rounded up to two decimal places.
    """
    if not values:
        raise ValueError("cannot average an empty sequence")

    return round_up(sum(values) / len(values), 2)
