# Money amounts are stored as floats rounded to cents
def money(value) -> float:
    return round(float(value or 0), 2)
