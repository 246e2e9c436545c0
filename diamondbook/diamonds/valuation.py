"""
Diamond lot valuation.

A lot is classified by its average weight per piece:

    weight_in_karats / number_of_diamonds > 0.15  ->  "4P Plus"
    otherwise                                     ->  "4P Minus"

4P Plus lots are billed by weight at the client's per-karat rate, after
subtracting any raw damage weight. 4P Minus lots are billed by piece count
at the client's per-piece rate. An invoice total is the sum of the lot
values it bills.

All arithmetic is done in Decimal and money is quantized to 2 places.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

FOUR_P_PLUS = '4P Plus'
FOUR_P_MINUS = '4P Minus'

CATEGORY_CHOICES = [
    (FOUR_P_PLUS, '4P Plus'),
    (FOUR_P_MINUS, '4P Minus'),
]

# Average karats per piece above which a lot is 4P Plus
CATEGORY_THRESHOLD = Decimal('0.15')

MONEY_PLACES = Decimal('0.01')
WEIGHT_PLACES = Decimal('0.001')


class ValuationError(ValueError):
    """Raised when lot figures cannot be classified or valued"""


def to_decimal(value, field='value'):
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValuationError(f"{field} must be a number, got {value!r}")


def quantize_money(amount):
    return to_decimal(amount).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def weight_per_diamond(weight_in_karats, number_of_diamonds):
    weight = to_decimal(weight_in_karats, 'weight_in_karats')
    count = to_decimal(number_of_diamonds, 'number_of_diamonds')
    if count <= 0:
        raise ValuationError('number_of_diamonds must be greater than zero')
    if weight < 0:
        raise ValuationError('weight_in_karats cannot be negative')
    return weight / count


def determine_category(weight_in_karats, number_of_diamonds):
    """Classify a lot as 4P Plus or 4P Minus by average weight per piece"""
    if weight_per_diamond(weight_in_karats, number_of_diamonds) > CATEGORY_THRESHOLD:
        return FOUR_P_PLUS
    return FOUR_P_MINUS


def calculate_value(category, weight_in_karats, number_of_diamonds,
                    four_p_plus_rate, four_p_minus_rate, raw_damage_weight=None):
    """
    Value a lot.

    4P Plus:  (weight_in_karats - raw_damage_weight) * four_p_plus_rate
    4P Minus: number_of_diamonds * four_p_minus_rate

    Raw damage weight only affects 4P Plus lots.
    """
    weight = to_decimal(weight_in_karats, 'weight_in_karats')
    count = to_decimal(number_of_diamonds, 'number_of_diamonds')
    damage = to_decimal(raw_damage_weight, 'raw_damage_weight') or Decimal('0')

    if damage < 0:
        raise ValuationError('raw_damage_weight cannot be negative')
    if damage > weight:
        raise ValuationError('raw_damage_weight cannot exceed weight_in_karats')

    if category == FOUR_P_PLUS:
        rate = to_decimal(four_p_plus_rate, 'four_p_plus_rate')
        return quantize_money((weight - damage) * rate)
    if category == FOUR_P_MINUS:
        rate = to_decimal(four_p_minus_rate, 'four_p_minus_rate')
        return quantize_money(count * rate)
    raise ValuationError(f"Unknown diamond category: {category!r}")


def value_for_client(client, weight_in_karats, number_of_diamonds, raw_damage_weight=None):
    """Return (category, total_value) for a lot using a client's negotiated rates"""
    category = determine_category(weight_in_karats, number_of_diamonds)
    value = calculate_value(
        category,
        weight_in_karats,
        number_of_diamonds,
        client.four_p_plus_rate,
        client.four_p_minus_rate,
        raw_damage_weight,
    )
    return category, value


def invoice_total(diamonds):
    """Sum of total_value over the lots being billed"""
    total = sum((to_decimal(d.total_value) for d in diamonds), Decimal('0'))
    return quantize_money(total)


def billed_rate(category, value, weight_in_karats, number_of_diamonds):
    """
    Per-unit rate a value works out to, as printed on an invoice:
    per karat for 4P Plus, per piece for 4P Minus, rounded to whole units.
    """
    value = to_decimal(value)
    if category == FOUR_P_PLUS:
        divisor = to_decimal(weight_in_karats)
    else:
        divisor = to_decimal(number_of_diamonds)
    if not divisor:
        return Decimal('0')
    return (value / divisor).quantize(Decimal('1'), rounding=ROUND_HALF_UP)


def applied_rate(diamond):
    return billed_rate(diamond.category, diamond.total_value, diamond.weight_in_karats, diamond.number_of_diamonds)
