"""
Typed checkout payloads.

Cart and donor form data arrive as loosely shaped JSON. They are coerced into
these dataclasses at the boundary; anything missing or malformed raises
``django.core.exceptions.ValidationError`` with a field-level message before a
gateway order or any row is created. The same structures are written to and
read back from the CheckoutSnapshot.
"""

from dataclasses import dataclass, field, asdict
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from django.core.exceptions import ValidationError

from donors.utils import normalize_phone_number

TWO_PLACES = Decimal('0.01')

PERSONALIZATION_FIELDS = (
    'donor_name',
    'donor_country',
    'custom_image',
    'custom_message',
    'donation_purpose',
    'special_instructions',
    'insta_id',
    'video_wishes',
)


@dataclass(frozen=True)
class PersonalizationData:
    donor_name: str = ''
    donor_country: str = ''
    custom_image: str = ''
    custom_message: str = ''
    donation_purpose: str = ''
    special_instructions: str = ''
    insta_id: str = ''
    video_wishes: str = ''

    @property
    def is_image_available(self) -> bool:
        return bool(self.custom_image)

    def has_content(self) -> bool:
        return any(getattr(self, name) for name in PERSONALIZATION_FIELDS)

    def as_model_kwargs(self) -> Dict[str, Any]:
        values = asdict(self)
        values['is_image_available'] = self.is_image_available
        return values


@dataclass(frozen=True)
class CartLine:
    campaign_product_id: int
    quantity: int
    unit_price: Decimal
    campaign_id: Optional[int] = None
    personalization: Optional[PersonalizationData] = None

    @property
    def line_total(self) -> Decimal:
        return (self.unit_price * self.quantity).quantize(TWO_PLACES)


@dataclass(frozen=True)
class DonorForm:
    mobile_number: str
    full_name: str = ''
    email: str = ''
    country: str = ''
    message: str = ''
    dedication: str = ''
    is_anonymous: bool = False
    personalization: PersonalizationData = field(default_factory=PersonalizationData)


@dataclass(frozen=True)
class CheckoutRequest:
    kind: str
    amount: Decimal
    tip_amount: Decimal
    form: DonorForm
    lines: List[CartLine] = field(default_factory=list)
    campaign_id: Optional[int] = None

    @property
    def donation_amount(self) -> Decimal:
        return self.amount - self.tip_amount

    @property
    def lines_total(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal('0.00'))

    def snapshot_cart(self) -> List[Dict[str, Any]]:
        return [_line_to_json(line) for line in self.lines]

    def snapshot_form(self) -> Dict[str, Any]:
        form = asdict(self.form)
        form['personalization'] = _strip_empty(form['personalization'])
        return form


def _strip_empty(values: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value not in ('', None)}


def _line_to_json(line: CartLine) -> Dict[str, Any]:
    data = {
        'campaign_product_id': line.campaign_product_id,
        'quantity': line.quantity,
        'unit_price': str(line.unit_price),
        'campaign_id': line.campaign_id,
    }
    if line.personalization and line.personalization.has_content():
        data['personalization'] = _strip_empty(asdict(line.personalization))
    return data


def parse_decimal(value, field_name: str, allow_zero: bool = True) -> Decimal:
    if value is None or value == '':
        raise ValidationError({field_name: 'This field is required.'})
    try:
        amount = Decimal(str(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError({field_name: f'Invalid amount: {value!r}'})
    if not amount.is_finite():
        raise ValidationError({field_name: f'Invalid amount: {value!r}'})
    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationError({field_name: 'Must be greater than zero.'})
    return amount


def _parse_int(value, field_name: str, minimum: int = 1) -> int:
    if isinstance(value, bool):
        raise ValidationError({field_name: 'Must be an integer.'})
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError({field_name: 'Must be an integer.'})
    try:
        number = int(value)
    except (ValueError, TypeError):
        raise ValidationError({field_name: 'Must be an integer.'})
    if number < minimum:
        raise ValidationError({field_name: f'Must be at least {minimum}.'})
    return number


def parse_personalization(data: Optional[Dict[str, Any]]) -> PersonalizationData:
    if not data:
        return PersonalizationData()
    if not isinstance(data, dict):
        raise ValidationError({'personalization': 'Must be an object.'})
    values = {}
    for name in PERSONALIZATION_FIELDS:
        raw = data.get(name)
        values[name] = '' if raw is None else str(raw).strip()
    return PersonalizationData(**values)


def parse_cart_line(data: Dict[str, Any], index: int) -> CartLine:
    prefix = f'cart_items[{index}]'
    if not isinstance(data, dict):
        raise ValidationError({prefix: 'Must be an object.'})
    if data.get('campaign_product_id') in (None, ''):
        raise ValidationError({f'{prefix}.campaign_product_id': 'This field is required.'})

    personalization = parse_personalization(data.get('personalization'))
    campaign_id = data.get('campaign_id')
    return CartLine(
        campaign_product_id=_parse_int(data['campaign_product_id'], f'{prefix}.campaign_product_id'),
        quantity=_parse_int(data.get('quantity'), f'{prefix}.quantity'),
        unit_price=parse_decimal(data.get('unit_price'), f'{prefix}.unit_price', allow_zero=False),
        campaign_id=_parse_int(campaign_id, f'{prefix}.campaign_id') if campaign_id not in (None, '') else None,
        personalization=personalization if personalization.has_content() else None,
    )


def parse_donor_form(data: Optional[Dict[str, Any]], kind: str) -> DonorForm:
    data = data or {}
    if not isinstance(data, dict):
        raise ValidationError({'form_data': 'Must be an object.'})

    try:
        mobile_number = normalize_phone_number(data.get('mobile_number'))
    except ValueError as e:
        raise ValidationError({'form_data.mobile_number': str(e)})

    full_name = str(data.get('full_name') or '').strip()
    if kind == 'direct' and not full_name:
        raise ValidationError({'form_data.full_name': 'Donor name is required for direct contributions.'})

    return DonorForm(
        mobile_number=mobile_number,
        full_name=full_name,
        email=str(data.get('email') or '').strip(),
        country=str(data.get('country') or '').strip(),
        message=str(data.get('message') or '').strip(),
        dedication=str(data.get('dedication') or '').strip(),
        is_anonymous=bool(data.get('is_anonymous', False)),
        personalization=parse_personalization(data.get('personalization')),
    )


def parse_checkout_request(data: Dict[str, Any]) -> CheckoutRequest:
    """
    Validate a raw checkout payload.

    Expected keys: kind, amount, tip_amount or tip_percentage, campaign_id,
    cart_items, form_data.
    """
    kind = data.get('kind') or ('product_based' if data.get('cart_items') else 'direct')
    if kind not in ('direct', 'product_based'):
        raise ValidationError({'kind': f'Unknown contribution kind: {kind}'})

    cart_items = data.get('cart_items') or []
    if not isinstance(cart_items, list):
        raise ValidationError({'cart_items': 'Must be a list.'})
    if kind == 'product_based' and not cart_items:
        raise ValidationError({'cart_items': 'At least one item is required.'})
    if kind == 'direct' and cart_items:
        raise ValidationError({'cart_items': 'Direct contributions cannot carry cart items.'})

    lines = [parse_cart_line(item, index) for index, item in enumerate(cart_items)]

    # Sign is checked by the issuer so a non-positive total maps to InvalidAmount
    try:
        amount = Decimal(str(data.get('amount'))).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError({'amount': f"Invalid amount: {data.get('amount')!r}"})

    if data.get('tip_amount') not in (None, ''):
        tip_amount = parse_decimal(data['tip_amount'], 'tip_amount')
    elif data.get('tip_percentage') not in (None, ''):
        percentage = parse_decimal(data['tip_percentage'], 'tip_percentage')
        if lines:
            base = sum((line.line_total for line in lines), Decimal('0.00'))
        else:
            # direct amount already includes the tip
            base = amount * 100 / (100 + percentage)
        tip_amount = (base * percentage / 100).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    else:
        tip_amount = Decimal('0.00')

    campaign_id = data.get('campaign_id')
    return CheckoutRequest(
        kind=kind,
        amount=amount,
        tip_amount=tip_amount,
        form=parse_donor_form(data.get('form_data'), kind),
        lines=lines,
        campaign_id=_parse_int(campaign_id, 'campaign_id') if campaign_id not in (None, '') else None,
    )


def request_from_snapshot(intent, snapshot) -> CheckoutRequest:
    """Rebuild the typed request stored alongside an intent"""
    cart_items = snapshot.cart_items if snapshot else []
    form_data = snapshot.form_data if snapshot else {}
    lines = [parse_cart_line(item, index) for index, item in enumerate(cart_items)]
    form = DonorForm(
        mobile_number=form_data.get('mobile_number', ''),
        full_name=form_data.get('full_name', ''),
        email=form_data.get('email', ''),
        country=form_data.get('country', ''),
        message=form_data.get('message', ''),
        dedication=form_data.get('dedication', ''),
        is_anonymous=bool(form_data.get('is_anonymous', False)),
        personalization=parse_personalization(form_data.get('personalization')),
    )
    return CheckoutRequest(
        kind=intent.kind,
        amount=intent.amount,
        tip_amount=intent.tip_amount,
        form=form,
        lines=lines,
        campaign_id=intent.campaign_id,
    )
