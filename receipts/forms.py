"""
Forms for the receipts application.

The JSON endpoints bind request payloads to these forms to coerce and
validate raw values before the service layer applies business rules.
"""
import math

from django import forms

from core.errors import errmsg
from core.scrap_engine import MAX_COEFFICIENT, MAX_WEIGHT, is_valid_bracket


class CoefficientForm(forms.Form):
    """Form for updating the global base coefficient."""

    coefficient = forms.FloatField(
        error_messages={
            'required': errmsg.COEFFICIENT_NOT_POSITIVE,
            'invalid': errmsg.COEFFICIENT_NOT_POSITIVE,
        }
    )

    def clean_coefficient(self):
        """Reject zero, negative, non-finite and oversized coefficients."""
        coefficient = self.cleaned_data.get('coefficient')
        if coefficient is None or not math.isfinite(coefficient) or coefficient <= 0:
            raise forms.ValidationError(errmsg.COEFFICIENT_NOT_POSITIVE)
        if coefficient > MAX_COEFFICIENT:
            raise forms.ValidationError(errmsg.COEFFICIENT_TOO_LARGE)
        return coefficient


class ReceiptForm(forms.Form):
    """Receipt header; items are validated one by one with ReceiptItemForm."""

    receipt_number = forms.CharField(max_length=255, required=False, empty_value=None)


class ReceiptItemForm(forms.Form):
    """
    A single line item as submitted by the operator.

    ``weight`` and ``coefficient`` are optional here: a non-positive weight
    drops the item and a missing or non-positive coefficient falls back to
    the base coefficient. Any client-side ``sum`` is ignored.
    """

    percentage = forms.IntegerField(
        error_messages={
            'required': errmsg.INVALID_PERCENTAGE,
            'invalid': errmsg.INVALID_PERCENTAGE,
        },
    )
    weight = forms.FloatField(
        required=False,
        max_value=MAX_WEIGHT,
        error_messages={'max_value': errmsg.WEIGHT_TOO_LARGE},
    )
    coefficient = forms.FloatField(
        required=False,
        max_value=MAX_COEFFICIENT,
        error_messages={'max_value': errmsg.COEFFICIENT_TOO_LARGE},
    )

    def clean_percentage(self):
        percentage = self.cleaned_data.get('percentage')
        if not is_valid_bracket(percentage):
            raise forms.ValidationError(errmsg.INVALID_PERCENTAGE)
        return percentage


def first_error(form: forms.Form) -> str:
    """Return the first validation message of a bound, invalid form."""
    for messages in form.errors.values():
        if messages:
            return messages[0]
    return "Invalid input"
