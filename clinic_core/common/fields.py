from __future__ import annotations

from decimal import Decimal

from django.db import models

from clinic_core.common.money import MoneyAmount


class MoneyField(models.DecimalField):
    """
    DECIMAL(12, 2) column that reads back as MoneyAmount.

    Query parameters may be MoneyAmount or Decimal; aggregates such as Sum()
    over a MoneyField also come back as MoneyAmount (or None for no rows).
    """

    def __init__(self, *args, **kwargs):
        kwargs.setdefault("max_digits", 12)
        kwargs.setdefault("decimal_places", 2)
        super().__init__(*args, **kwargs)

    def deconstruct(self):
        name, path, args, kwargs = super().deconstruct()
        if kwargs.get("max_digits") == 12:
            del kwargs["max_digits"]
        if kwargs.get("decimal_places") == 2:
            del kwargs["decimal_places"]
        return name, path, args, kwargs

    def from_db_value(self, value, expression, connection):
        if value is None:
            return None
        return MoneyAmount.of(Decimal(str(value)))

    def to_python(self, value):
        if isinstance(value, MoneyAmount):
            return value.amount
        return super().to_python(value)

    def get_prep_value(self, value):
        if isinstance(value, MoneyAmount):
            value = value.amount
        return super().get_prep_value(value)

    def pre_save(self, model_instance, add):
        value = super().pre_save(model_instance, add)
        if value is not None and not isinstance(value, MoneyAmount):
            value = MoneyAmount.of(value)
            setattr(model_instance, self.attname, value)
        return value

    def value_to_string(self, obj):
        value = self.value_from_object(obj)
        return "" if value is None else str(value)
