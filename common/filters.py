from django.utils.dateparse import parse_date
from rest_framework.exceptions import ValidationError


def date_param(request, name):
    value = request.query_params.get(name)
    if not value:
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValidationError({name: "Use the YYYY-MM-DD format."})
    return parsed


def filter_date_range(qs, request, lookup):
    """Apply inclusive ``date_from``/``date_to`` query params to ``lookup``."""
    date_from = date_param(request, "date_from")
    date_to = date_param(request, "date_to")
    if date_from:
        qs = qs.filter(**{f"{lookup}__gte": date_from})
    if date_to:
        qs = qs.filter(**{f"{lookup}__lte": date_to})
    return qs
