# crm_core/filters.py
import django_filters as df
from django.db.models import Q

from .models import Customer, CustomerActivity
from .workflows import STATUS_CHOICES


class CustomerFilter(df.FilterSet):
    status = df.MultipleChoiceFilter(field_name="status", choices=STATUS_CHOICES)
    priority = df.ChoiceFilter(field_name="priority", choices=Customer.Priority.choices)
    assigned_to = df.NumberFilter(field_name="assigned_to_id")
    unassigned = df.BooleanFilter(field_name="assigned_to", lookup_expr="isnull")
    city = df.CharFilter(field_name="city", lookup_expr="icontains")
    created_at = df.DateFromToRangeFilter()
    search = df.CharFilter(method="filter_search")

    class Meta:
        model = Customer
        fields = ["status", "priority", "assigned_to", "unassigned", "city", "created_at"]

    def filter_search(self, queryset, name, value):
        value = (value or "").strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(name__icontains=value)
            | Q(email__icontains=value)
            | Q(phone__icontains=value)
        )


class CustomerActivityFilter(df.FilterSet):
    type = df.ChoiceFilter(field_name="type", choices=CustomerActivity.Type.choices)
    performed_at = df.DateFromToRangeFilter()

    class Meta:
        model = CustomerActivity
        fields = ["type", "performed_at"]
