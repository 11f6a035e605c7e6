import django_filters
from .models import Dispatch


class DispatchFilter(django_filters.FilterSet):
    class Meta:
        model = Dispatch
        fields = ['status', 'urgency_level']
