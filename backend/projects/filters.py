import django_filters
from django.db.models import Q
from .models import Expense, Project, Sprint, Task, TimeEntry


class ProjectFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search')
    start_date_from = django_filters.DateFilter(field_name='start_date', lookup_expr='gte')
    start_date_to = django_filters.DateFilter(field_name='start_date', lookup_expr='lte')
    end_date_from = django_filters.DateFilter(field_name='end_date', lookup_expr='gte')
    end_date_to = django_filters.DateFilter(field_name='end_date', lookup_expr='lte')

    class Meta:
        model = Project
        fields = ['status', 'client']

    def filter_search(self, queryset, name, value):
        return queryset.filter(Q(name__icontains=value) | Q(description__icontains=value))


class SprintFilter(django_filters.FilterSet):
    start_date_from = django_filters.DateFilter(field_name='start_date', lookup_expr='gte')
    start_date_to = django_filters.DateFilter(field_name='start_date', lookup_expr='lte')

    class Meta:
        model = Sprint
        fields = ['project']


class TaskFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = Task
        fields = ['sprint', 'assignee', 'status', 'priority']

    def filter_search(self, queryset, name, value):
        return queryset.filter(Q(title__icontains=value) | Q(description__icontains=value))


class ExpenseFilter(django_filters.FilterSet):
    """``all`` as status or category means no filter"""
    search = django_filters.CharFilter(method='filter_search')
    status = django_filters.CharFilter(method='filter_unless_all')
    category = django_filters.CharFilter(method='filter_unless_all')
    date_from = django_filters.DateFilter(field_name='date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='date', lookup_expr='lte')

    class Meta:
        model = Expense
        fields = ['project', 'user']

    def filter_unless_all(self, queryset, name, value):
        if value == 'all':
            return queryset
        return queryset.filter(**{name: value})

    def filter_search(self, queryset, name, value):
        return queryset.filter(Q(description__icontains=value) | Q(category__icontains=value))


class TimeEntryFilter(django_filters.FilterSet):
    date_from = django_filters.DateFilter(field_name='date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='date', lookup_expr='lte')

    class Meta:
        model = TimeEntry
        fields = ['status', 'project', 'task', 'user']
