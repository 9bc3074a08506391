import django_filters

from modules.coupons.models import Coupon


class CouponFilter(django_filters.FilterSet):
    code = django_filters.CharFilter(field_name="code", lookup_expr="icontains")
    is_active = django_filters.BooleanFilter(field_name="is_active")
    type = django_filters.CharFilter(field_name="type", lookup_expr="iexact")

    class Meta:
        model = Coupon
        fields = ["code", "is_active", "type"]
