from django.contrib import admin

from .models import Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ('product', 'product_title', 'price_at_purchase', 'quantity')

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ('id', 'customer_name', 'customer_email', 'status', 'total_price', 'created_at')
    list_filter = ('status', 'created_at')
    search_fields = ('id', 'customer_name', 'customer_email', 'customer_phone')
    inlines = [OrderItemInline]
    readonly_fields = (
        'id', 'customer_name', 'customer_email', 'customer_phone',
        'shipping_address', 'total_price', 'created_at', 'updated_at',
    )
    fields = readonly_fields[:6] + ('status', 'admin_notes') + readonly_fields[6:]
    ordering = ('-created_at',)
