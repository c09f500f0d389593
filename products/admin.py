from django.contrib import admin
from django.utils.html import format_html
from .models import Category, Product


class ProductStatusFilter(admin.SimpleListFilter):
    title = 'Orderable'
    parameter_name = 'orderable'

    def lookups(self, request, model_admin):
        return (
            ('yes', 'Orderable'),
            ('no_price', 'Missing price'),
        )

    def queryset(self, request, queryset):
        if self.value() == 'yes':
            return queryset.filter(is_active=True, price__isnull=False)
        if self.value() == 'no_price':
            return queryset.filter(price__isnull=True)
        return queryset


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'slug', 'products_count', 'sort_order', 'is_active']
    list_filter = ['is_active']
    list_editable = ['sort_order', 'is_active']
    search_fields = ['name', 'description']
    prepopulated_fields = {'slug': ('name',)}

    def products_count(self, obj):
        return obj.products.count()
    products_count.short_description = 'Products'


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'category', 'price', 'stock', 'image_preview', 'is_active']
    list_filter = [ProductStatusFilter, 'category', 'is_active']
    list_editable = ['price', 'is_active']
    search_fields = ['name', 'description']
    list_select_related = ['category']
    readonly_fields = ['image_preview', 'created_at', 'updated_at']

    def image_preview(self, obj):
        url = obj.get_image_url()
        if url:
            return format_html('<img src="{}" style="max-height: 60px;" />', url)
        return "-"
    image_preview.short_description = 'Image'
