from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.html import format_html
from .forms import UserChangeForm, UserCreationForm
from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Custom User Admin with role and driver availability"""
    form = UserChangeForm
    add_form = UserCreationForm
    list_display = [
        'email', 'name', 'role', 'status', 'is_available', 'is_active',
        'is_verified', 'date_joined', 'avatar_preview'
    ]
    list_filter = ['role', 'status', 'is_available', 'is_active', 'is_staff', 'is_verified', 'date_joined']
    search_fields = ['email', 'name', 'phone_number']
    ordering = ['-date_joined']
    readonly_fields = ['date_joined', 'last_login', 'avatar_preview', 'active_deliveries']
    actions = ['make_available', 'make_unavailable']

    fieldsets = (
        ('Authentication', {
            'fields': ('email', 'password', 'role', 'status')
        }),
        ('Personal Info', {
            'fields': ('name', 'phone_number', 'avatar', 'avatar_preview')
        }),
        ('Driver', {
            'fields': ('is_available', 'active_deliveries')
        }),
        ('Permissions', {
            'fields': (
                'is_active', 'is_staff', 'is_superuser',
                'is_verified', 'groups', 'user_permissions'
            )
        }),
        ('Important Dates', {
            'fields': ('date_joined', 'last_login')
        }),
    )
    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'role', 'password1', 'password2'),
        }),
    )

    def avatar_preview(self, obj):
        if obj.avatar:
            return format_html(
                '<img src="{}" style="width: 40px; height: 40px; border-radius: 50%;" />',
                obj.avatar.url
            )
        return "-"
    avatar_preview.short_description = 'Avatar'

    def active_deliveries(self, obj):
        if not obj.is_driver:
            return "-"
        return obj.deliveries.exclude(delivery_status='delivered').count()
    active_deliveries.short_description = 'Active deliveries'

    def make_available(self, request, queryset):
        updated = queryset.filter(role=User.ROLE_DRIVER).update(is_available=True)
        self.message_user(request, f'{updated} driver(s) marked available.')
    make_available.short_description = 'Mark selected drivers available'

    def make_unavailable(self, request, queryset):
        updated = queryset.filter(role=User.ROLE_DRIVER).update(is_available=False)
        self.message_user(request, f'{updated} driver(s) marked unavailable.')
    make_unavailable.short_description = 'Mark selected drivers unavailable'
