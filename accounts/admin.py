from django.contrib import admin

from accounts.models import Restaurant, CustomUser


@admin.register(Restaurant)
class RestaurantAdmin(admin.ModelAdmin):
    list_display = ['name', 'email', 'timezone']
    search_fields = ['name', 'email']


@admin.register(CustomUser)
class CustomUserAdmin(admin.ModelAdmin):
    list_display = ['email', 'first_name', 'last_name', 'role', 'department', 'restaurant', 'is_active']
    list_filter = ['role', 'department', 'is_active']
    search_fields = ['email', 'first_name', 'last_name']
    readonly_fields = ['failed_login_attempts', 'account_locked_until', 'last_failed_login', 'last_successful_login']
    exclude = ['password', 'pin_code']
