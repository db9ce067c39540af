"""
Wallets app configuration.
"""

from django.apps import AppConfig


class WalletsConfig(AppConfig):
    """Configuration for the Wallets app."""
    
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'wallets'
    verbose_name = 'Wallets & Transfer Requests'
