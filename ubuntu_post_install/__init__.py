"""
Ubuntu Post-Install Provisioning Utility

Brings a freshly installed Ubuntu GNOME desktop to a configured, hardened and
personalized state by running an ordered list of idempotent provisioning steps.
"""

__version__ = "1.0.0"
