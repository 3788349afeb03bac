"""
Panel Admin core: session lifecycle, role-based route guard and
real-time order notifications for the store admin panel.
"""

__version__ = "1.0.0"
