"""Reporting dashboard for travel-booking CSV exports."""
