"""Reflex configuration for the admissions demo app."""

import reflex as rx

config = rx.Config(
    app_name="admissions_demo",
    plugins=[rx.plugins.SitemapPlugin()],
)
