"""Client-side view logic for the dashboard pages.

These modules hold the behaviour of the browser views (filtering, sorting,
aggregates, chat reconciliation) as plain Python so it can be reused by any
client and tested without a browser.
"""
