"""Load-test driver for the Dixit App HTTP surface.

Run with ``python -m dixit_app.loadtest --scenario enhanced --url http://host:3000``.
"""
