"""
Sales module package.

Pure engine pieces (no Qt widgets): ledger, returns, classification.
Qt-driven pieces: daily_totals, barcode_intake, controller, view.

The controller is not imported here; repositories import the ledger from
this package and must not pull the UI in with it. Import it explicitly:

    from pos_terminal.modules.sales.controller import SalesController
"""
